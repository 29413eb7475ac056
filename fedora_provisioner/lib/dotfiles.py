from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .command import CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictRecord:
    """A real file or directory sitting where a dotfile link should go."""

    path: Path
    backup_path: Path


def backup_dir_name(now: Optional[float] = None) -> str:
    return time.strftime(".dotfiles-backup-%Y%m%d-%H%M%S", time.localtime(now))


def provided_targets(source_root: Path, targets: Iterable[str]) -> List[str]:
    """Targets the dotfiles tree actually ships; stow never touches the rest."""
    return [t for t in targets if (source_root / t).exists() or (source_root / t).is_symlink()]


def _inside(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def find_conflicts(
    home: Path,
    targets: Sequence[str],
    backup_root: Path,
    source_root: Optional[Path] = None,
) -> List[ConflictRecord]:
    """Existing non-symlink entries at target paths.

    A symlink (for instance left by an earlier run) is never a conflict, nor
    is a path that already resolves into the source tree through a linked
    parent directory.
    """

    out: List[ConflictRecord] = []
    for rel in targets:
        p = home / rel
        if p.is_symlink() or not p.exists():
            continue
        if source_root is not None and _inside(p, source_root):
            continue
        out.append(ConflictRecord(path=p, backup_path=backup_root / rel))
    return out


def move_to_backup(conflicts: Sequence[ConflictRecord]) -> List[ConflictRecord]:
    """Move each conflict into its backup location; directories are created on first use."""

    moved: List[ConflictRecord] = []
    for c in conflicts:
        c.backup_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(c.path), str(c.backup_path))
        logger.info("Backed up %s -> %s", c.path, c.backup_path)
        moved.append(c)
    return moved


def stow(cmd: CommandRunner, source_root: Path, home: Path) -> None:
    cmd.run(["stow", f"--target={home}", "."], cwd=str(source_root))
