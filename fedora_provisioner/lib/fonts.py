from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, List

from .command import CommandError, CommandRunner, fmt_argv

logger = logging.getLogger(__name__)

FONT_EXTENSIONS = frozenset({".ttf", ".otf"})

# unzip exits 1 on warnings after extracting everything it could.
UNZIP_OK = (0, 1)


def is_font_file(path: Path) -> bool:
    return path.suffix.lower() in FONT_EXTENSIONS


def prunable(paths: Iterable[Path]) -> List[Path]:
    """Files that are not fonts (licenses, readmes, images...)."""
    return [p for p in paths if not is_font_file(p)]


def font_files(font_dir: Path) -> List[Path]:
    if not font_dir.is_dir():
        return []
    return sorted(p for p in font_dir.rglob("*") if p.is_file() and is_font_file(p))


def remove_tree(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


def extract_zip(cmd: CommandRunner, archive: Path, dest: Path) -> None:
    if not cmd.dry_run:
        dest.mkdir(parents=True, exist_ok=True)
    argv = ["unzip", "-o", "-q", str(archive), "-d", str(dest)]
    r = cmd.run(argv, check=False)
    if r.returncode not in UNZIP_OK:
        raise CommandError(f"Command failed ({r.returncode}): {fmt_argv(argv)}", r)
    if r.returncode:
        logger.warning("unzip reported warnings for %s", archive)


def prune_non_fonts(font_dir: Path) -> List[Path]:
    """Delete every extracted file that is not a font, then empty directories."""

    files = [p for p in font_dir.rglob("*") if p.is_file() or p.is_symlink()]
    removed = prunable(files)
    for p in removed:
        p.unlink()

    # Deepest first so parents empty out after their children.
    for d in sorted((p for p in font_dir.rglob("*") if p.is_dir()), key=lambda p: len(p.parts), reverse=True):
        if not any(d.iterdir()):
            d.rmdir()

    if removed:
        logger.info("Pruned %d non-font file(s) from %s", len(removed), font_dir)
    return removed


def refresh_cache(cmd: CommandRunner, font_dir: Path) -> None:
    cmd.run(["fc-cache", "-f", str(font_dir)])


def family_registered(cmd: CommandRunner, family: str) -> bool:
    r = cmd.run(["fc-list", ":", "family"], check=False)
    return r.ok and family.lower() in r.stdout.lower()
