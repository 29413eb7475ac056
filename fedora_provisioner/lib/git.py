from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .command import CommandError, CommandRunner

logger = logging.getLogger(__name__)


def is_clone(dest: Path) -> bool:
    return (dest / ".git").is_dir()


def _discard(dest: Path) -> None:
    if dest.is_symlink() or dest.is_file():
        dest.unlink()
    elif dest.exists():
        shutil.rmtree(dest)


def git_clone(cmd: CommandRunner, url: str, dest: Path, *, shallow: bool = False, timeout_s: float | None = None) -> None:
    """Clone ``url`` into ``dest``; an interrupted clone leaves nothing behind."""

    argv = ["git", "clone"]
    if shallow:
        argv += ["--depth=1"]
    argv += [url, str(dest)]
    if not cmd.dry_run:
        if dest.exists() and not is_clone(dest):
            logger.warning("Removing incomplete clone at %s", dest)
            _discard(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        cmd.run(argv, timeout_s=timeout_s)
    except CommandError:
        if not cmd.dry_run:
            _discard(dest)
        raise
