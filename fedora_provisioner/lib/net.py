from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator

from .command import CommandRunner

logger = logging.getLogger(__name__)


def download(cmd: CommandRunner, url: str, dest: Path, *, timeout_s: float) -> None:
    """Fetch ``url`` into ``dest``; raises CommandError/CommandTimeout on failure.

    curl enforces its own ``--max-time``; the subprocess timeout is a backstop
    for a curl that never returns.
    """

    cmd.run(
        [
            "curl",
            "-fsSL",
            "--connect-timeout",
            "30",
            "--max-time",
            str(int(timeout_s)),
            "-o",
            str(dest),
            url,
        ],
        timeout_s=timeout_s + 30,
    )


@contextlib.contextmanager
def temporary_download(cmd: CommandRunner, url: str, *, suffix: str, timeout_s: float) -> Iterator[Path]:
    """Download into a temp file that is removed on every exit path."""

    fd, name = tempfile.mkstemp(prefix="fedora-provisioner-", suffix=suffix)
    os.close(fd)
    path = Path(name)
    try:
        download(cmd, url, path, timeout_s=timeout_s)
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        logger.debug("Removed temporary download %s", path)
