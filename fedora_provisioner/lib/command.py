from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    def __init__(self, message: str, result: Optional[CmdResult] = None) -> None:
        super().__init__(message)
        self.result = result


class CommandTimeout(CommandError):
    pass


class MissingToolError(RuntimeError):
    pass


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class CommandRunner:
    """Run external commands with consistent logging.

    - Always logs the command.
    - Captures stdout/stderr (logged at DEBUG).
    - dry_run logs but does not execute.
    - use_sudo controls whether privileged commands get a ``sudo`` prefix.
      Each privileged call asks sudo on its own; nothing assumes an
      earlier grant is still valid.
    """

    def __init__(self, *, dry_run: bool = False, use_sudo: Optional[bool] = None) -> None:
        self.dry_run = dry_run
        if use_sudo is None:
            use_sudo = hasattr(os, "geteuid") and os.geteuid() != 0
        self.use_sudo = use_sudo

    def which(self, tool: str) -> Optional[str]:
        return shutil.which(tool)

    def require(self, tool: str) -> str:
        path = self.which(tool)
        if not path:
            raise MissingToolError(f"Required tool not found on PATH: {tool}")
        return path

    def privileged(self, argv: Sequence[str]) -> list[str]:
        argv_list = list(argv)
        if self.use_sudo:
            return ["sudo", *argv_list]
        return argv_list

    def verify_privileges(self) -> bool:
        """Refresh (or prompt for) sudo credentials right before a privileged step."""
        if not self.use_sudo:
            return True
        r = self.run(["sudo", "-v"], check=False, capture=False)
        return r.ok

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        input_text: str | None = None,
        timeout_s: float | None = None,
        capture: bool = True,
    ) -> CmdResult:
        argv_list = list(argv)
        logger.info("CMD %s", fmt_argv(argv_list))

        if self.dry_run:
            return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

        try:
            p = subprocess.run(
                argv_list,
                input=input_text,
                text=True,
                stdout=subprocess.PIPE if capture else None,
                stderr=subprocess.PIPE if capture else None,
                cwd=cwd,
                env=dict(os.environ, **(env or {})),
                timeout=timeout_s,
            )
        except FileNotFoundError as e:
            raise MissingToolError(f"Required tool not found on PATH: {argv_list[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise CommandTimeout(f"Command timed out after {timeout_s}s: {fmt_argv(argv_list)}") from e

        stdout = p.stdout or ""
        stderr = p.stderr or ""
        if stdout:
            logger.debug("STDOUT %s", stdout.strip())
        if stderr:
            logger.debug("STDERR %s", stderr.strip())

        result = CmdResult(argv=argv_list, returncode=p.returncode, stdout=stdout, stderr=stderr)
        if check and p.returncode != 0:
            raise CommandError(
                f"Command failed ({p.returncode}): {fmt_argv(argv_list)}\n{stderr.strip()}".rstrip(),
                result,
            )
        return result
