from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, List, Sequence

from .command import CommandError, CommandRunner, CmdResult

logger = logging.getLogger(__name__)

# dnf check-update exits 100 when updates are available.
DNF_UPDATES_AVAILABLE = 100


def dnf_check_update(cmd: CommandRunner) -> bool:
    """Refresh dnf metadata. Returns True when updates are pending."""
    r = cmd.run(["dnf", "check-update", "--refresh"], check=False)
    if r.returncode == DNF_UPDATES_AVAILABLE:
        return True
    if r.returncode != 0:
        raise CommandError(f"dnf check-update failed ({r.returncode})", r)
    return False


def dnf_install(cmd: CommandRunner, package: str) -> CmdResult:
    return cmd.run(cmd.privileged(["dnf", "install", "-y", package]), check=False)


def dnf_autoremove(cmd: CommandRunner) -> CmdResult:
    return cmd.run(cmd.privileged(["dnf", "autoremove", "-y"]), check=False)


def dnf_clean_all(cmd: CommandRunner) -> CmdResult:
    return cmd.run(cmd.privileged(["dnf", "clean", "all"]), check=False)


def repo_add_argv(repo_url: str, *, dnf5: bool) -> List[str]:
    if dnf5:
        return ["dnf", "config-manager", "addrepo", f"--from-repofile={repo_url}"]
    return ["dnf", "config-manager", "--add-repo", repo_url]


def dnf_add_repo(cmd: CommandRunner, repo_url: str) -> None:
    argv = repo_add_argv(repo_url, dnf5=bool(cmd.which("dnf5")))
    cmd.run(cmd.privileged(argv))


def rpm_import_key(cmd: CommandRunner, key_url: str, *, timeout_s: float | None = None) -> None:
    cmd.run(cmd.privileged(["rpm", "--import", key_url]), timeout_s=timeout_s)


def write_repo_file(cmd: CommandRunner, path: Path, contents: str) -> None:
    """Write a root-owned file through ``tee`` so only that call needs elevation."""
    cmd.run(cmd.privileged(["tee", str(path)]), input_text=contents)


def render_repo_file(section: str, *, name: str, baseurl: str, gpgkey: str) -> str:
    lines = [
        f"[{section}]",
        f"name={name}",
        f"baseurl={baseurl}",
        "enabled=1",
        "autorefresh=1",
        "type=rpm-md",
        "gpgcheck=1",
        f"gpgkey={gpgkey}",
    ]
    return "\n".join(lines) + "\n"


def flatpak_ensure_remote(cmd: CommandRunner, name: str, url: str) -> None:
    cmd.run(["flatpak", "remote-add", "--if-not-exists", name, url])


def flatpak_install(cmd: CommandRunner, remote: str, app_id: str) -> CmdResult:
    return cmd.run(["flatpak", "install", "-y", "--noninteractive", remote, app_id], check=False)


def install_each(install: Callable[[str], CmdResult], packages: Sequence[str]) -> Dict[str, List[str]]:
    """Install packages one at a time, continuing past failures.

    ``install`` is called with one package name and returns a CmdResult.
    Returns ``{"installed": [...], "failed": [...]}`` in input order.
    """

    installed: List[str] = []
    failed: List[str] = []
    logger.info("Installing packages: %s", " ".join(packages))
    for package in packages:
        try:
            ok = install(package).ok
        except CommandError as e:
            logger.debug("install %s raised: %s", package, e)
            ok = False
        if ok:
            logger.info("Installed %s", package)
            installed.append(package)
        else:
            logger.error("Failed to install %s", package)
            failed.append(package)
    return {"installed": installed, "failed": failed}
