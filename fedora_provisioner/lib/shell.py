from __future__ import annotations

import logging
import os
import pwd
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..config import Addon, ProvisionConfig
from .command import CommandRunner
from .git import is_clone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShellObservation:
    framework_present: bool
    addons_present: Dict[str, bool]
    current_shell: Optional[str]
    target_shell: Optional[str]
    target_registered: bool


@dataclass(frozen=True)
class ShellPlan:
    install_framework: bool = False
    clone_addons: Tuple[Addon, ...] = ()
    register_shell: bool = False
    change_shell: bool = False
    notes: List[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not (self.install_framework or self.clone_addons or self.register_shell or self.change_shell)


def _same_executable(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    if a == b:
        return True
    try:
        return os.path.realpath(a) == os.path.realpath(b)
    except OSError:
        return False


def plan_shell(obs: ShellObservation, cfg: ProvisionConfig) -> ShellPlan:
    """Decide what the shell step must do from what was observed. No side effects."""

    notes: List[str] = []
    clone = tuple(a for a in cfg.shell_addons if not obs.addons_present.get(a.name, False))

    change = False
    register = False
    if obs.target_shell is None:
        notes.append(f"{cfg.target_shell} not found on PATH; login shell left unchanged")
    elif not _same_executable(obs.current_shell, obs.target_shell):
        change = True
        register = not obs.target_registered

    return ShellPlan(
        install_framework=not obs.framework_present,
        clone_addons=clone,
        register_shell=register,
        change_shell=change,
        notes=notes,
    )


def login_shell(user: str) -> Optional[str]:
    try:
        return pwd.getpwnam(user).pw_shell or None
    except KeyError:
        return None


def read_shells(shells_file: Path) -> List[str]:
    if not shells_file.exists():
        return []
    out: List[str] = []
    for line in shells_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            out.append(line)
    return out


def observe(cmd: CommandRunner, cfg: ProvisionConfig) -> ShellObservation:
    target = cmd.which(cfg.target_shell)
    return ShellObservation(
        framework_present=(cfg.zsh_dir / "oh-my-zsh.sh").exists(),
        addons_present={a.name: is_clone(cfg.zsh_custom / a.subdir) for a in cfg.shell_addons},
        current_shell=login_shell(cfg.user),
        target_shell=target,
        target_registered=bool(target) and target in read_shells(cfg.shells_file),
    )


def register_shell(cmd: CommandRunner, shells_file: Path, shell_path: str) -> None:
    cmd.run(cmd.privileged(["tee", "-a", str(shells_file)]), input_text=shell_path + "\n")


def change_login_shell(cmd: CommandRunner, user: str, shell_path: str) -> None:
    cmd.run(cmd.privileged(["chsh", "-s", shell_path, user]))
