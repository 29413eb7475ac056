from __future__ import annotations

from .command import CommandRunner


def service_is_enabled_and_active(cmd: CommandRunner, unit: str) -> bool:
    enabled = cmd.run(["systemctl", "is-enabled", "--quiet", unit], check=False)
    active = cmd.run(["systemctl", "is-active", "--quiet", unit], check=False)
    return enabled.ok and active.ok


def enable_now(cmd: CommandRunner, unit: str) -> None:
    cmd.run(cmd.privileged(["systemctl", "enable", "--now", unit]))
