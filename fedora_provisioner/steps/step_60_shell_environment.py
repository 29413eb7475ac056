from __future__ import annotations

import logging
from typing import List, Optional

from ..lib.command import CommandError, MissingToolError
from ..lib.git import git_clone
from ..lib.net import temporary_download
from ..lib.shell import ShellPlan, change_login_shell, observe, plan_shell, register_shell
from ..pipeline import Context, StepFailed

logger = logging.getLogger(__name__)


class ShellEnvironmentStep:
    """oh-my-zsh, its plugins/theme, and zsh as the login shell.

    Every sub-action is guarded by the observation taken up front, so a
    second run does nothing.
    """

    step_id = "60_shell_environment"
    description = "Install oh-my-zsh, plugins and theme; set zsh as login shell"
    required_tools = ("git", "curl")

    def plan(self, ctx: Context) -> ShellPlan:
        return plan_shell(observe(ctx.cmd, ctx.cfg), ctx.cfg)

    def precondition(self, ctx: Context) -> bool:
        return not self.plan(ctx).is_noop

    def _install_framework(self, ctx: Context) -> None:
        cfg = ctx.cfg
        with temporary_download(ctx.cmd, cfg.shell_installer_url, suffix=".sh", timeout_s=cfg.network_timeout_s) as script:
            ctx.cmd.run(
                ["sh", str(script), "--unattended"],
                env={
                    "ZSH": str(cfg.zsh_dir),
                    "RUNZSH": "no",
                    "CHSH": "no",
                    "KEEP_ZSHRC": "yes",
                },
                timeout_s=cfg.network_timeout_s,
            )

    def run(self, ctx: Context) -> Optional[str]:
        cfg = ctx.cfg
        plan = self.plan(ctx)
        for note in plan.notes:
            logger.warning(note)

        done: List[str] = []

        if plan.install_framework:
            logger.info("Installing oh-my-zsh into %s", cfg.zsh_dir)
            self._install_framework(ctx)
            done.append("framework")
        else:
            logger.info("oh-my-zsh already present at %s", cfg.zsh_dir)

        for addon in plan.clone_addons:
            git_clone(
                ctx.cmd,
                addon.url,
                cfg.zsh_custom / addon.subdir,
                shallow=addon.shallow,
                timeout_s=cfg.network_timeout_s,
            )
            done.append(addon.name)

        if plan.change_shell:
            target = ctx.cmd.which(cfg.target_shell) or cfg.target_shell
            try:
                if plan.register_shell:
                    register_shell(ctx.cmd, cfg.shells_file, target)
                change_login_shell(ctx.cmd, cfg.user, target)
            except (CommandError, MissingToolError) as e:
                raise StepFailed(
                    f"could not change login shell ({e}); run manually: chsh -s {target}",
                    details={"completed": done},
                ) from e
            done.append(f"login shell -> {target}")

        return "configured: " + ", ".join(done)
