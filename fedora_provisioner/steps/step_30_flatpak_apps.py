from __future__ import annotations

import logging
from typing import Optional

from ..lib.pkg import flatpak_ensure_remote, flatpak_install, install_each
from ..pipeline import Context, StepFailed

logger = logging.getLogger(__name__)


class FlatpakAppsStep:
    step_id = "30_flatpak_apps"
    description = "Install Flatpak applications from Flathub"
    required_tools = ("flatpak",)

    def run(self, ctx: Context) -> Optional[str]:
        cfg = ctx.cfg
        apps = list(cfg.flatpak_apps)
        if not apps:
            return "nothing to install"

        flatpak_ensure_remote(ctx.cmd, cfg.flathub_remote, cfg.flathub_url)

        outcome = install_each(lambda app: flatpak_install(ctx.cmd, cfg.flathub_remote, app), apps)
        if outcome["failed"]:
            raise StepFailed(
                f"{len(outcome['failed'])} of {len(apps)} app(s) failed: {', '.join(outcome['failed'])}",
                details=outcome,
            )
        return f"{len(outcome['installed'])} app(s) installed"
