from __future__ import annotations

import logging
from typing import Optional

from ..config import PackageSet
from ..lib.pkg import dnf_install, install_each
from ..pipeline import Context, StepFailed

logger = logging.getLogger(__name__)


class DnfPackagesStep:
    """Install a PackageSet with dnf, one package per call.

    dnf itself treats already-installed packages as a no-op.
    """

    step_id = "20_system_packages"
    description = "Install system packages"
    required_tools = ("dnf",)
    privileged = True

    def packages(self, ctx: Context) -> PackageSet:
        return ctx.cfg.system_packages

    def run(self, ctx: Context) -> Optional[str]:
        packages = self.packages(ctx)
        if not len(packages):
            return "nothing to install"

        outcome = install_each(lambda p: dnf_install(ctx.cmd, p), list(packages))
        if outcome["failed"]:
            raise StepFailed(
                f"{len(outcome['failed'])} of {len(packages)} package(s) failed: {', '.join(outcome['failed'])}",
                details=outcome,
            )
        return f"{len(outcome['installed'])} package(s) installed"
