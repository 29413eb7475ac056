from __future__ import annotations

import logging
from typing import Optional

from ..lib.pkg import dnf_autoremove, dnf_clean_all
from ..pipeline import Context, StepFailed

logger = logging.getLogger(__name__)


class CleanupStep:
    step_id = "90_cleanup"
    description = "Remove orphaned packages and clear package caches"
    required_tools = ("dnf",)
    privileged = True

    def run(self, ctx: Context) -> Optional[str]:
        failed = []
        if not dnf_autoremove(ctx.cmd).ok:
            failed.append("autoremove")
        if not dnf_clean_all(ctx.cmd).ok:
            failed.append("clean all")
        if failed:
            raise StepFailed(f"dnf {' and '.join(failed)} failed", details={"failed": failed})
        return "caches cleaned"
