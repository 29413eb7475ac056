from __future__ import annotations

import logging
from typing import Optional

from ..lib.pkg import dnf_check_update
from ..pipeline import Context

logger = logging.getLogger(__name__)


class RefreshMetadataStep:
    step_id = "15_refresh_metadata"
    description = "Refresh package metadata"
    required_tools = ("dnf",)

    def run(self, ctx: Context) -> Optional[str]:
        if dnf_check_update(ctx.cmd):
            return "metadata refreshed (updates available)"
        return "metadata refreshed"
