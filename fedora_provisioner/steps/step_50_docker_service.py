from __future__ import annotations

import logging
from typing import Optional

from ..lib.services import enable_now, service_is_enabled_and_active
from ..pipeline import Context

logger = logging.getLogger(__name__)

UNIT = "docker"


class DockerServiceStep:
    step_id = "50_docker_service"
    description = "Enable and start the Docker service"
    required_tools = ("systemctl",)
    privileged = True

    def precondition(self, ctx: Context) -> bool:
        return not service_is_enabled_and_active(ctx.cmd, UNIT)

    def run(self, ctx: Context) -> Optional[str]:
        enable_now(ctx.cmd, UNIT)
        return f"{UNIT} enabled and started"
