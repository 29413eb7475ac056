from __future__ import annotations

from ..config import PackageSet
from ..pipeline import Context
from .step_20_system_packages import DnfPackagesStep


class DockerPackagesStep(DnfPackagesStep):
    step_id = "45_docker_packages"
    description = "Install the Docker engine packages"

    def packages(self, ctx: Context) -> PackageSet:
        return ctx.cfg.docker_packages
