from __future__ import annotations

import logging
from typing import Optional

from ..lib.pkg import dnf_add_repo, dnf_install
from ..pipeline import Context, StepFailed

logger = logging.getLogger(__name__)

REPO_FILE = "docker-ce.repo"


class DockerRepoStep:
    step_id = "40_docker_repo"
    description = "Register the Docker CE package repository"
    required_tools = ("dnf",)
    privileged = True

    def precondition(self, ctx: Context) -> bool:
        return not (ctx.cfg.repos_dir / REPO_FILE).exists()

    def run(self, ctx: Context) -> Optional[str]:
        # config-manager lives in dnf-plugins-core.
        if not dnf_install(ctx.cmd, "dnf-plugins-core").ok:
            raise StepFailed("could not install dnf-plugins-core")
        dnf_add_repo(ctx.cmd, ctx.cfg.docker_repo_url)
        return f"registered {ctx.cfg.docker_repo_url}"
