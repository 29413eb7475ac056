from __future__ import annotations

import logging
from typing import Optional

from ..lib.pkg import render_repo_file, rpm_import_key, write_repo_file
from ..pipeline import Context

logger = logging.getLogger(__name__)

REPO_FILE = "vscode.repo"


class VSCodeRepoStep:
    step_id = "10_vscode_repo"
    description = "Register the Visual Studio Code package repository"
    required_tools = ("rpm", "tee")
    privileged = True

    def precondition(self, ctx: Context) -> bool:
        return not (ctx.cfg.repos_dir / REPO_FILE).exists()

    def run(self, ctx: Context) -> Optional[str]:
        cfg = ctx.cfg
        rpm_import_key(ctx.cmd, cfg.vscode_repo_key, timeout_s=cfg.network_timeout_s)
        contents = render_repo_file(
            "code",
            name="Visual Studio Code",
            baseurl=cfg.vscode_repo_baseurl,
            gpgkey=cfg.vscode_repo_key,
        )
        write_repo_file(ctx.cmd, cfg.repos_dir / REPO_FILE, contents)
        return f"wrote {cfg.repos_dir / REPO_FILE}"
