from __future__ import annotations

import logging
from typing import Optional

from ..lib.command import CommandError
from ..lib.fonts import extract_zip, family_registered, font_files, prune_non_fonts, refresh_cache, remove_tree
from ..lib.net import temporary_download
from ..pipeline import Context, StepFailed

logger = logging.getLogger(__name__)


class InstallFontsStep:
    """Install the Nerd Font family.

    Idempotent by replacement: the target directory is wiped and rebuilt on
    every run unless ``fonts.skip_if_present`` is set.
    """

    step_id = "70_fonts"
    description = "Install the JetBrainsMono Nerd Font"
    required_tools = ("curl", "unzip", "fc-cache")

    def precondition(self, ctx: Context) -> bool:
        if not ctx.cfg.font_skip_if_present:
            return True
        return not font_files(ctx.cfg.font_dir)

    def run(self, ctx: Context) -> Optional[str]:
        cfg = ctx.cfg
        font_dir = cfg.font_dir

        if font_dir.exists() or font_dir.is_symlink():
            logger.info("Removing previous installation at %s", font_dir)
            if not ctx.dry_run:
                remove_tree(font_dir)

        stage = "download"
        try:
            with temporary_download(ctx.cmd, cfg.font_url, suffix=".zip", timeout_s=cfg.network_timeout_s) as archive:
                stage = "extraction"
                extract_zip(ctx.cmd, archive, font_dir)
        except CommandError as e:
            raise StepFailed(f"font {stage} failed: {e}", details={"url": cfg.font_url}) from e

        if ctx.dry_run:
            return f"would install fonts into {font_dir}"

        prune_non_fonts(font_dir)
        fonts = font_files(font_dir)
        if not fonts:
            raise StepFailed(f"no font files found in {font_dir} after extraction", details={"font_dir": str(font_dir)})

        refresh_cache(ctx.cmd, font_dir)
        if not family_registered(ctx.cmd, cfg.font_family):
            logger.warning("'%s' not listed by fc-list yet; the font cache may need a moment", cfg.font_family)

        return f"{len(fonts)} font file(s) installed into {font_dir}"
