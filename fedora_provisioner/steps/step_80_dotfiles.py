from __future__ import annotations

import logging
from typing import Optional

from ..lib.command import CommandError
from ..lib.dotfiles import backup_dir_name, find_conflicts, move_to_backup, provided_targets, stow
from ..pipeline import Context, StepFailed

logger = logging.getLogger(__name__)


class LinkDotfilesStep:
    step_id = "80_dotfiles"
    description = "Symlink the dotfiles tree into the home directory"
    required_tools = ("stow",)

    def run(self, ctx: Context) -> Optional[str]:
        cfg = ctx.cfg
        source = cfg.dotfiles_dir
        if not source.is_dir():
            raise StepFailed(f"dotfiles source is not a directory: {source}")

        targets = provided_targets(source, cfg.dotfile_targets)
        backup_root = cfg.home / backup_dir_name()
        conflicts = find_conflicts(cfg.home, targets, backup_root, source)

        if conflicts and ctx.dry_run:
            for c in conflicts:
                logger.info("Would back up %s -> %s", c.path, c.backup_path)
        elif conflicts:
            move_to_backup(conflicts)

        try:
            stow(ctx.cmd, source, cfg.home)
        except CommandError as e:
            details = {"backups": [str(c.backup_path) for c in conflicts]} if conflicts else {}
            raise StepFailed(f"stow failed: {e}", details=details) from e

        if conflicts:
            logger.info("Existing files were moved to %s", backup_root)
            return f"linked {source}; {len(conflicts)} file(s) backed up to {backup_root}"
        return f"linked {source}"
