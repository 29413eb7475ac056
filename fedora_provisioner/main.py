from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .config import ConfigError, ProvisionConfig, from_environment, load_config
from .lib.command import CommandRunner
from .logging_utils import configure_logging
from .pipeline import Context, RunResult, Step, run_pipeline
from .report import save_report
from .steps import (
    CleanupStep,
    DnfPackagesStep,
    DockerPackagesStep,
    DockerRepoStep,
    DockerServiceStep,
    FlatpakAppsStep,
    InstallFontsStep,
    LinkDotfilesStep,
    RefreshMetadataStep,
    ShellEnvironmentStep,
    VSCodeRepoStep,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STEP_FAILED = 1
EXIT_ABORTED = 2


def build_steps() -> List[Step]:
    # Cleanup stays last.
    return [
        VSCodeRepoStep(),
        RefreshMetadataStep(),
        DnfPackagesStep(),
        FlatpakAppsStep(),
        DockerRepoStep(),
        DockerPackagesStep(),
        DockerServiceStep(),
        ShellEnvironmentStep(),
        InstallFontsStep(),
        LinkDotfilesStep(),
        CleanupStep(),
    ]


def exit_code_for(result: RunResult, cfg: ProvisionConfig) -> int:
    """0 even when steps failed, unless the strict policy asks otherwise."""
    if result.aborted:
        return EXIT_ABORTED
    if cfg.fail_on_step_failure and not result.ok:
        return EXIT_STEP_FAILED
    return EXIT_OK


def run(
    *,
    cfg: ProvisionConfig,
    cmd: Optional[CommandRunner] = None,
    steps: Optional[Sequence[Step]] = None,
    report_path: Optional[str] = None,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    only: Optional[Sequence[str]] = None,
    skip: Optional[Sequence[str]] = None,
    dry_run: bool = False,
) -> RunResult:
    """Run the provisioning steps and write the run report."""

    ctx = Context(cfg=cfg, cmd=cmd or CommandRunner(dry_run=dry_run))
    steps = build_steps() if steps is None else list(steps)

    result = run_pipeline(
        ctx=ctx,
        steps=steps,
        start_at=start_at,
        stop_after=stop_after,
        only=only,
        skip=skip,
    )

    path = report_path or str(cfg.default_report_path)
    try:
        save_report(path, result)
    except OSError as e:
        logger.error("Could not write run report to %s: %s", path, e)
    return result


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if args.dotfiles:
        out["dotfiles_dir"] = Path(args.dotfiles).expanduser().resolve()
    if args.strict:
        out["fail_on_step_failure"] = True
    return out


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="fedora-provisioner", description="Provision a Fedora workstation.")
    p.add_argument("--config", default=None, help="YAML config (default: $XDG_CONFIG_HOME/fedora-provisioner/config.yaml)")
    p.add_argument("--dotfiles", default=None, help="Dotfiles source tree (default: current directory)")
    p.add_argument("--log", default=None, help="Path to log file")
    p.add_argument("--report", default=None, help="Path to run report (json|yaml)")
    p.add_argument("--start-at", default=None, help="Start at step_id (e.g. 60_shell_environment)")
    p.add_argument("--stop-after", default=None, help="Stop after step_id")
    p.add_argument("--only", nargs="+", default=None, metavar="STEP_ID", help="Run only these steps")
    p.add_argument("--skip", nargs="+", default=None, metavar="STEP_ID", help="Do not run these steps")
    p.add_argument("--dry-run", action="store_true", help="Log commands without executing them")
    p.add_argument("--strict", action="store_true", help="Exit non-zero if any step fails")
    p.add_argument("--list-steps", action="store_true", help="List steps and exit")
    p.add_argument("-v", "--verbose", action="store_true")

    args = p.parse_args(argv)

    if args.list_steps:
        for step in build_steps():
            print(f"{step.step_id:24} {step.description}")
        return EXIT_OK

    log_path = args.log or str(from_environment().default_log_path)
    configure_logging(log_path=log_path, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        cfg = load_config(path=args.config, overrides=_overrides(args))
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_ABORTED

    if cfg.source_path:
        logger.info("Loaded configuration from %s", cfg.source_path)

    try:
        result = run(
            cfg=cfg,
            report_path=args.report,
            start_at=args.start_at,
            stop_after=args.stop_after,
            only=args.only,
            skip=args.skip,
            dry_run=bool(args.dry_run),
        )
    except ValueError as e:
        logger.error("%s", e)
        return EXIT_ABORTED

    return exit_code_for(result, cfg)


if __name__ == "__main__":
    raise SystemExit(main())
