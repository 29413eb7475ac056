from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, List, Optional, Protocol, Sequence, Tuple

from .config import ProvisionConfig
from .lib.command import CommandError, CommandRunner, MissingToolError

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILURE = "failure"
SKIPPED = "skipped"


class StepFailed(RuntimeError):
    """Raised by a step to end itself early; the runner moves on to the next step."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details = dict(details or {})


@dataclass(frozen=True)
class Context:
    cfg: ProvisionConfig
    cmd: CommandRunner

    @property
    def dry_run(self) -> bool:
        return self.cmd.dry_run


class Step(Protocol):
    """A single idempotent step.

    Optional attributes picked up by the runner:
    - ``precondition(ctx) -> bool``: False means nothing to do (Skipped).
    - ``required_tools``: executables that must be on PATH.
    - ``privileged``: re-verify sudo right before running.
    """

    step_id: str
    description: str

    def run(self, ctx: Context) -> Optional[str]:
        ...


@dataclass(frozen=True)
class StepResult:
    step_id: str
    status: str
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"step": self.step_id, "status": self.status, "message": self.message}
        if self.details:
            d["details"] = self.details
        return d


@dataclass(frozen=True)
class RunResult:
    results: List[StepResult]
    aborted: bool = False
    abort_reason: str = ""

    @property
    def ok(self) -> bool:
        return not self.aborted and all(r.status != FAILURE for r in self.results)

    def by_status(self, status: str) -> List[str]:
        return [r.step_id for r in self.results if r.status == status]

    def get(self, step_id: str) -> Optional[StepResult]:
        for r in self.results:
            if r.step_id == step_id:
                return r
        return None

    def as_tuples(self) -> List[Tuple[str, str, str]]:
        return [(r.step_id, r.status, r.message) for r in self.results]


def preflight(ctx: Context) -> List[str]:
    """Return the run-level prerequisite tools that are missing."""
    return [t for t in ctx.cfg.preflight_tools if not ctx.cmd.which(t)]


def select_steps(
    steps: Sequence[Step],
    *,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    only: Optional[Collection[str]] = None,
    skip: Optional[Collection[str]] = None,
) -> List[Step]:
    known = {s.step_id for s in steps}
    requested = {
        "start_at": [start_at] if start_at else [],
        "stop_after": [stop_after] if stop_after else [],
        "only": list(only or []),
        "skip": list(skip or []),
    }
    for name, wanted in requested.items():
        unknown = sorted(set(wanted) - known)
        if unknown:
            raise ValueError(f"{name}: unknown step id(s): {', '.join(unknown)}")

    selected: List[Step] = []
    started = start_at is None
    for step in steps:
        if not started:
            if step.step_id == start_at:
                started = True
            else:
                continue
        if (not only or step.step_id in only) and step.step_id not in (skip or ()):
            selected.append(step)
        if stop_after is not None and step.step_id == stop_after:
            break
    return selected


def _run_one(ctx: Context, step: Step) -> StepResult:
    missing = [t for t in getattr(step, "required_tools", ()) if not ctx.cmd.which(t)]
    if missing:
        msg = f"missing tool(s): {', '.join(missing)}"
        logger.error("Skipping step %s: %s", step.step_id, msg)
        return StepResult(step.step_id, SKIPPED, msg)

    precondition = getattr(step, "precondition", None)
    if precondition is not None:
        try:
            needed = bool(precondition(ctx))
        except Exception as e:
            logger.error("Step %s precondition check failed: %s", step.step_id, e)
            return StepResult(step.step_id, FAILURE, f"precondition check failed: {e}")
        if not needed:
            logger.info("Skipping step %s (already satisfied)", step.step_id)
            return StepResult(step.step_id, SKIPPED, "already satisfied")

    if getattr(step, "privileged", False) and not ctx.cmd.verify_privileges():
        logger.error("Step %s needs elevated privileges and sudo was refused", step.step_id)
        return StepResult(step.step_id, FAILURE, "could not obtain elevated privileges")

    logger.info("Running step %s: %s", step.step_id, step.description)
    try:
        message = step.run(ctx) or "done"
    except StepFailed as e:
        logger.error("Step %s failed: %s", step.step_id, e)
        return StepResult(step.step_id, FAILURE, str(e), e.details)
    except (CommandError, MissingToolError) as e:
        logger.error("Step %s failed: %s", step.step_id, e)
        return StepResult(step.step_id, FAILURE, str(e))
    except Exception as e:
        logger.exception("Step %s failed unexpectedly", step.step_id)
        return StepResult(step.step_id, FAILURE, f"{type(e).__name__}: {e}")

    logger.info("Step %s succeeded: %s", step.step_id, message)
    return StepResult(step.step_id, SUCCESS, message)


def run_pipeline(
    *,
    ctx: Context,
    steps: Sequence[Step],
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    only: Optional[Collection[str]] = None,
    skip: Optional[Collection[str]] = None,
) -> RunResult:
    """Run steps in order; a failing step never stops the ones after it."""

    selected = select_steps(steps, start_at=start_at, stop_after=stop_after, only=only, skip=skip)

    missing = preflight(ctx)
    if missing:
        reason = f"missing prerequisite tool(s): {', '.join(missing)}"
        if ctx.cfg.abort_on_missing_prerequisites:
            logger.error("Aborting run: %s", reason)
            return RunResult(results=[], aborted=True, abort_reason=reason)
        logger.warning("Continuing despite %s", reason)

    results: List[StepResult] = []
    for step in selected:
        results.append(_run_one(ctx, step))

    result = RunResult(results=results)
    logger.info(
        "Run finished: %d succeeded, %d failed, %d skipped",
        len(result.by_status(SUCCESS)),
        len(result.by_status(FAILURE)),
        len(result.by_status(SKIPPED)),
    )
    for failed in result.by_status(FAILURE):
        logger.warning("Failed step: %s", failed)
    return result
