"""
Teardown — run every cleanup step, then report once.

Cleanup must not stop at the first failure: a stuck claim must not
leave its namespace behind. Each step is attempted in order, a
failure is logged as a warning, and the aggregate becomes a single
``PhaseResult`` at the end.

Steps marked ``counted=False`` are best-effort only: their failure is
logged but does not fail the phase (e.g. a credentials secret that
the namespace deletion removes anyway).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from aao_itest.core.models.results import OpResult, PhaseResult

logger = logging.getLogger(__name__)


@dataclass
class TeardownStep:
    description: str
    action: Callable[[], OpResult]
    counted: bool = True


@dataclass
class StepOutcome:
    step: TeardownStep
    result: OpResult | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.result is not None and self.result.ok


@dataclass
class Teardown:
    """Ordered list of cleanup steps.

    Usage::

        teardown = Teardown()
        teardown.add("delete claim", lambda: delete_if_exists(...))
        teardown.add("delete secret", lambda: ..., counted=False)
        return teardown.run()
    """

    steps: list[TeardownStep] = field(default_factory=list)
    outcomes: list[StepOutcome] = field(default_factory=list)

    def add(
        self,
        description: str,
        action: Callable[[], OpResult],
        *,
        counted: bool = True,
    ) -> Teardown:
        self.steps.append(TeardownStep(description, action, counted))
        return self

    def run(self) -> PhaseResult:
        """Attempt every step; fail if any counted step failed."""
        self.outcomes = [self._attempt(step) for step in self.steps]

        failed = [o for o in self.outcomes if not o.ok and o.step.counted]
        if failed:
            names = ", ".join(o.step.description for o in failed)
            logger.error("Cleanup finished with %d failed step(s): %s", len(failed), names)
            return PhaseResult.unexpected(f"cleanup failed: {names}")

        logger.info("Cleanup complete (%d step(s))", len(self.outcomes))
        return PhaseResult.success()

    def _attempt(self, step: TeardownStep) -> StepOutcome:
        logger.info("Cleanup: %s", step.description)
        try:
            result = step.action()
        except Exception as e:
            logger.warning("Cleanup step %r raised: %s", step.description, e, exc_info=True)
            return StepOutcome(step, error=str(e))

        if not result.ok:
            severity = "failed" if step.counted else "failed (ignored)"
            logger.warning("Cleanup step %r %s: %s", step.description, severity, result.error)
            return StepOutcome(step, result, result.error)
        return StepOutcome(step, result)
