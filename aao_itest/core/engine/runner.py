"""
Scenario lifecycle runner — setup, test, cleanup as separate entry points.

Each phase is invoked on its own (CI calls ``setup``, then ``test``,
then ``cleanup`` as separate processes); no phase triggers another.
``run_all`` chains them for local use.

The runner owns the process boundary: whatever a phase does, the
result is a ``PhaseReport`` whose ``exit_code`` is registered with the
scenario. An exception escaping a phase is logged with its traceback
and reported as the shared unexpected-error code.

Flow:
    [preflight] → phase() → PhaseResult → registry → exit code
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar

from aao_itest.adapters.base import ClusterClient, IdentityClient
from aao_itest.core.config.settings import HarnessSettings, ScenarioSettings
from aao_itest.core.models.resource import ResourceRef
from aao_itest.core.models.results import OpResult, PhaseResult
from aao_itest.core.services import orchestrator
from aao_itest.core.services.exit_codes import EXIT_SUCCESS, ExitCodeRegistry

logger = logging.getLogger(__name__)

_BANNER = "=" * 72


class Phase(StrEnum):
    SETUP = "setup"
    TEST = "test"
    CLEANUP = "cleanup"


@dataclass
class Harness:
    """Collaborators and settings shared by every scenario in a run."""

    cluster: ClusterClient
    settings: HarnessSettings = field(default_factory=HarnessSettings)
    identity: IdentityClient | None = None
    sleep: orchestrator.Sleep = time.sleep
    clock: orchestrator.Clock = time.monotonic


class Scenario(ABC):
    """One named integration test.

    Subclasses set ``name``, ``description``, ``registry`` and
    ``config_model`` as class attributes and implement the three
    phases. The registry lives on the class so ``explain`` works
    without any configuration or cluster.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    registry: ClassVar[ExitCodeRegistry]
    config_model: ClassVar[type[ScenarioSettings]]

    def __init__(self, harness: Harness, config: ScenarioSettings):
        self.harness = harness
        self.config = config

    @classmethod
    def build_config(
        cls,
        settings: HarnessSettings,
        environ: Mapping[str, str] | None = None,
    ) -> ScenarioSettings:
        """Frozen scenario config from the environment."""
        return cls.config_model.from_env(environ)

    @abstractmethod
    def setup(self) -> PhaseResult: ...

    @abstractmethod
    def test(self) -> PhaseResult: ...

    @abstractmethod
    def cleanup(self) -> PhaseResult: ...

    # ── Helpers for subclasses ──────────────────────────────────

    @property
    def cluster(self) -> ClusterClient:
        return self.harness.cluster

    @property
    def settings(self) -> HarnessSettings:
        return self.harness.settings

    def wait_ready(self, ref: ResourceRef) -> PhaseResult:
        result = orchestrator.wait_for_ready(
            self.cluster,
            ref,
            timeout=self.settings.ready_timeout,
            interval=self.settings.poll_interval,
            sleep=self.harness.sleep,
            clock=self.harness.clock,
        )
        return PhaseResult.from_wait(result)

    def delete(self, ref: ResourceRef, *, wait: bool = True) -> OpResult:
        return orchestrator.delete_if_exists(
            self.cluster,
            ref,
            timeout=self.settings.delete_timeout,
            wait=wait,
            interval=self.settings.poll_interval,
            sleep=self.harness.sleep,
            clock=self.harness.clock,
        )

    def fetch(self, ref: ResourceRef) -> dict[str, Any] | None:
        """Read a resource, logging why when it cannot be read."""
        response = self.cluster.get(ref)
        if not response.ok or response.document is None:
            logger.error("Cannot read %s: %s", ref, response.error or response.status)
            return None
        return response.document


@dataclass
class PhaseReport:
    """What one phase produced, already serialized for the process."""

    scenario: str
    phase: Phase
    result: PhaseResult
    exit_code: int
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == EXIT_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "phase": self.phase.value,
            "exit_code": self.exit_code,
            "reason": self.result.reason.value if self.result.reason else None,
            "detail": self.result.detail,
            "elapsed": round(self.elapsed, 3),
        }


class ScenarioRunner:
    """Runs phases of one scenario and maps outcomes to exit codes.

    Args:
        scenario: The scenario instance.
        preflight: Called once before the first phase; a failure stops
            the invocation with the shared unexpected-error code.
        clock: Used only for phase timing in reports.
    """

    def __init__(
        self,
        scenario: Scenario,
        *,
        preflight: Callable[[], PhaseResult] | None = None,
        clock: orchestrator.Clock = time.monotonic,
    ):
        self.scenario = scenario
        self._preflight = preflight
        self._preflight_done = False
        self.preflight_failed = False
        self._clock = clock

    @property
    def registry(self) -> ExitCodeRegistry:
        return self.scenario.registry

    def run_phase(self, phase: Phase) -> PhaseReport:
        """Run one phase; never raises."""
        name = self.scenario.name
        start = self._clock()

        failed_preflight = self._run_preflight()
        if failed_preflight is not None:
            return self._report(phase, failed_preflight, start)

        logger.info(_BANNER)
        logger.info("%s: %s", phase.value.upper(), name)
        logger.info(_BANNER)

        handler: Callable[[], PhaseResult] = getattr(self.scenario, phase.value)
        try:
            result = handler()
        except Exception as e:
            logger.exception("%s %s raised an unexpected error", name, phase.value)
            result = PhaseResult.unexpected(f"{type(e).__name__}: {e}")

        report = self._report(phase, result, start)
        if report.ok:
            logger.info("✓ %s %s passed (%.1fs)", name, phase.value, report.elapsed)
        else:
            logger.error(
                "✗ %s %s failed with exit code %d: %s",
                name, phase.value, report.exit_code, self.registry.explain(report.exit_code),
            )
            if result.detail:
                logger.error("  %s", result.detail)
        return report

    def run_all(self) -> list[PhaseReport]:
        """Setup, then test if setup passed, then cleanup regardless.

        A failed pre-flight stops here: nothing was created, and the
        cluster is probably not reachable anyway.
        """
        reports = [self.run_phase(Phase.SETUP)]
        if self.preflight_failed:
            return reports
        if reports[0].ok:
            reports.append(self.run_phase(Phase.TEST))
        else:
            logger.warning("Skipping test phase because setup failed")
        reports.append(self.run_phase(Phase.CLEANUP))
        return reports

    def explain(self, code: int) -> str:
        return self.registry.explain(code)

    def _run_preflight(self) -> PhaseResult | None:
        if self._preflight is None or self._preflight_done:
            return None
        self._preflight_done = True
        try:
            result = self._preflight()
        except Exception as e:
            logger.exception("Pre-flight checks raised an unexpected error")
            result = PhaseResult.unexpected(f"{type(e).__name__}: {e}")
        if result.ok:
            return None
        self.preflight_failed = True
        logger.error("Pre-flight checks failed; set SKIP_PREFLIGHT_CHECKS=true to bypass")
        return result

    def _report(self, phase: Phase, result: PhaseResult, start: float) -> PhaseReport:
        return PhaseReport(
            scenario=self.scenario.name,
            phase=phase,
            result=result,
            exit_code=self.registry.exit_code(result),
            elapsed=self._clock() - start,
        )


def overall_exit_code(reports: list[PhaseReport]) -> int:
    """First non-zero exit code, else success."""
    for report in reports:
        if not report.ok:
            return report.exit_code
    return EXIT_SUCCESS
