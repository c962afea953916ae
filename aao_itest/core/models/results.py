"""
Result models — the values every layer hands back instead of raising.

Adapters return ``ClusterResponse`` / ``IdentityResult``, the
orchestrator returns ``OpResult`` / ``WaitResult``, and a phase
returns a ``PhaseResult`` carrying a failure *reason*. Reasons only
become integers at the process boundary (see ``exit_codes``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Any

from aao_itest.core.models.resource import ResourceRef


class Readiness(StrEnum):
    """Outcome of evaluating (or waiting on) a readiness condition."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self is not Readiness.PENDING


class OpStatus(StrEnum):
    """Status of a single orchestrator operation."""

    OK = "ok"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    CREATION_FAILED = "creation_failed"
    APPLY_FAILED = "apply_failed"
    DELETION_FAILED = "deletion_failed"


_OK_STATUSES = frozenset({OpStatus.OK, OpStatus.ALREADY_EXISTS, OpStatus.NOT_FOUND})


class CommonReason(StrEnum):
    """Failure reasons shared by every scenario."""

    UNEXPECTED_ERROR = "unexpected_error"
    READY_TIMEOUT = "ready_timeout"
    RESOURCE_FAILED = "resource_failed"


@dataclass
class OpResult:
    """Result of create / apply / delete through the orchestrator."""

    status: OpStatus
    ref: ResourceRef | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status in _OK_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "ref": self.ref.model_dump() if self.ref else None,
            "error": self.error,
        }


@dataclass
class WaitResult:
    """Result of polling a resource for readiness."""

    outcome: Readiness
    ref: ResourceRef
    state: str = ""
    elapsed: float = 0.0
    polls: int = 0

    @property
    def ready(self) -> bool:
        return self.outcome is Readiness.READY


@dataclass(frozen=True)
class PhaseResult:
    """Tagged result of a phase or a check: success, or failure(reason).

    ``reason`` is a member of a scenario's reason enum (or
    ``CommonReason``). ``detail`` is for logs only; it never changes
    the exit code.
    """

    reason: Enum | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, detail: str = "") -> PhaseResult:
        return cls(reason=None, detail=detail)

    @classmethod
    def failure(cls, reason: Enum, detail: str = "") -> PhaseResult:
        return cls(reason=reason, detail=detail)

    @classmethod
    def unexpected(cls, detail: str = "") -> PhaseResult:
        return cls(reason=CommonReason.UNEXPECTED_ERROR, detail=detail)

    @classmethod
    def from_wait(cls, result: WaitResult) -> PhaseResult:
        """Map a readiness wait onto a phase outcome.

        TimedOut and Failed stay distinguishable so an operator can
        tell "never became ready" from "the operator marked it failed".
        """
        if result.outcome is Readiness.READY:
            return cls.success(f"{result.ref} is Ready")
        if result.outcome is Readiness.FAILED:
            return cls.failure(
                CommonReason.RESOURCE_FAILED,
                f"{result.ref} reported state {result.state!r}",
            )
        return cls.failure(
            CommonReason.READY_TIMEOUT,
            f"{result.ref} not Ready after {result.elapsed:.0f}s (last state {result.state!r})",
        )
