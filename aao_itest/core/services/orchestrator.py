"""
Resource orchestrator — idempotent create, bounded wait, best-effort delete.

The only places the harness blocks are ``wait_for_ready`` and the
optional removal wait in ``delete_if_exists``. Both poll at a fixed
interval against a caller-supplied deadline, and never sleep past it.

Flow per resource:
    create_if_not_exists → wait_for_ready → ... → delete_if_exists

``sleep`` and ``clock`` are injectable so tests can drive the loops
with a fake clock.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from aao_itest.adapters.base import ClusterClient, ResponseStatus
from aao_itest.core.models.resource import ResourceRef, namespace_document
from aao_itest.core.models.results import OpResult, OpStatus, Readiness, WaitResult
from aao_itest.core.services.query import Present, as_text, query

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0

Sleep = Callable[[float], None]
Clock = Callable[[], float]

_T = TypeVar("_T")


class DeletionFailed(Exception):
    """Raised by ``delete_if_exists(ignore_errors=False)`` on failure."""

    def __init__(self, result: OpResult):
        super().__init__(f"Failed to delete {result.ref}: {result.error}")
        self.result = result


# ═══════════════════════════════════════════════════════════════════
#  Readiness rules
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ReadinessRule:
    """Maps a resource's state field onto Ready / Failed / Pending.

    Anything that is neither a ready nor a failed state (including a
    missing status) is Pending.
    """

    state_selector: str = "status.state"
    ready_states: frozenset[str] = field(default_factory=lambda: frozenset({"Ready"}))
    failed_states: frozenset[str] = field(default_factory=lambda: frozenset({"Failed", "Error"}))

    def evaluate(self, document: dict[str, Any]) -> tuple[Readiness, str]:
        """Return (readiness, observed state text)."""
        result = query(document, self.state_selector)
        if not isinstance(result, Present) or result.value in (None, ""):
            return Readiness.PENDING, ""
        state = as_text(result.value)
        if state in self.ready_states:
            return Readiness.READY, state
        if state in self.failed_states:
            return Readiness.FAILED, state
        return Readiness.PENDING, state


# AccountClaim / Account report their lifecycle in .status.state
ACCOUNT_CLAIM_READY = ReadinessRule()


# ═══════════════════════════════════════════════════════════════════
#  Polling
# ═══════════════════════════════════════════════════════════════════


def poll_until(
    observe: Callable[[], _T | None],
    *,
    timeout: float,
    interval: float = DEFAULT_POLL_INTERVAL,
    sleep: Sleep = time.sleep,
    clock: Clock = time.monotonic,
) -> tuple[_T | None, float, int]:
    """Call ``observe`` until it returns non-None or the deadline passes.

    The first observation is immediate. Each sleep is clipped to the
    time remaining, so the loop never overshoots ``timeout``.

    Returns:
        (value or None on timeout, elapsed seconds, observations made)
    """
    start = clock()
    deadline = start + max(timeout, 0.0)
    polls = 0

    while True:
        polls += 1
        value = observe()
        if value is not None:
            return value, clock() - start, polls

        remaining = deadline - clock()
        if remaining <= 0:
            return None, clock() - start, polls
        sleep(min(interval, remaining))


# ═══════════════════════════════════════════════════════════════════
#  Create
# ═══════════════════════════════════════════════════════════════════


def create_if_not_exists(client: ClusterClient, document: dict[str, Any]) -> OpResult:
    """Submit a manifest; an existing resource of the same identity is success."""
    ref = ResourceRef.from_document(document)
    response = client.create(document)

    if response.ok:
        logger.info("Created %s", ref)
        return OpResult(OpStatus.OK, ref)
    if response.status is ResponseStatus.ALREADY_EXISTS:
        logger.info("%s already exists, reusing it", ref)
        return OpResult(OpStatus.ALREADY_EXISTS, ref)

    logger.error("Failed to create %s: %s", ref, response.error)
    return OpResult(OpStatus.CREATION_FAILED, ref, error=response.error)


def apply_document(client: ClusterClient, document: dict[str, Any]) -> OpResult:
    """Create-or-update a manifest."""
    ref = ResourceRef.from_document(document)
    response = client.apply(document)
    if response.ok:
        logger.info("Applied %s", ref)
        return OpResult(OpStatus.OK, ref)

    logger.error("Failed to apply %s: %s", ref, response.error)
    return OpResult(OpStatus.APPLY_FAILED, ref, error=response.error)


def create_namespace(client: ClusterClient, name: str) -> OpResult:
    """Create a namespace unless it already exists."""
    return create_if_not_exists(client, namespace_document(name))


# ═══════════════════════════════════════════════════════════════════
#  Wait
# ═══════════════════════════════════════════════════════════════════


def wait_for_ready(
    client: ClusterClient,
    ref: ResourceRef,
    rule: ReadinessRule = ACCOUNT_CLAIM_READY,
    *,
    timeout: float,
    interval: float = DEFAULT_POLL_INTERVAL,
    sleep: Sleep = time.sleep,
    clock: Clock = time.monotonic,
) -> WaitResult:
    """Poll ``ref`` until Ready, Failed, or the deadline.

    Failed returns as soon as it is observed; the timeout is only
    spent while the resource stays Pending. A missing resource or a
    transient read error counts as Pending.
    """
    last_state = ""

    def observe() -> Readiness | None:
        nonlocal last_state
        response = client.get(ref)
        if response.not_found:
            state = "<not found>"
        elif not response.ok or response.document is None:
            logger.warning("Cannot read %s: %s", ref, response.error)
            return None
        else:
            outcome, state = rule.evaluate(response.document)
            if outcome.terminal:
                last_state = state
                return outcome

        if state != last_state:
            logger.info("%s state: %s", ref, state or "<none>")
            last_state = state
        return None

    logger.info("Waiting up to %.0fs for %s to become Ready", timeout, ref)
    outcome, elapsed, polls = poll_until(
        observe, timeout=timeout, interval=interval, sleep=sleep, clock=clock,
    )

    if outcome is None:
        logger.error("%s not Ready after %.0fs (last state %r)", ref, elapsed, last_state)
        return WaitResult(Readiness.TIMED_OUT, ref, last_state, elapsed, polls)

    if outcome is Readiness.FAILED:
        logger.error("%s reported %r after %.0fs", ref, last_state, elapsed)
    else:
        logger.info("✓ %s is %s (%.0fs)", ref, last_state, elapsed)
    return WaitResult(outcome, ref, last_state, elapsed, polls)


def wait_for_removal(
    client: ClusterClient,
    ref: ResourceRef,
    *,
    timeout: float,
    interval: float = DEFAULT_POLL_INTERVAL,
    sleep: Sleep = time.sleep,
    clock: Clock = time.monotonic,
) -> bool:
    """Poll until ``ref`` is gone. Returns False on timeout."""

    def observe() -> bool | None:
        return True if client.get(ref).not_found else None

    removed, _, _ = poll_until(
        observe, timeout=timeout, interval=interval, sleep=sleep, clock=clock,
    )
    return bool(removed)


# ═══════════════════════════════════════════════════════════════════
#  Delete
# ═══════════════════════════════════════════════════════════════════


def delete_if_exists(
    client: ClusterClient,
    ref: ResourceRef,
    *,
    timeout: float,
    ignore_errors: bool = True,
    wait: bool = True,
    interval: float = DEFAULT_POLL_INTERVAL,
    sleep: Sleep = time.sleep,
    clock: Clock = time.monotonic,
) -> OpResult:
    """Delete ``ref``; a resource that is already gone is a no-op.

    Args:
        timeout: How long to wait for the object to disappear.
        ignore_errors: Log failures and return them (default). When
            False, a failure raises ``DeletionFailed``.
        wait: Poll for removal after the delete request.

    Returns:
        OK, NOT_FOUND (nothing to do) or DELETION_FAILED.
    """
    response = client.delete(ref)

    if response.not_found:
        logger.info("%s already absent", ref)
        return OpResult(OpStatus.NOT_FOUND, ref)
    if not response.ok:
        return _deletion_failed(ref, response.error or "delete request failed", ignore_errors)

    if wait and not wait_for_removal(
        client, ref, timeout=timeout, interval=interval, sleep=sleep, clock=clock,
    ):
        return _deletion_failed(ref, f"still present after {timeout:.0f}s", ignore_errors)

    logger.info("Deleted %s", ref)
    return OpResult(OpStatus.OK, ref)


def delete_namespace(
    client: ClusterClient,
    name: str,
    *,
    timeout: float,
    ignore_errors: bool = True,
    interval: float = DEFAULT_POLL_INTERVAL,
    sleep: Sleep = time.sleep,
    clock: Clock = time.monotonic,
) -> OpResult:
    """Delete a namespace and wait for it to finish terminating."""
    return delete_if_exists(
        client,
        ResourceRef.namespace_ref(name),
        timeout=timeout,
        ignore_errors=ignore_errors,
        interval=interval,
        sleep=sleep,
        clock=clock,
    )


def _deletion_failed(ref: ResourceRef, error: str, ignore_errors: bool) -> OpResult:
    result = OpResult(OpStatus.DELETION_FAILED, ref, error=error)
    if ignore_errors:
        logger.warning("Failed to delete %s: %s", ref, error)
        return result
    logger.error("Failed to delete %s: %s", ref, error)
    raise DeletionFailed(result)
