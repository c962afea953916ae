"""
Assertion engine — ordered, fail-fast checks over resource documents.

A scenario's test phase is a list of checks run against one source
document (usually the AccountClaim). The first failing check decides
the phase result; later checks are not evaluated. Each check logs its
subject and verdict so the run doubles as an audit trail.

Two shapes:

- field equality — ``FieldEquals``, ``FieldPresent``, ``MinCount``,
  ``TagsMatch`` compare a queried value with an expectation;
- propagation — ``Linked`` follows a name/namespace link on the
  source to a dependent resource and runs nested checks there;
  ``MatchesSource`` compares a target field with the source's.

Usage::

    engine = AssertionEngine(cluster)
    result = engine.run(claim, [
        MinCount("spec.customTags", 1, failure=Reason.NO_CUSTOM_TAGS),
        TagsMatch("spec.customTags", expected, absent_failure=..., mismatch_failure=...),
        Linked(KIND_ACCOUNT, "spec.accountLink", namespace="aws-account-operator",
               missing_failure=Reason.TAG_NOT_PROPAGATED, checks=[...]),
    ])
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from aao_itest.adapters.base import ClusterClient
from aao_itest.core.models.resource import ResourceRef
from aao_itest.core.models.results import PhaseResult
from aao_itest.core.services.query import (
    Present,
    QueryResult,
    as_text,
    count,
    decode_base64,
    is_empty,
    query,
    tag_map,
)

logger = logging.getLogger(__name__)

Document = dict[str, Any]


def _describe(result: QueryResult) -> str:
    return repr(as_text(result.value)) if isinstance(result, Present) else "<absent>"


def _decoded(result: QueryResult, decode: str | None) -> QueryResult:
    if decode is None:
        return result
    if decode == "base64":
        return decode_base64(result)
    raise ValueError(f"Unknown decoding: {decode!r}")


@dataclass
class Scope:
    """What a check can see beyond its own document."""

    engine: AssertionEngine
    source: Document | None = None


class Check(ABC):
    """One verifiable statement about a document."""

    @property
    @abstractmethod
    def subject(self) -> str:
        """Short description used in the audit log."""

    @abstractmethod
    def evaluate(self, document: Document, scope: Scope) -> PhaseResult:
        """Return success, or failure with this check's reason."""


# ═══════════════════════════════════════════════════════════════════
#  Field checks
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FieldEquals(Check):
    """Value at ``selector`` equals ``expected`` exactly.

    Comparison is on text, so ``True`` matches ``"true"`` and ``12345``
    matches ``"12345"``; string comparison is case-sensitive.
    """

    selector: str
    expected: Any
    absent_failure: Enum
    mismatch_failure: Enum | None = None
    decode: str | None = None
    label: str = ""

    @property
    def subject(self) -> str:
        return self.label or f"{self.selector} == {as_text(self.expected)!r}"

    def evaluate(self, document: Document, scope: Scope) -> PhaseResult:
        result = _decoded(query(document, self.selector), self.decode)
        if not isinstance(result, Present):
            return PhaseResult.failure(self.absent_failure, f"{self.selector} is absent")
        if as_text(result.value) != as_text(self.expected):
            return PhaseResult.failure(
                self.mismatch_failure or self.absent_failure,
                f"{self.selector}: expected {as_text(self.expected)!r}, got {_describe(result)}",
            )
        return PhaseResult.success()


@dataclass(frozen=True)
class FieldPresent(Check):
    """Value at ``selector`` exists and is not empty or null.

    With ``allow_empty`` only an absent or null value fails; an empty
    string or collection counts as present.
    """

    selector: str
    failure: Enum
    decode: str | None = None
    allow_empty: bool = False
    label: str = ""

    @property
    def subject(self) -> str:
        suffix = f" ({self.decode}-decoded)" if self.decode else ""
        return self.label or f"{self.selector} is set{suffix}"

    def evaluate(self, document: Document, scope: Scope) -> PhaseResult:
        result = _decoded(query(document, self.selector), self.decode)
        if self.allow_empty:
            if not isinstance(result, Present) or result.value is None:
                return PhaseResult.failure(self.failure, f"{self.selector} is missing")
        elif is_empty(result):
            return PhaseResult.failure(self.failure, f"{self.selector} is missing or empty")
        return PhaseResult.success()


@dataclass(frozen=True)
class MinCount(Check):
    """The list at ``selector`` has at least ``minimum`` entries."""

    selector: str
    minimum: int
    failure: Enum
    label: str = ""

    @property
    def subject(self) -> str:
        return self.label or f"{self.selector} has at least {self.minimum} entr{'y' if self.minimum == 1 else 'ies'}"

    def evaluate(self, document: Document, scope: Scope) -> PhaseResult:
        found = count(query(document, self.selector))
        if found < self.minimum:
            return PhaseResult.failure(
                self.failure, f"{self.selector} has {found} entries, need {self.minimum}",
            )
        return PhaseResult.success(f"{found} entries")


@dataclass(frozen=True)
class TagsMatch(Check):
    """Every expected key is present in a ``[{key, value}]`` list with the exact value.

    Keys are checked in the table's order and the first problem wins.
    A missing key reports ``absent_failure``; a wrong value reports
    ``mismatch_failure``. Extra actual keys are ignored.
    """

    selector: str
    expected: Mapping[str, str]
    absent_failure: Enum
    mismatch_failure: Enum
    key_field: str = "key"
    value_field: str = "value"
    label: str = ""

    @property
    def subject(self) -> str:
        return self.label or f"{self.selector} carries {len(self.expected)} expected tag(s)"

    def evaluate(self, document: Document, scope: Scope) -> PhaseResult:
        actual = tag_map(
            document, self.selector, key_field=self.key_field, value_field=self.value_field,
        )
        for key, expected in self.expected.items():
            if key not in actual:
                logger.info("  ✗ %s: not present", key)
                return PhaseResult.failure(self.absent_failure, f"tag {key!r} is missing")
            value = as_text(actual[key])
            if value != as_text(expected):
                logger.info("  ✗ %s=%s (expected %s)", key, value, expected)
                return PhaseResult.failure(
                    self.mismatch_failure,
                    f"tag {key!r}: expected {as_text(expected)!r}, got {value!r}",
                )
            logger.info("  ✓ %s=%s", key, value)
        return PhaseResult.success()


# ═══════════════════════════════════════════════════════════════════
#  Propagation
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Linked(Check):
    """Resolve a link on the source document, then check the target.

    The target's name comes from ``name_selector``; its namespace from
    ``namespace_selector`` when given, else the fixed ``namespace``
    (empty for cluster-scoped kinds). An unset link or a target that
    does not exist reports ``missing_failure``.
    """

    kind: str
    name_selector: str
    checks: Sequence[Check]
    missing_failure: Enum
    namespace_selector: str | None = None
    namespace: str = ""
    label: str = ""

    @property
    def subject(self) -> str:
        return self.label or f"linked {self.kind} via {self.name_selector}"

    def resolve(self, document: Document) -> ResourceRef | None:
        name = query(document, self.name_selector)
        if is_empty(name) or not isinstance(name, Present):
            return None
        namespace = self.namespace
        if self.namespace_selector:
            ns = query(document, self.namespace_selector)
            if is_empty(ns) or not isinstance(ns, Present):
                return None
            namespace = as_text(ns.value)
        return ResourceRef(kind=self.kind, name=as_text(name.value), namespace=namespace)

    def evaluate(self, document: Document, scope: Scope) -> PhaseResult:
        ref = self.resolve(document)
        if ref is None:
            return PhaseResult.failure(self.missing_failure, f"{self.name_selector} link is not set")

        response = scope.engine.cluster.get(ref)
        if response.not_found:
            return PhaseResult.failure(self.missing_failure, f"{ref} does not exist")
        if not response.ok or response.document is None:
            return PhaseResult.unexpected(f"cannot read {ref}: {response.error}")

        logger.info("Following link to %s", ref)
        return scope.engine.run(response.document, self.checks, source=document)


@dataclass(frozen=True)
class MatchesSource(Check):
    """A field of a linked target equals a field of the source document."""

    selector: str
    failure: Enum
    source_selector: str | None = None
    label: str = ""

    @property
    def subject(self) -> str:
        return self.label or f"{self.selector} matches source {self.source_selector or self.selector}"

    def evaluate(self, document: Document, scope: Scope) -> PhaseResult:
        if scope.source is None:
            raise ValueError("MatchesSource must run inside a Linked check")

        source_selector = self.source_selector or self.selector
        expected = query(scope.source, source_selector)
        if not isinstance(expected, Present):
            return PhaseResult.failure(self.failure, f"source {source_selector} is absent")

        actual = query(document, self.selector)
        if not isinstance(actual, Present):
            return PhaseResult.failure(self.failure, f"{self.selector} is absent")
        if as_text(actual.value) != as_text(expected.value):
            return PhaseResult.failure(
                self.failure,
                f"{self.selector}: expected {_describe(expected)}, got {_describe(actual)}",
            )
        return PhaseResult.success()


# ═══════════════════════════════════════════════════════════════════
#  Arbitrary predicate
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Predicate(Check):
    """Run ``fn(document)`` — for checks that need an external call.

    ``fn`` returns a ``PhaseResult``, or a bool that maps False onto
    ``failure``.
    """

    label: str
    fn: Callable[[Document], PhaseResult | bool]
    failure: Enum | None = None

    @property
    def subject(self) -> str:
        return self.label

    def evaluate(self, document: Document, scope: Scope) -> PhaseResult:
        outcome = self.fn(document)
        if isinstance(outcome, PhaseResult):
            return outcome
        if outcome:
            return PhaseResult.success()
        if self.failure is None:
            return PhaseResult.unexpected(f"{self.label} returned False")
        return PhaseResult.failure(self.failure, f"{self.label} did not hold")


# ═══════════════════════════════════════════════════════════════════
#  Engine
# ═══════════════════════════════════════════════════════════════════


@dataclass
class AssertionEngine:
    """Runs checks in order and stops at the first failure."""

    cluster: ClusterClient
    evaluated: list[str] = field(default_factory=list)

    def run(
        self,
        document: Document,
        checks: Sequence[Check],
        *,
        source: Document | None = None,
    ) -> PhaseResult:
        scope = Scope(engine=self, source=source)
        for check in checks:
            self.evaluated.append(check.subject)
            logger.info("Checking %s", check.subject)
            result = check.evaluate(document, scope)
            if not result.ok:
                logger.error("✗ %s: %s", check.subject, result.detail)
                return result
            logger.info("✓ %s", check.subject)
        return PhaseResult.success()
