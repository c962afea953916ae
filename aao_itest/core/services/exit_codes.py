"""
Exit code registry — reason enums become integers only here.

Each scenario declares ``reason → (code, explanation)``. The shared
reasons (unexpected error, readiness timeout, resource failed) are
merged into every registry so no phase can produce a code without an
explanation.

    0   success (never registered)
    1…  scenario-specific reasons
    97  resource reported a Failed state
    98  resource did not become Ready in time
    99  unexpected error (infrastructure, malformed response, cleanup)
    64  usage error (CLI only, not a test outcome)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum

from aao_itest.core.models.results import CommonReason, PhaseResult

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_USAGE = 64

SHARED_CODES: dict[Enum, tuple[int, str]] = {
    CommonReason.RESOURCE_FAILED: (97, "A resource reported a Failed state before becoming Ready."),
    CommonReason.READY_TIMEOUT: (98, "A resource did not become Ready before the timeout."),
    CommonReason.UNEXPECTED_ERROR: (99, "An unexpected error occurred (cluster, cloud API or cleanup)."),
}

UNEXPECTED_ERROR_CODE = SHARED_CODES[CommonReason.UNEXPECTED_ERROR][0]


class RegistryError(ValueError):
    """Raised for an invalid registry declaration."""


class ExitCodeRegistry:
    """Immutable reason → code mapping for one scenario.

    Raises:
        RegistryError: If a code is 0, the usage code, used twice, or
            collides with a shared code.
    """

    def __init__(self, scenario: str, entries: Mapping[Enum, tuple[int, str]]):
        self.scenario = scenario
        self._by_reason: dict[Enum, tuple[int, str]] = {}
        self._by_code: dict[int, str] = {}

        shared_codes = {code for code, _ in SHARED_CODES.values()}
        for reason, (code, text) in entries.items():
            if code in (EXIT_SUCCESS, EXIT_USAGE):
                raise RegistryError(f"{scenario}: code {code} is reserved ({reason})")
            if code in shared_codes:
                raise RegistryError(f"{scenario}: code {code} collides with a shared code ({reason})")
            if code in self._by_code:
                raise RegistryError(f"{scenario}: code {code} registered twice ({reason})")
            if not 0 < code < 256:
                raise RegistryError(f"{scenario}: code {code} is not a valid exit status")
            if not text:
                raise RegistryError(f"{scenario}: code {code} has no explanation")
            self._register(reason, code, text)

        for reason, (code, text) in SHARED_CODES.items():
            self._register(reason, code, text)

    def _register(self, reason: Enum, code: int, text: str) -> None:
        self._by_reason[reason] = (code, text)
        self._by_code[code] = text

    def code_for(self, reason: Enum) -> int:
        """Integer for ``reason``; unregistered reasons fall back to 99."""
        entry = self._by_reason.get(reason)
        if entry is None:
            logger.error(
                "%s: reason %r has no registered exit code, reporting %d",
                self.scenario, reason, UNEXPECTED_ERROR_CODE,
            )
            return UNEXPECTED_ERROR_CODE
        return entry[0]

    def exit_code(self, result: PhaseResult) -> int:
        """Serialize a phase result to the process exit status."""
        if result.ok or result.reason is None:
            return EXIT_SUCCESS
        return self.code_for(result.reason)

    def explain(self, code: int) -> str:
        """Explanation for ``code``; empty for 0 and unknown codes."""
        return self._by_code.get(code, "")

    def entries(self) -> list[tuple[int, str]]:
        """All (code, explanation) pairs in code order."""
        return sorted(self._by_code.items())

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    def __repr__(self) -> str:
        return f"<ExitCodeRegistry {self.scenario} codes={[c for c, _ in self.entries()]}>"
