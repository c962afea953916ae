"""Bundled integration-test scenarios, keyed by CLI name."""

from __future__ import annotations

from aao_itest.core.engine.runner import Scenario
from aao_itest.scenarios.byoc_credentials import ByocCredentialsScenario
from aao_itest.scenarios.custom_tags import CustomTagsScenario

SCENARIOS: dict[str, type[Scenario]] = {
    CustomTagsScenario.name: CustomTagsScenario,
    ByocCredentialsScenario.name: ByocCredentialsScenario,
}

__all__ = ["SCENARIOS", "ByocCredentialsScenario", "CustomTagsScenario"]
