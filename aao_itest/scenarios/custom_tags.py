"""
custom-tags — custom tags on an AccountClaim reach its Account.

Setup creates a namespace and an AccountClaim carrying three custom
tags, then waits for the claim to become Ready. Test checks the tags
on the claim and on the Account it links to. Cleanup removes the
claim and the namespace.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType

from pydantic import field_validator

from aao_itest.core.config.settings import ScenarioSettings
from aao_itest.core.engine.runner import Scenario
from aao_itest.core.models.resource import KIND_ACCOUNT, KIND_ACCOUNT_CLAIM, ResourceRef
from aao_itest.core.models.results import PhaseResult
from aao_itest.core.services.assertions import AssertionEngine, Linked, MinCount, TagsMatch
from aao_itest.core.services.exit_codes import ExitCodeRegistry
from aao_itest.core.services.orchestrator import create_if_not_exists, create_namespace
from aao_itest.core.services.teardown import Teardown
from aao_itest.core.services.templates import TemplateError, render_object

logger = logging.getLogger(__name__)

TEMPLATE = "customtags_accountclaim"

DEFAULT_EXPECTED_TAGS: Mapping[str, str] = MappingProxyType({
    "test-team": "platform-engineering",
    "test-environment": "integration-test",
    "test-cost-center": "12345",
})


class CustomTagsReason(StrEnum):
    NO_CUSTOM_TAGS = "no_custom_tags"
    TAG_MISMATCH = "tag_mismatch"
    TAG_NOT_PROPAGATED = "tag_not_propagated"
    INCORRECT_TAG_VALUE = "incorrect_tag_value"


REGISTRY = ExitCodeRegistry(
    "custom-tags",
    {
        CustomTagsReason.NO_CUSTOM_TAGS: (1, "AccountClaim does not have customTags set."),
        CustomTagsReason.TAG_MISMATCH: (2, "Custom tags do not match expected values."),
        CustomTagsReason.TAG_NOT_PROPAGATED: (3, "Custom tags did not propagate to Account CR."),
        CustomTagsReason.INCORRECT_TAG_VALUE: (4, "Tag value does not match expected value."),
    },
)


class CustomTagsConfig(ScenarioSettings):
    ENV = {
        "claim_name": "CUSTOM_TAGS_CLAIM_NAME",
        "namespace": "CUSTOM_TAGS_NAMESPACE_NAME",
    }

    claim_name: str = "test-custom-tags-claim"
    namespace: str = "test-custom-tags"
    expected_tags: Mapping[str, str] = DEFAULT_EXPECTED_TAGS

    @field_validator("expected_tags")
    @classmethod
    def _read_only(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(v))

    @property
    def claim_ref(self) -> ResourceRef:
        return ResourceRef(kind=KIND_ACCOUNT_CLAIM, name=self.claim_name, namespace=self.namespace)

    def tag_list(self) -> list[dict[str, str]]:
        return [{"key": k, "value": v} for k, v in self.expected_tags.items()]


class CustomTagsScenario(Scenario):
    name = "custom-tags"
    description = "Custom tags on an AccountClaim are applied and propagate to the Account."
    registry = REGISTRY
    config_model = CustomTagsConfig

    config: CustomTagsConfig

    def setup(self) -> PhaseResult:
        cfg = self.config

        created = create_namespace(self.cluster, cfg.namespace)
        if not created.ok:
            return PhaseResult.unexpected(f"namespace {cfg.namespace}: {created.error}")

        try:
            claim = render_object(
                TEMPLATE,
                {
                    "NAME": cfg.claim_name,
                    "NAMESPACE": cfg.namespace,
                    "CUSTOM_TAGS": json.dumps(cfg.tag_list()),
                },
            )
        except TemplateError as e:
            return PhaseResult.unexpected(str(e))

        created = create_if_not_exists(self.cluster, claim)
        if not created.ok:
            return PhaseResult.unexpected(f"AccountClaim {cfg.claim_name}: {created.error}")

        return self.wait_ready(cfg.claim_ref)

    def checks(self) -> list:
        """Claim tags first, then the same tags on the linked Account."""
        expected = self.config.expected_tags
        return [
            MinCount("spec.customTags", 1, failure=CustomTagsReason.NO_CUSTOM_TAGS,
                     label="AccountClaim has custom tags"),
            TagsMatch(
                "spec.customTags",
                expected,
                absent_failure=CustomTagsReason.NO_CUSTOM_TAGS,
                mismatch_failure=CustomTagsReason.INCORRECT_TAG_VALUE,
                label="AccountClaim tag values",
            ),
            Linked(
                KIND_ACCOUNT,
                "spec.accountLink",
                namespace=self.settings.operator_namespace,
                missing_failure=CustomTagsReason.TAG_NOT_PROPAGATED,
                label="tags propagated to Account",
                checks=[
                    MinCount("spec.customTags", 1, failure=CustomTagsReason.TAG_NOT_PROPAGATED,
                             label="Account has custom tags"),
                    TagsMatch(
                        "spec.customTags",
                        expected,
                        absent_failure=CustomTagsReason.TAG_NOT_PROPAGATED,
                        mismatch_failure=CustomTagsReason.TAG_MISMATCH,
                        label="Account tag values",
                    ),
                ],
            ),
        ]

    def test(self) -> PhaseResult:
        claim = self.fetch(self.config.claim_ref)
        if claim is None:
            return PhaseResult.unexpected(f"cannot read {self.config.claim_ref}")
        return AssertionEngine(self.cluster).run(claim, self.checks())

    def cleanup(self) -> PhaseResult:
        cfg = self.config
        teardown = Teardown()
        teardown.add(f"delete AccountClaim {cfg.claim_name}", lambda: self.delete(cfg.claim_ref))
        teardown.add(
            f"delete namespace {cfg.namespace}",
            lambda: self.delete(ResourceRef.namespace_ref(cfg.namespace)),
        )
        return teardown.run()
