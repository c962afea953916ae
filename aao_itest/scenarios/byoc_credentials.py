"""
byoc-credentials — CCS credentials reach the claim's credential secret.

Setup creates a namespace and a CCS secret holding the admin user's
keys, waits for IAM to pick the keys up, then creates a BYOC
AccountClaim and waits for it to become Ready. Test checks the claim's
BYOC fields, the generated credential secret and its keys (including
a live STS call), and the linked Account.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import StrEnum

from aao_itest.adapters.base import AccessKeyPair
from aao_itest.core.config.settings import HarnessSettings, ScenarioSettings
from aao_itest.core.engine.runner import Scenario
from aao_itest.core.models.resource import (
    KIND_ACCOUNT,
    KIND_ACCOUNT_CLAIM,
    KIND_SECRET,
    ResourceRef,
)
from aao_itest.core.models.results import CommonReason, PhaseResult
from aao_itest.core.services.assertions import (
    AssertionEngine,
    FieldEquals,
    FieldPresent,
    Linked,
    MatchesSource,
    Predicate,
)
from aao_itest.core.services.exit_codes import ExitCodeRegistry
from aao_itest.core.services.orchestrator import (
    apply_document,
    create_if_not_exists,
    create_namespace,
)
from aao_itest.core.services.query import Present, decode_base64, query
from aao_itest.core.services.teardown import Teardown
from aao_itest.core.services.templates import TemplateError, render_object

logger = logging.getLogger(__name__)

CLAIM_TEMPLATE = "ccs_accountclaim"
SECRET_TEMPLATE = "byoc_secret"

ACCESS_KEY_FIELD = "aws_access_key_id"
SECRET_KEY_FIELD = "aws_secret_access_key"


class ByocReason(StrEnum):
    BYOC_NOT_SET = "byoc_not_set"
    NO_SECRET = "no_secret"
    MISSING_CRED_KEYS = "missing_cred_keys"
    INVALID_CREDENTIALS = "invalid_credentials"
    SECRET_CREATION_FAILED = "secret_creation_failed"


REGISTRY = ExitCodeRegistry(
    "byoc-credentials",
    {
        ByocReason.BYOC_NOT_SET: (1, "AccountClaim does not have byoc=true."),
        ByocReason.NO_SECRET: (2, "AWS credential secret was not created."),
        ByocReason.MISSING_CRED_KEYS: (3, "Secret missing required credential keys."),
        ByocReason.INVALID_CREDENTIALS: (4, "AWS credentials are not functional."),
        ByocReason.SECRET_CREATION_FAILED: (5, "Failed to create CCS secret."),
    },
)


class ByocConfig(ScenarioSettings):
    ENV = {
        "claim_name": "BYOC_CLAIM_NAME",
        "namespace": "BYOC_NAMESPACE_NAME",
        "account_id": "OSD_STAGING_2_AWS_ACCOUNT_ID",
    }

    claim_name: str = "test-byoc-claim"
    namespace: str = "test-byoc"
    account_id: str = ""
    ccs_secret_name: str = "byoc"

    @property
    def claim_ref(self) -> ResourceRef:
        return ResourceRef(kind=KIND_ACCOUNT_CLAIM, name=self.claim_name, namespace=self.namespace)

    @property
    def ccs_secret_ref(self) -> ResourceRef:
        return ResourceRef(kind=KIND_SECRET, name=self.ccs_secret_name, namespace=self.namespace)


class ByocCredentialsScenario(Scenario):
    name = "byoc-credentials"
    description = "CCS credentials propagate to a working awsCredentialSecret."
    registry = REGISTRY
    config_model = ByocConfig

    config: ByocConfig

    @classmethod
    def build_config(
        cls,
        settings: HarnessSettings,
        environ: Mapping[str, str] | None = None,
    ) -> ByocConfig:
        return ByocConfig.from_env(environ, defaults={"account_id": settings.byoc_account_id})

    def _require_account_id(self) -> PhaseResult | None:
        if not self.config.account_id:
            return PhaseResult.unexpected("OSD_STAGING_2_AWS_ACCOUNT_ID is not set")
        return None

    # ── Setup ───────────────────────────────────────────────────

    def setup(self) -> PhaseResult:
        cfg = self.config
        missing = self._require_account_id()
        if missing:
            return missing

        created = create_namespace(self.cluster, cfg.namespace)
        if not created.ok:
            return PhaseResult.unexpected(f"namespace {cfg.namespace}: {created.error}")

        secret_result = self._create_ccs_secret()
        if not secret_result.ok:
            return secret_result

        logger.info("Waiting %.0fs for AWS to propagate IAM credentials", self.settings.poll_interval)
        self.harness.sleep(self.settings.poll_interval)

        try:
            claim = render_object(
                CLAIM_TEMPLATE,
                {
                    "NAME": cfg.claim_name,
                    "NAMESPACE": cfg.namespace,
                    "CCS_ACCOUNT_ID": cfg.account_id,
                    "BYOC_SECRET_NAME": cfg.ccs_secret_name,
                },
            )
        except TemplateError as e:
            return PhaseResult.unexpected(str(e))

        created = create_if_not_exists(self.cluster, claim)
        if not created.ok:
            return PhaseResult.unexpected(f"AccountClaim {cfg.claim_name}: {created.error}")

        return self.wait_ready(cfg.claim_ref)

    def _create_ccs_secret(self) -> PhaseResult:
        cfg = self.config
        identity = self.harness.identity
        if identity is None:
            return PhaseResult.failure(ByocReason.SECRET_CREATION_FAILED, "no identity client configured")

        keys = identity.profile_keys(self.settings.aws_profile)
        if keys is None:
            return PhaseResult.failure(
                ByocReason.SECRET_CREATION_FAILED,
                f"no access keys for AWS profile {self.settings.aws_profile!r}",
            )
        logger.info("Creating CCS secret %s with key %s", cfg.ccs_secret_ref, keys.masked_id)

        try:
            secret = render_object(
                SECRET_TEMPLATE,
                {
                    "NAME": cfg.ccs_secret_name,
                    "NAMESPACE": cfg.namespace,
                    "AWS_ACCESS_KEY_ID": keys.access_key_id,
                    "AWS_SECRET_ACCESS_KEY": keys.secret_access_key,
                },
            )
        except TemplateError as e:
            return PhaseResult.failure(ByocReason.SECRET_CREATION_FAILED, str(e))

        applied = apply_document(self.cluster, secret)
        if not applied.ok:
            return PhaseResult.failure(ByocReason.SECRET_CREATION_FAILED, applied.error)
        return PhaseResult.success()

    # ── Test ────────────────────────────────────────────────────

    def _credentials_live(self, secret: dict) -> PhaseResult:
        access_key = decode_base64(query(secret, f"data.{ACCESS_KEY_FIELD}"))
        secret_key = decode_base64(query(secret, f"data.{SECRET_KEY_FIELD}"))
        keys = AccessKeyPair(
            access_key_id=access_key.value if isinstance(access_key, Present) else "",
            secret_access_key=secret_key.value if isinstance(secret_key, Present) else "",
        )
        identity = self.harness.identity
        if identity is None:
            return PhaseResult.unexpected("no identity client configured")

        logger.info("Calling STS GetCallerIdentity with %s", keys.masked_id)
        result = identity.caller_identity(keys)
        if not result.ok:
            return PhaseResult.failure(ByocReason.INVALID_CREDENTIALS, result.error)

        logger.info("Caller identity account: %s", result.account)
        if result.account != self.config.account_id:
            logger.warning(
                "STS account (%s) doesn't match the BYOC account (%s); "
                "this can be expected for CCS",
                result.account, self.config.account_id,
            )
        return PhaseResult.success()

    def checks(self) -> list:
        cfg = self.config
        return [
            FieldEquals("spec.byoc", True, absent_failure=ByocReason.BYOC_NOT_SET,
                        label="AccountClaim spec.byoc is true"),
            FieldEquals("spec.byocAWSAccountID", cfg.account_id,
                        absent_failure=CommonReason.UNEXPECTED_ERROR,
                        label=f"AccountClaim spec.byocAWSAccountID is {cfg.account_id}"),
            Linked(
                KIND_SECRET,
                "spec.awsCredentialSecret.name",
                namespace_selector="spec.awsCredentialSecret.namespace",
                missing_failure=ByocReason.NO_SECRET,
                label="AWS credential secret",
                checks=[
                    FieldPresent(f"data.{ACCESS_KEY_FIELD}", ByocReason.MISSING_CRED_KEYS, allow_empty=True),
                    FieldPresent(f"data.{SECRET_KEY_FIELD}", ByocReason.MISSING_CRED_KEYS, allow_empty=True),
                    FieldPresent(f"data.{ACCESS_KEY_FIELD}", ByocReason.INVALID_CREDENTIALS, decode="base64"),
                    FieldPresent(f"data.{SECRET_KEY_FIELD}", ByocReason.INVALID_CREDENTIALS, decode="base64"),
                    Predicate("credentials accepted by STS", self._credentials_live),
                ],
            ),
            Linked(
                KIND_ACCOUNT,
                "spec.accountLink",
                namespace=self.settings.operator_namespace,
                missing_failure=CommonReason.UNEXPECTED_ERROR,
                label="linked Account",
                checks=[
                    FieldEquals("spec.byoc", True, absent_failure=ByocReason.BYOC_NOT_SET,
                                label="Account spec.byoc is true"),
                    MatchesSource("spec.awsAccountID", CommonReason.UNEXPECTED_ERROR,
                                  source_selector="spec.byocAWSAccountID"),
                ],
            ),
        ]

    def test(self) -> PhaseResult:
        missing = self._require_account_id()
        if missing:
            return missing
        claim = self.fetch(self.config.claim_ref)
        if claim is None:
            return PhaseResult.unexpected(f"cannot read {self.config.claim_ref}")
        return AssertionEngine(self.cluster).run(claim, self.checks())

    # ── Cleanup ─────────────────────────────────────────────────

    def cleanup(self) -> PhaseResult:
        cfg = self.config
        teardown = Teardown()
        teardown.add(f"delete AccountClaim {cfg.claim_name}", lambda: self.delete(cfg.claim_ref))
        teardown.add(
            f"delete CCS secret {cfg.ccs_secret_name}",
            lambda: self.delete(cfg.ccs_secret_ref, wait=False),
            counted=False,
        )
        teardown.add(
            f"delete namespace {cfg.namespace}",
            lambda: self.delete(ResourceRef.namespace_ref(cfg.namespace)),
        )
        return teardown.run()
