"""
End-to-end scenario tests against the mock cluster and fake operator.
"""

import pytest

from aao_itest.adapters.mock import MockIdentity
from aao_itest.core.engine.runner import Harness, Phase, ScenarioRunner, overall_exit_code
from aao_itest.core.models.resource import KIND_ACCOUNT, KIND_SECRET, ResourceRef
from aao_itest.scenarios.byoc_credentials import ByocCredentialsScenario
from aao_itest.scenarios.custom_tags import CustomTagsConfig, CustomTagsScenario
from tests.helpers import BYOC_ACCOUNT, GENERATED_KEYS, OPERATOR_NS, b64, claim_ref


def _custom_tags(harness, **overrides):
    return CustomTagsScenario(harness, CustomTagsConfig.from_env({}, **overrides))


def _byoc(harness):
    return ByocCredentialsScenario(
        harness, ByocCredentialsScenario.build_config(harness.settings, {}),
    )


def _phase(scenario, phase):
    return ScenarioRunner(scenario).run_phase(phase).exit_code


# ═══════════════════════════════════════════════════════════════════
#  custom-tags
# ═══════════════════════════════════════════════════════════════════


class TestCustomTags:
    def test_full_run(self, harness, cluster, operator):
        scenario = _custom_tags(harness)

        assert _phase(scenario, Phase.SETUP) == 0
        ref = claim_ref("test-custom-tags-claim", "test-custom-tags")
        assert cluster.exists(ref)
        assert cluster.document(ref)["spec"]["customTags"] == scenario.config.tag_list()

        assert _phase(scenario, Phase.TEST) == 0
        assert _phase(scenario, Phase.CLEANUP) == 0
        assert not cluster.exists(ref)
        assert not cluster.exists(ResourceRef.namespace_ref("test-custom-tags"))

    def test_setup_is_idempotent(self, harness, cluster, operator):
        scenario = _custom_tags(harness)
        assert _phase(scenario, Phase.SETUP) == 0
        assert _phase(scenario, Phase.SETUP) == 0

    def test_phases_are_independent_invocations(self, harness, cluster, operator):
        """A fresh scenario object (a new process) can test what another set up."""
        assert _phase(_custom_tags(harness), Phase.SETUP) == 0
        assert _phase(_custom_tags(harness), Phase.TEST) == 0

    def test_account_value_differs(self, harness, operator):
        operator.account_tags = [
            {"key": "test-team", "value": "platform-engineering"},
            {"key": "test-environment", "value": "integration-test"},
            {"key": "test-cost-center", "value": "99999"},
        ]
        scenario = _custom_tags(harness)
        _phase(scenario, Phase.SETUP)
        assert _phase(scenario, Phase.TEST) == 2

    def test_account_without_tags(self, harness, operator):
        operator.account_tags = []
        scenario = _custom_tags(harness)
        _phase(scenario, Phase.SETUP)
        assert _phase(scenario, Phase.TEST) == 3

    def test_claim_without_tags(self, harness, cluster, operator):
        scenario = _custom_tags(harness)
        _phase(scenario, Phase.SETUP)
        ref = scenario.config.claim_ref
        doc = cluster.document(ref)
        doc["spec"]["customTags"] = []
        cluster.put(doc)

        assert _phase(scenario, Phase.TEST) == 1

    def test_claim_never_ready(self, harness, clock, operator):
        operator.claim_state = "PendingVerification"
        report = ScenarioRunner(_custom_tags(harness)).run_phase(Phase.SETUP)

        assert report.exit_code == 98
        assert clock.now - 1000.0 == pytest.approx(harness.settings.ready_timeout)

    def test_claim_failed(self, harness, clock, operator):
        operator.claim_state = "Failed"
        assert _phase(_custom_tags(harness), Phase.SETUP) == 97
        assert clock.sleeps == []

    def test_test_without_setup(self, harness):
        assert _phase(_custom_tags(harness), Phase.TEST) == 99

    def test_cleanup_without_setup_is_noop(self, harness):
        assert _phase(_custom_tags(harness), Phase.CLEANUP) == 0

    def test_cleanup_attempts_every_step(self, harness, cluster, operator):
        scenario = _custom_tags(harness)
        _phase(scenario, Phase.SETUP)
        cluster.fail("delete", scenario.config.claim_ref, "admission webhook denied")

        assert _phase(scenario, Phase.CLEANUP) == 99
        assert ResourceRef.namespace_ref("test-custom-tags") in cluster.calls("delete")

    def test_claim_creation_failure(self, harness, cluster):
        ref = claim_ref("test-custom-tags-claim", "test-custom-tags")
        cluster.fail("create", ref, "forbidden")
        assert _phase(_custom_tags(harness), Phase.SETUP) == 99

    def test_run_all(self, harness, cluster, operator):
        reports = ScenarioRunner(_custom_tags(harness)).run_all()
        assert [r.exit_code for r in reports] == [0, 0, 0]

    def test_custom_expected_tags(self, harness, operator):
        scenario = _custom_tags(harness, expected_tags={"owner": "sre"})
        assert overall_exit_code(ScenarioRunner(scenario).run_all()) == 0


# ═══════════════════════════════════════════════════════════════════
#  byoc-credentials
# ═══════════════════════════════════════════════════════════════════


class TestByocCredentials:
    def test_full_run(self, harness, cluster, identity, operator):
        scenario = _byoc(harness)

        assert _phase(scenario, Phase.SETUP) == 0
        ccs = cluster.document(scenario.config.ccs_secret_ref)
        assert ccs["stringData"]["aws_access_key_id"] == "AKIAEXAMPLEKEY000001"
        claim = cluster.document(scenario.config.claim_ref)
        assert claim["spec"]["byocAWSAccountID"] == BYOC_ACCOUNT

        assert _phase(scenario, Phase.TEST) == 0
        assert identity.lookups[-1] == GENERATED_KEYS

        assert _phase(scenario, Phase.CLEANUP) == 0
        assert not cluster.exists(scenario.config.claim_ref)

    def test_setup_waits_for_iam(self, harness, clock, operator):
        _phase(_byoc(harness), Phase.SETUP)
        assert clock.sleeps[0] == harness.settings.poll_interval

    def test_byoc_not_set_on_claim(self, harness, cluster, operator):
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        doc = cluster.document(scenario.config.claim_ref)
        doc["spec"]["byoc"] = False
        cluster.put(doc)

        assert _phase(scenario, Phase.TEST) == 1

    def test_byoc_not_set_on_account(self, harness, operator):
        operator.account_byoc = False
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        assert _phase(scenario, Phase.TEST) == 1

    def test_no_secret(self, harness, operator):
        operator.create_secret = False
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        assert _phase(scenario, Phase.TEST) == 2

    def test_missing_secret_key(self, harness, operator):
        operator.secret_data = {"aws_access_key_id": b64(GENERATED_KEYS.access_key_id)}
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        assert _phase(scenario, Phase.TEST) == 3

    def test_null_secret_key(self, harness, operator):
        operator.secret_data = {
            "aws_access_key_id": b64(GENERATED_KEYS.access_key_id),
            "aws_secret_access_key": None,
        }
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        assert _phase(scenario, Phase.TEST) == 3

    def test_empty_secret_key_is_not_functional(self, harness, operator):
        operator.secret_data = {
            "aws_access_key_id": b64(GENERATED_KEYS.access_key_id),
            "aws_secret_access_key": "",
        }
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        assert _phase(scenario, Phase.TEST) == 4

    def test_revoked_credentials(self, harness, identity, operator):
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        identity.revoke(GENERATED_KEYS.access_key_id)

        assert _phase(scenario, Phase.TEST) == 4

    def test_account_mismatch_is_unexpected(self, harness, operator):
        operator.account_id = "999999999999"
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        assert _phase(scenario, Phase.TEST) == 99

    def test_missing_account_is_unexpected(self, harness, cluster, operator):
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        account = ResourceRef(
            kind=KIND_ACCOUNT,
            name=operator.account_name(scenario.config.claim_name),
            namespace=OPERATOR_NS,
        )
        cluster.delete(account)

        assert _phase(scenario, Phase.TEST) == 99

    def test_no_profile_keys(self, cluster, settings, clock, operator):
        harness = Harness(
            cluster=cluster,
            settings=settings,
            identity=MockIdentity(),
            sleep=clock.sleep,
            clock=clock,
        )
        assert _phase(_byoc(harness), Phase.SETUP) == 5

    def test_secret_apply_failure(self, harness, cluster, operator):
        scenario = _byoc(harness)
        cluster.fail("apply", scenario.config.ccs_secret_ref, "quota exceeded")
        assert _phase(scenario, Phase.SETUP) == 5

    def test_missing_account_id(self, cluster, clock, operator):
        harness = Harness(cluster=cluster, identity=MockIdentity(), sleep=clock.sleep, clock=clock)
        assert _phase(_byoc(harness), Phase.SETUP) == 99

    def test_cleanup_ignores_ccs_secret_failure(self, harness, cluster, operator):
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        cluster.fail("delete", scenario.config.ccs_secret_ref, "forbidden")

        assert _phase(scenario, Phase.CLEANUP) == 0

    def test_cleanup_after_failed_setup(self, harness, cluster, operator):
        operator.claim_state = "Failed"
        scenario = _byoc(harness)
        assert _phase(scenario, Phase.SETUP) == 97
        cluster.fail("delete", scenario.config.claim_ref, "stuck finalizer")

        assert _phase(scenario, Phase.CLEANUP) == 99
        deleted = cluster.calls("delete")
        assert scenario.config.ccs_secret_ref in deleted
        assert ResourceRef.namespace_ref(scenario.config.namespace) in deleted

    def test_generated_secret_lives_in_claim_namespace(self, harness, cluster, operator):
        scenario = _byoc(harness)
        _phase(scenario, Phase.SETUP)
        ref = ResourceRef(kind=KIND_SECRET, name="aws", namespace=scenario.config.namespace)
        assert cluster.exists(ref)
