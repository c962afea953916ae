"""
Tests for the CLI — exit codes at the process boundary.

Collaborators are injected through ``ctx.obj`` factories so no cluster
or AWS account is needed; logging setup is patched out so the root
logger is left alone.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from aao_itest import __version__
from aao_itest.core.services.preflight import KIND_CRD, REQUIRED_CRDS
from aao_itest.main import cli
from tests.helpers import GENERATED_KEYS, claim_ref

HARNESS_ENV = {
    "ACCOUNT_CLAIM_READY_TIMEOUT": "30",
    "RESOURCE_DELETE_TIMEOUT": "10",
    "SLEEP_INTERVAL": "1",
    "SKIP_PREFLIGHT_CHECKS": "true",
    "NAMESPACE": "aws-account-operator",
    "OSD_STAGING_2_AWS_ACCOUNT_ID": "123456789012",
}


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    """Run from an empty directory with a known environment."""
    monkeypatch.chdir(tmp_path)
    for var in ("CUSTOM_TAGS_CLAIM_NAME", "CUSTOM_TAGS_NAMESPACE_NAME",
                "BYOC_CLAIM_NAME", "BYOC_NAMESPACE_NAME", "AAO_ITEST_CLI"):
        monkeypatch.delenv(var, raising=False)
    for var, value in HARNESS_ENV.items():
        monkeypatch.setenv(var, value)
    with patch("aao_itest.main.setup_logging"):
        yield


@pytest.fixture
def obj(cluster, identity, clock):
    return {
        "cluster_factory": lambda _settings: cluster,
        "identity_factory": lambda _settings: identity,
        "sleep": clock.sleep,
        "clock": clock,
    }


def _invoke(args, obj=None):
    return CliRunner().invoke(cli, args, obj=obj)


class TestUsage:
    def test_version(self):
        result = _invoke(["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_command_exits_64(self):
        assert _invoke([]).exit_code == 64

    def test_scenario_without_verb_exits_64(self):
        result = _invoke(["custom-tags"])
        assert result.exit_code == 64
        assert "setup" in result.output

    def test_unknown_verb_exits_64(self):
        assert _invoke(["custom-tags", "deploy"]).exit_code == 64

    def test_unknown_scenario_exits_64(self):
        assert _invoke(["nope", "setup"]).exit_code == 64

    def test_unknown_option_exits_64(self):
        assert _invoke(["--colour"]).exit_code == 64

    def test_bad_explain_argument_exits_64(self):
        assert _invoke(["byoc-credentials", "explain", "four"]).exit_code == 64


class TestList:
    def test_list(self):
        result = _invoke(["list"])
        assert result.exit_code == 0
        assert "custom-tags" in result.output
        assert "byoc-credentials" in result.output

    def test_list_json(self):
        result = _invoke(["list", "--json"])
        payload = json.loads(result.output)
        assert payload["custom-tags"]["codes"]["3"] == "Custom tags did not propagate to Account CR."


class TestExplain:
    def test_explain(self):
        result = _invoke(["byoc-credentials", "explain", "4"])
        assert result.exit_code == 0
        assert result.output.strip() == "AWS credentials are not functional."

    def test_explain_shared_code(self):
        result = _invoke(["custom-tags", "explain", "98"])
        assert "did not become Ready" in result.output

    @pytest.mark.parametrize("code", ["0", "42"])
    def test_explain_unknown_is_empty(self, code):
        result = _invoke(["custom-tags", "explain", code])
        assert result.exit_code == 0
        assert result.output.strip() == ""

    def test_codes(self):
        result = _invoke(["custom-tags", "codes", "--json"])
        assert set(json.loads(result.output)) == {"1", "2", "3", "4", "97", "98", "99"}


class TestPhases:
    def test_run(self, obj, operator):
        assert _invoke(["custom-tags", "run"], obj).exit_code == 0

    def test_each_phase(self, obj, operator):
        for verb in ("setup", "test", "cleanup"):
            assert _invoke(["custom-tags", verb], obj).exit_code == 0

    def test_phase_report_json(self, obj, operator):
        result = _invoke(["custom-tags", "setup", "--json"], obj)
        report = json.loads(result.output[result.output.index("{"):])
        assert report["phase"] == "setup"
        assert report["exit_code"] == 0

    def test_test_failure_code(self, obj, operator):
        operator.account_tags = []
        _invoke(["custom-tags", "setup"], obj)
        assert _invoke(["custom-tags", "test"], obj).exit_code == 3

    def test_ready_timeout_code(self, obj, operator):
        operator.claim_state = None
        assert _invoke(["custom-tags", "setup"], obj).exit_code == 98

    def test_byoc_revoked(self, obj, identity, operator):
        identity.revoke(GENERATED_KEYS.access_key_id)
        assert _invoke(["byoc-credentials", "run"], obj).exit_code == 4

    def test_scenario_env_is_read(self, obj, cluster, operator, monkeypatch):
        monkeypatch.setenv("CUSTOM_TAGS_CLAIM_NAME", "ci-claim")
        monkeypatch.setenv("CUSTOM_TAGS_NAMESPACE_NAME", "ci-ns")
        assert _invoke(["custom-tags", "setup"], obj).exit_code == 0
        assert cluster.exists(claim_ref("ci-claim", "ci-ns"))

    def test_invalid_settings_exit_99(self, obj, monkeypatch):
        monkeypatch.setenv("SLEEP_INTERVAL", "soon")
        assert _invoke(["custom-tags", "setup"], obj).exit_code == 99

    def test_config_file(self, obj, operator, tmp_path, monkeypatch):
        monkeypatch.delenv("SKIP_PREFLIGHT_CHECKS")
        (tmp_path / "custom.yml").write_text("settings:\n  skip_preflight: true\n")
        result = _invoke(["--config", str(tmp_path / "custom.yml"), "custom-tags", "setup"], obj)
        assert result.exit_code == 0

    @pytest.mark.parametrize("body", [b"settings:\n", b"settings:\n  cli: \xff\n"])
    def test_malformed_config_file_exit_99(self, obj, cluster, tmp_path, body):
        (tmp_path / "itest.yml").write_bytes(body)
        result = _invoke(["custom-tags", "setup"], obj)
        assert result.exit_code == 99
        assert cluster.calls("create") == []


class TestPreflightGate:
    def test_missing_crds_exit_99(self, obj, cluster, monkeypatch):
        monkeypatch.setenv("SKIP_PREFLIGHT_CHECKS", "false")
        result = _invoke(["custom-tags", "setup"], obj)
        assert result.exit_code == 99
        assert cluster.calls("create") == []

    def test_passing_preflight(self, obj, cluster, operator, monkeypatch):
        monkeypatch.setenv("SKIP_PREFLIGHT_CHECKS", "false")
        for crd in REQUIRED_CRDS:
            cluster.put({"kind": KIND_CRD, "metadata": {"name": crd}})
        assert _invoke(["custom-tags", "setup"], obj).exit_code == 0
