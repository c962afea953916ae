"""
Pre-flight checks — is the environment fit to run a scenario at all?

Run before setup / test / cleanup unless ``skip_preflight`` is set.
A failing check means the harness cannot say anything about the
operator, so the result is always the shared unexpected-error reason.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from aao_itest.adapters.base import ClusterClient
from aao_itest.core.models.resource import ResourceRef
from aao_itest.core.models.results import PhaseResult

logger = logging.getLogger(__name__)

KIND_CRD = "CustomResourceDefinition"

REQUIRED_CRDS = (
    "accountclaims.aws.managed.openshift.io",
    "accounts.aws.managed.openshift.io",
)


@dataclass(frozen=True)
class PreflightCheck:
    description: str
    probe: Callable[[], str | None]  # error message, or None when fine


def _cli_available(cluster: ClusterClient) -> str | None:
    info = cluster.available()
    if not info.get("available"):
        return f"{cluster.name} CLI is not installed or not on PATH"
    logger.debug("%s version: %s", cluster.name, info.get("version"))
    return None


def _cluster_reachable(cluster: ClusterClient) -> str | None:
    response = cluster.whoami()
    if not response.ok:
        return f"cluster is not reachable: {response.error}"
    return None


def _resource_exists(cluster: ClusterClient, ref: ResourceRef) -> str | None:
    response = cluster.get(ref)
    if response.not_found:
        return f"{ref} does not exist"
    if not response.ok:
        return f"cannot read {ref}: {response.error}"
    return None


def default_checks(cluster: ClusterClient, operator_namespace: str) -> list[PreflightCheck]:
    """CLI present, cluster reachable, operator namespace and CRDs installed."""
    checks = [
        PreflightCheck("CLI available", lambda: _cli_available(cluster)),
        PreflightCheck("cluster reachable", lambda: _cluster_reachable(cluster)),
        PreflightCheck(
            f"operator namespace {operator_namespace}",
            lambda: _resource_exists(cluster, ResourceRef.namespace_ref(operator_namespace)),
        ),
    ]
    for crd in REQUIRED_CRDS:
        ref = ResourceRef(kind=KIND_CRD, name=crd)
        checks.append(
            PreflightCheck(f"CRD {crd}", lambda ref=ref: _resource_exists(cluster, ref))
        )
    return checks


def run_preflight(checks: list[PreflightCheck]) -> PhaseResult:
    """Run checks in order; the first failure stops the run."""
    for check in checks:
        error = check.probe()
        if error:
            logger.error("Pre-flight check failed: %s: %s", check.description, error)
            return PhaseResult.unexpected(f"pre-flight: {error}")
        logger.debug("Pre-flight ok: %s", check.description)
    logger.info("Pre-flight checks passed")
    return PhaseResult.success()
