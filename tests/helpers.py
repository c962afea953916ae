"""
Test helpers — fake clock, a fake operator, and shared constants.

Imported by conftest and by test modules that need the constants.
"""

from __future__ import annotations

import base64
import copy
from typing import Any

from aao_itest.adapters.base import AccessKeyPair
from aao_itest.adapters.mock import MockCluster
from aao_itest.core.models.resource import (
    KIND_ACCOUNT,
    KIND_ACCOUNT_CLAIM,
    KIND_SECRET,
    ResourceRef,
)

OPERATOR_NS = "aws-account-operator"
BYOC_ACCOUNT = "123456789012"
CCS_KEYS = AccessKeyPair("AKIAEXAMPLEKEY000001", "ccs-secret-value")
GENERATED_KEYS = AccessKeyPair("AKIAGENERATEDKEY0001", "generated-secret-value")


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


class FakeOperator:
    """Reacts to AccountClaim creation the way the operator would.

    Marks the claim Ready, links an Account in the operator namespace
    that copies the claim's tags, and for BYOC claims writes the
    generated credential secret.
    """

    def __init__(self, cluster: MockCluster):
        self.cluster = cluster
        self.claim_state: str | None = "Ready"
        self.account_tags: list[dict[str, Any]] | None = None  # None = copy claim's
        self.account_byoc: bool | None = None  # None = copy claim's
        self.account_id: str | None = None  # None = copy claim's byocAWSAccountID
        self.secret_data: dict[str, str] | None = None  # None = generated keys
        self.create_secret = True
        cluster.on_create(KIND_ACCOUNT_CLAIM, self.react)

    def account_name(self, claim_name: str) -> str:
        return f"{claim_name}-account"

    def react(self, cluster: MockCluster, claim: dict[str, Any]) -> None:
        spec = claim.setdefault("spec", {})
        name = claim["metadata"]["name"]
        namespace = claim["metadata"]["namespace"]
        account_name = self.account_name(name)

        spec["accountLink"] = account_name
        if self.claim_state is not None:
            claim["status"] = {"state": self.claim_state}
        cluster.put(claim)

        account_spec: dict[str, Any] = {
            "customTags": copy.deepcopy(
                self.account_tags if self.account_tags is not None else spec.get("customTags", [])
            ),
            "byoc": self.account_byoc if self.account_byoc is not None else bool(spec.get("byoc")),
            "awsAccountID": self.account_id
            if self.account_id is not None
            else spec.get("byocAWSAccountID", "000000000000"),
        }
        cluster.put({
            "apiVersion": "aws.managed.openshift.io/v1alpha1",
            "kind": KIND_ACCOUNT,
            "metadata": {"name": account_name, "namespace": OPERATOR_NS},
            "spec": account_spec,
        })

        secret_ref = spec.get("awsCredentialSecret") or {}
        if spec.get("byoc") and self.create_secret and secret_ref:
            data = self.secret_data
            if data is None:
                data = {
                    "aws_access_key_id": b64(GENERATED_KEYS.access_key_id),
                    "aws_secret_access_key": b64(GENERATED_KEYS.secret_access_key),
                }
            cluster.put({
                "apiVersion": "v1",
                "kind": KIND_SECRET,
                "metadata": {
                    "name": secret_ref["name"],
                    "namespace": secret_ref.get("namespace", namespace),
                },
                "data": data,
            })


def claim_ref(name: str, namespace: str) -> ResourceRef:
    return ResourceRef(kind=KIND_ACCOUNT_CLAIM, name=name, namespace=namespace)
