"""
Resource references — how the harness names objects in the cluster.

A reference is the (kind, name, namespace) triple the control plane
understands. Cluster-scoped objects (Namespace) carry an empty
namespace.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

# ── Kinds the harness touches ───────────────────────────────────

KIND_ACCOUNT_CLAIM = "AccountClaim"
KIND_ACCOUNT = "Account"
KIND_SECRET = "Secret"
KIND_NAMESPACE = "Namespace"


class ResourceRef(BaseModel):
    """Identity of a cluster-managed object."""

    model_config = ConfigDict(frozen=True)

    kind: str
    name: str
    namespace: str = ""

    @property
    def cluster_scoped(self) -> bool:
        return not self.namespace

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> ResourceRef:
        """Build a reference from a manifest's kind and metadata."""
        metadata = document.get("metadata") or {}
        return cls(
            kind=str(document.get("kind", "")),
            name=str(metadata.get("name", "")),
            namespace=str(metadata.get("namespace", "") or ""),
        )

    @classmethod
    def namespace_ref(cls, name: str) -> ResourceRef:
        return cls(kind=KIND_NAMESPACE, name=name)

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.name} (namespace {self.namespace})"
        return f"{self.kind}/{self.name}"


def namespace_document(name: str) -> dict[str, Any]:
    """Manifest for a plain Namespace."""
    return {
        "apiVersion": "v1",
        "kind": KIND_NAMESPACE,
        "metadata": {"name": name},
    }
