"""
Adapter base — the contracts between the harness and external systems.

Two collaborators sit behind these interfaces:

- the cluster control plane (get / create / apply / delete of
  declarative resources), and
- the cloud identity API (is this access key pair live?).

Adapters NEVER raise for an expected failure. Everything comes back
as a ``ClusterResponse`` or ``IdentityResult``; callers branch on the
status.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from aao_itest.core.models.resource import ResourceRef


class ResponseStatus(StrEnum):
    """What the control plane said about a request."""

    OK = "ok"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    ERROR = "error"


@dataclass
class ClusterResponse:
    """Result of one control-plane call."""

    status: ResponseStatus
    document: dict[str, Any] | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ResponseStatus.OK

    @property
    def not_found(self) -> bool:
        return self.status is ResponseStatus.NOT_FOUND

    @classmethod
    def success(cls, document: dict[str, Any] | None = None) -> ClusterResponse:
        return cls(status=ResponseStatus.OK, document=document)

    @classmethod
    def failure(cls, error: str) -> ClusterResponse:
        return cls(status=ResponseStatus.ERROR, error=error)


@dataclass
class IdentityResult:
    """Result of a cloud caller-identity lookup."""

    ok: bool
    account: str = ""
    arn: str = ""
    error: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AccessKeyPair:
    """A cloud access key id / secret pair."""

    access_key_id: str
    secret_access_key: str

    def __repr__(self) -> str:
        return f"AccessKeyPair(access_key_id={self.masked_id!r})"

    @property
    def masked_id(self) -> str:
        return f"{self.access_key_id[:10]}..." if self.access_key_id else ""


class ClusterClient(ABC):
    """Control-plane operations on declarative resources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Adapter identifier (e.g. 'oc', 'kubectl', 'mock')."""

    @abstractmethod
    def available(self) -> dict[str, Any]:
        """Whether the client tool is usable: ``{"available": bool, "version": str|None}``.

        Must be fast and never raise.
        """

    @abstractmethod
    def whoami(self) -> ClusterResponse:
        """Confirm the control plane is reachable with current credentials."""

    @abstractmethod
    def get(self, ref: ResourceRef) -> ClusterResponse:
        """Fetch one resource as a parsed document."""

    @abstractmethod
    def create(self, document: dict[str, Any]) -> ClusterResponse:
        """Create a resource; ALREADY_EXISTS when it is already there."""

    @abstractmethod
    def apply(self, document: dict[str, Any]) -> ClusterResponse:
        """Create-or-update a resource."""

    @abstractmethod
    def delete(self, ref: ResourceRef, *, timeout: int = 30) -> ClusterResponse:
        """Request deletion without waiting; NOT_FOUND when already gone."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class IdentityClient(ABC):
    """Cloud identity operations used to prove credentials are live."""

    @abstractmethod
    def caller_identity(self, keys: AccessKeyPair) -> IdentityResult:
        """Resolve the account behind ``keys``. Never raises."""

    @abstractmethod
    def profile_keys(self, profile: str) -> AccessKeyPair | None:
        """Read the static keys of a named local profile, or None."""
