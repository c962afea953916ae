"""
Mock adapters — in-memory control plane and identity service.

Used by the test suite to drive scenarios without a cluster or AWS.
The mock cluster keeps documents keyed by reference, can script
``status`` changes over (fake) time, inject failures per operation,
and run "operator" callbacks when a kind is created.
"""

from __future__ import annotations

import copy
import time
from collections.abc import Callable
from typing import Any

from aao_itest.adapters.base import (
    AccessKeyPair,
    ClusterClient,
    ClusterResponse,
    IdentityClient,
    IdentityResult,
    ResponseStatus,
)
from aao_itest.core.models.resource import ResourceRef

_Key = tuple[str, str, str]


def _key(ref: ResourceRef) -> _Key:
    return (ref.kind.lower(), ref.namespace, ref.name)


class MockCluster(ClusterClient):
    """In-memory ClusterClient.

    Args:
        clock: Time source used for scripted status timelines.
        available: What ``available()`` / ``whoami()`` report.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        available: bool = True,
    ):
        self._clock = clock
        self._available = available
        self._objects: dict[_Key, dict[str, Any]] = {}
        self._timelines: dict[_Key, list[tuple[float, dict[str, Any]]]] = {}
        self._failures: dict[tuple[str, _Key], str] = {}
        self._stuck: set[_Key] = set()
        self._reactors: dict[str, Callable[[MockCluster, dict[str, Any]], None]] = {}
        self._call_log: list[tuple[str, ResourceRef]] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_log(self) -> list[tuple[str, ResourceRef]]:
        """Every (operation, ref) this mock has received."""
        return self._call_log

    def calls(self, operation: str) -> list[ResourceRef]:
        return [ref for op, ref in self._call_log if op == operation]

    # ── Test configuration ──────────────────────────────────────

    def put(self, document: dict[str, Any]) -> ResourceRef:
        """Store a document directly, bypassing failure injection."""
        ref = ResourceRef.from_document(document)
        self._objects[_key(ref)] = copy.deepcopy(document)
        return ref

    def set_status_timeline(
        self, ref: ResourceRef, timeline: list[tuple[float, dict[str, Any]]]
    ) -> None:
        """Script ``status``: each entry applies once ``clock() >= at``."""
        self._timelines[_key(ref)] = sorted(timeline, key=lambda entry: entry[0])

    def fail(self, operation: str, ref: ResourceRef, error: str = "mock failure") -> None:
        """Make ``operation`` ('get', 'create', 'apply', 'delete') fail for ``ref``."""
        self._failures[(operation, _key(ref))] = error

    def stick_on_delete(self, ref: ResourceRef) -> None:
        """Accept deletes for ``ref`` but never remove it (stuck finalizer)."""
        self._stuck.add(_key(ref))

    def on_create(
        self, kind: str, reactor: Callable[[MockCluster, dict[str, Any]], None]
    ) -> None:
        """Run ``reactor(cluster, document)`` after a ``kind`` is created."""
        self._reactors[kind.lower()] = reactor

    def exists(self, ref: ResourceRef) -> bool:
        return _key(ref) in self._objects

    def document(self, ref: ResourceRef) -> dict[str, Any] | None:
        doc = self._objects.get(_key(ref))
        return copy.deepcopy(doc) if doc is not None else None

    # ── ClusterClient ───────────────────────────────────────────

    def available(self) -> dict[str, Any]:
        return {"available": self._available, "version": "mock" if self._available else None}

    def whoami(self) -> ClusterResponse:
        if not self._available:
            return ClusterResponse.failure("mock cluster unreachable")
        return ClusterResponse.success({"gitVersion": "mock"})

    def get(self, ref: ResourceRef) -> ClusterResponse:
        self._call_log.append(("get", ref))
        injected = self._injected("get", ref)
        if injected:
            return injected

        key = _key(ref)
        if key not in self._objects:
            return ClusterResponse(status=ResponseStatus.NOT_FOUND, error=f"{ref} not found")

        document = copy.deepcopy(self._objects[key])
        status = self._scripted_status(key)
        if status is not None:
            document["status"] = status
        return ClusterResponse.success(document)

    def create(self, document: dict[str, Any]) -> ClusterResponse:
        ref = ResourceRef.from_document(document)
        self._call_log.append(("create", ref))
        injected = self._injected("create", ref)
        if injected:
            return injected

        key = _key(ref)
        if key in self._objects:
            return ClusterResponse(
                status=ResponseStatus.ALREADY_EXISTS, error=f"{ref} already exists"
            )
        self._objects[key] = copy.deepcopy(document)
        reactor = self._reactors.get(ref.kind.lower())
        if reactor:
            reactor(self, copy.deepcopy(document))
        return ClusterResponse.success(copy.deepcopy(document))

    def apply(self, document: dict[str, Any]) -> ClusterResponse:
        ref = ResourceRef.from_document(document)
        self._call_log.append(("apply", ref))
        injected = self._injected("apply", ref)
        if injected:
            return injected
        self._objects[_key(ref)] = copy.deepcopy(document)
        return ClusterResponse.success(copy.deepcopy(document))

    def delete(self, ref: ResourceRef, *, timeout: int = 30) -> ClusterResponse:
        self._call_log.append(("delete", ref))
        injected = self._injected("delete", ref)
        if injected:
            return injected

        key = _key(ref)
        if key not in self._objects:
            return ClusterResponse(status=ResponseStatus.NOT_FOUND, error=f"{ref} not found")
        if key not in self._stuck:
            del self._objects[key]
            if ref.kind.lower() == "namespace":
                self._drop_namespace(ref.name)
        return ClusterResponse.success()

    # ── Internals ───────────────────────────────────────────────

    def _injected(self, operation: str, ref: ResourceRef) -> ClusterResponse | None:
        error = self._failures.get((operation, _key(ref)))
        return ClusterResponse.failure(error) if error is not None else None

    def _scripted_status(self, key: _Key) -> dict[str, Any] | None:
        timeline = self._timelines.get(key)
        if not timeline:
            return None
        now = self._clock()
        current = None
        for at, status in timeline:
            if now >= at:
                current = status
        return copy.deepcopy(current) if current is not None else None

    def _drop_namespace(self, namespace: str) -> None:
        for key in [k for k in self._objects if k[1] == namespace]:
            if key not in self._stuck:
                del self._objects[key]


class MockIdentity(IdentityClient):
    """In-memory IdentityClient.

    Args:
        accounts: access key id -> account id for live keys.
        profiles: profile name -> keys.
    """

    def __init__(
        self,
        accounts: dict[str, str] | None = None,
        profiles: dict[str, AccessKeyPair] | None = None,
    ):
        self._accounts = dict(accounts or {})
        self._profiles = dict(profiles or {})
        self._revoked: set[str] = set()
        self.lookups: list[AccessKeyPair] = []

    def revoke(self, access_key_id: str) -> None:
        self._revoked.add(access_key_id)

    def caller_identity(self, keys: AccessKeyPair) -> IdentityResult:
        self.lookups.append(keys)
        if keys.access_key_id in self._revoked or keys.access_key_id not in self._accounts:
            return IdentityResult(
                ok=False,
                error="InvalidClientTokenId: The security token included in the request is invalid.",
            )
        account = self._accounts[keys.access_key_id]
        return IdentityResult(
            ok=True,
            account=account,
            arn=f"arn:aws:iam::{account}:user/osdCcsAdmin",
        )

    def profile_keys(self, profile: str) -> AccessKeyPair | None:
        return self._profiles.get(profile)
