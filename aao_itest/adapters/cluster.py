"""
Cluster adapter — control-plane calls through the ``oc`` / ``kubectl`` CLI.

Every call is a subprocess with ``-o json`` output. Standard error is
classified into the typed ``ResponseStatus`` values so callers never
parse CLI text themselves. Subprocess failures (binary missing,
timeout, malformed JSON) come back as ERROR responses, never raise.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Any

from aao_itest.adapters.base import ClusterClient, ClusterResponse, ResponseStatus
from aao_itest.core.models.resource import (
    KIND_ACCOUNT,
    KIND_ACCOUNT_CLAIM,
    ResourceRef,
)

logger = logging.getLogger(__name__)


# Fully-qualified resource names avoid clashes with other "account" CRDs.
_CLI_RESOURCES = {
    KIND_ACCOUNT_CLAIM: "accountclaims.aws.managed.openshift.io",
    KIND_ACCOUNT: "accounts.aws.managed.openshift.io",
}

_NOT_FOUND_MARKERS = ("(NotFound)", "not found")
_ALREADY_EXISTS_MARKERS = ("(AlreadyExists)", "already exists")


def resource_arg(kind: str) -> str:
    """CLI resource name for a kind."""
    return _CLI_RESOURCES.get(kind, kind.lower())


def _ref_args(ref: ResourceRef) -> list[str]:
    args = [resource_arg(ref.kind), ref.name]
    if ref.namespace:
        args.extend(["-n", ref.namespace])
    return args


class CliClusterClient(ClusterClient):
    """ClusterClient backed by the ``oc`` (default) or ``kubectl`` binary.

    Args:
        binary: CLI to invoke.
        request_timeout: Seconds allowed for each subprocess call.
    """

    def __init__(self, binary: str = "oc", request_timeout: int = 30):
        self._binary = binary
        self._request_timeout = request_timeout

    @property
    def name(self) -> str:
        return self._binary

    # ── Low-level ───────────────────────────────────────────────

    def _run(
        self,
        *args: str,
        input_text: str | None = None,
        timeout: int | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run the CLI and return the completed process."""
        cmd = [self._binary, *args]
        logger.debug("Running: %s", " ".join(cmd))
        return subprocess.run(
            cmd,
            input=input_text,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout or self._request_timeout,
        )

    def _call(
        self,
        *args: str,
        input_text: str | None = None,
        timeout: int | None = None,
        expect_json: bool = True,
    ) -> ClusterResponse:
        """Run the CLI and classify the outcome."""
        try:
            result = self._run(*args, input_text=input_text, timeout=timeout)
        except FileNotFoundError:
            return ClusterResponse.failure(f"{self._binary} not found on PATH")
        except subprocess.TimeoutExpired:
            return ClusterResponse.failure(
                f"{self._binary} {args[0]} timed out after {timeout or self._request_timeout}s"
            )
        except OSError as e:
            return ClusterResponse.failure(f"Cannot run {self._binary}: {e}")

        if result.returncode != 0:
            return _classify_error(result.stderr.strip() or result.stdout.strip())

        stdout = result.stdout.strip()
        if not expect_json or not stdout:
            return ClusterResponse.success()

        try:
            document = json.loads(stdout)
        except json.JSONDecodeError as e:
            return ClusterResponse.failure(f"Malformed JSON from {self._binary}: {e}")
        if not isinstance(document, dict):
            return ClusterResponse.failure(
                f"Expected a JSON object from {self._binary}, got {type(document).__name__}"
            )
        return ClusterResponse.success(document)

    # ── ClusterClient ───────────────────────────────────────────

    def available(self) -> dict[str, Any]:
        try:
            result = self._run("version", "--client", "-o", "json", timeout=10)
        except (OSError, subprocess.TimeoutExpired):
            return {"available": False, "version": None}

        if result.returncode != 0:
            return {"available": False, "version": None}
        try:
            data = json.loads(result.stdout)
            version = data.get("clientVersion", {}).get("gitVersion", "") or data.get(
                "releaseClientVersion", ""
            )
        except (ValueError, AttributeError):
            version = result.stdout.strip()
        return {"available": True, "version": version}

    def whoami(self) -> ClusterResponse:
        return self._call("get", "--raw", "/version", timeout=15)

    def get(self, ref: ResourceRef) -> ClusterResponse:
        return self._call("get", *_ref_args(ref), "-o", "json")

    def create(self, document: dict[str, Any]) -> ClusterResponse:
        return self._call("create", "-f", "-", "-o", "json", input_text=json.dumps(document))

    def apply(self, document: dict[str, Any]) -> ClusterResponse:
        return self._call("apply", "-f", "-", "-o", "json", input_text=json.dumps(document))

    def delete(self, ref: ResourceRef, *, timeout: int = 30) -> ClusterResponse:
        return self._call(
            "delete", *_ref_args(ref), "--wait=false",
            timeout=timeout,
            expect_json=False,
        )


def _classify_error(message: str) -> ClusterResponse:
    """Map CLI error text onto a typed response."""
    if any(marker in message for marker in _ALREADY_EXISTS_MARKERS):
        return ClusterResponse(status=ResponseStatus.ALREADY_EXISTS, error=message)
    if any(marker in message for marker in _NOT_FOUND_MARKERS):
        return ClusterResponse(status=ResponseStatus.NOT_FOUND, error=message)
    return ClusterResponse.failure(message or "command failed without output")
