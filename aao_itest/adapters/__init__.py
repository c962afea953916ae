"""Adapters — bindings to the control plane and the cloud identity API.

Public re-exports for convenient access. ``StsIdentityClient`` lives in
``aao_itest.adapters.aws`` and is imported on demand (it pulls in boto3).
"""

from aao_itest.adapters.base import (
    AccessKeyPair,
    ClusterClient,
    ClusterResponse,
    IdentityClient,
    IdentityResult,
    ResponseStatus,
)
from aao_itest.adapters.cluster import CliClusterClient
from aao_itest.adapters.mock import MockCluster, MockIdentity

__all__ = [
    "AccessKeyPair",
    "CliClusterClient",
    "ClusterClient",
    "ClusterResponse",
    "IdentityClient",
    "IdentityResult",
    "MockCluster",
    "MockIdentity",
    "ResponseStatus",
]
