"""
Domain models for the integration harness.

All models are re-exported here for convenient access:

    from aao_itest.core.models import ResourceRef, PhaseResult, Readiness
"""

from aao_itest.core.models.resource import (
    KIND_ACCOUNT,
    KIND_ACCOUNT_CLAIM,
    KIND_NAMESPACE,
    KIND_SECRET,
    ResourceRef,
    namespace_document,
)
from aao_itest.core.models.results import (
    CommonReason,
    OpResult,
    OpStatus,
    PhaseResult,
    Readiness,
    WaitResult,
)

__all__ = [
    # resource.py
    "KIND_ACCOUNT",
    "KIND_ACCOUNT_CLAIM",
    "KIND_NAMESPACE",
    "KIND_SECRET",
    "ResourceRef",
    "namespace_document",
    # results.py
    "CommonReason",
    "OpResult",
    "OpStatus",
    "PhaseResult",
    "Readiness",
    "WaitResult",
]
