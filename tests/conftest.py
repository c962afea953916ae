"""
Shared test fixtures and configuration.

No subprocess, no network: every collaborator is in-memory.
"""

from __future__ import annotations

import pytest

from aao_itest.adapters.mock import MockCluster, MockIdentity
from aao_itest.core.config.settings import HarnessSettings
from aao_itest.core.engine.runner import Harness
from aao_itest.core.models.resource import namespace_document
from tests.helpers import (
    BYOC_ACCOUNT,
    CCS_KEYS,
    GENERATED_KEYS,
    OPERATOR_NS,
    FakeClock,
    FakeOperator,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cluster(clock: FakeClock) -> MockCluster:
    mock = MockCluster(clock=clock)
    mock.put(namespace_document(OPERATOR_NS))
    return mock


@pytest.fixture
def operator(cluster: MockCluster) -> FakeOperator:
    return FakeOperator(cluster)


@pytest.fixture
def identity() -> MockIdentity:
    return MockIdentity(
        accounts={
            CCS_KEYS.access_key_id: BYOC_ACCOUNT,
            GENERATED_KEYS.access_key_id: BYOC_ACCOUNT,
        },
        profiles={"osd-staging-2": CCS_KEYS},
    )


@pytest.fixture
def settings() -> HarnessSettings:
    return HarnessSettings(
        ready_timeout=30,
        delete_timeout=10,
        poll_interval=1,
        skip_preflight=True,
        operator_namespace=OPERATOR_NS,
        byoc_account_id=BYOC_ACCOUNT,
    )


@pytest.fixture
def harness(
    cluster: MockCluster,
    identity: MockIdentity,
    settings: HarnessSettings,
    clock: FakeClock,
) -> Harness:
    return Harness(
        cluster=cluster,
        settings=settings,
        identity=identity,
        sleep=clock.sleep,
        clock=clock,
    )
