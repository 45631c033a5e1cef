"""Test fixtures for NetworkFilesystem controller tests."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import pytest
import respx
import structlog
from safir.testing.slack import MockSlackWebhook, mock_slack_webhook
from structlog.stdlib import BoundLogger

from networkfs.config import Config

from .support.kubernetes import MockNetworkFSKubernetesApi, patch_kubernetes
from .support.networkfs import (
    SLACK_WEBHOOK,
    MockNetworkFilesystemStorage,
    MockServiceStorage,
)


@pytest.fixture
def config() -> Config:
    """Construct default configuration for tests."""
    return Config(namespace="harvester-system", nodeName="node-1")


@pytest.fixture
def logger() -> BoundLogger:
    return structlog.get_logger(__name__)


@pytest.fixture
def mock_kubernetes() -> Iterator[MockNetworkFSKubernetesApi]:
    with contextmanager(patch_kubernetes)() as mock:
        yield mock


@pytest.fixture
def networkfs_storage() -> MockNetworkFilesystemStorage:
    return MockNetworkFilesystemStorage()


@pytest.fixture
def service_storage() -> MockServiceStorage:
    return MockServiceStorage()


@pytest.fixture
def mock_slack(respx_mock: respx.Router) -> MockSlackWebhook:
    return mock_slack_webhook(SLACK_WEBHOOK, respx_mock)
