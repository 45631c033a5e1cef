"""Tests for the endpoint reconciler."""

from __future__ import annotations

import re
from datetime import UTC, datetime

import pytest
import structlog
from structlog.stdlib import BoundLogger
from structlog.testing import capture_logs

from networkfs.exceptions import KubernetesError, MissingObjectError
from networkfs.models.domain.kubernetes import ConditionStatus
from networkfs.models.domain.networkfs import (
    ConditionType,
    EndpointStatus,
    NetworkFilesystemStatus,
    NetworkFSState,
    NetworkFSType,
)
from networkfs.services.endpoint import (
    EndpointReconciler,
    build_endpoint_status,
    get_endpoint_address,
)

from ..support.networkfs import (
    MockNetworkFilesystemStorage,
    MockServiceStorage,
    make_endpoints,
    make_networkfs,
    make_service,
)

NAME = "pvc-0a1b2c3d"
NOW = datetime(2024, 5, 2, 8, 30, 0, tzinfo=UTC)


@pytest.fixture
def reconciler(
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
    logger: BoundLogger,
) -> EndpointReconciler:
    return EndpointReconciler(
        namespace="harvester-system",
        networkfs_storage=networkfs_storage,
        service_storage=service_storage,
        logger=logger,
    )


def test_get_endpoint_address() -> None:
    assert get_endpoint_address(make_endpoints(NAME)) is None
    endpoints = make_endpoints(NAME, empty_subset=True)
    assert get_endpoint_address(endpoints) is None
    endpoints = make_endpoints(NAME, ["10.52.0.8", "10.52.0.9"])
    assert get_endpoint_address(endpoints) == "10.52.0.8"


def test_build_status_ready() -> None:
    current = NetworkFilesystemStatus()
    endpoints = make_endpoints(NAME, ["10.52.0.8"])

    status = build_endpoint_status(endpoints, current, NOW)
    assert status.endpoint == "10.52.0.8"
    assert status.status == EndpointStatus.READY
    assert status.type == NetworkFSType.NFS
    assert status.state == NetworkFSState.ENABLING
    types = [c.type for c in status.network_fs_conds]
    assert types == [ConditionType.ENDPOINT_CHANGED, ConditionType.READY]
    changed, ready = status.network_fs_conds
    assert changed.status == ConditionStatus.TRUE
    assert changed.reason == "Endpoint is changed"
    assert changed.message == "Endpoint address is initialized with 10.52.0.8"
    assert changed.last_transition_time == NOW
    assert ready.reason == "Endpoint is ready"
    assert ready.message == "Endpoint contains the corresponding address"

    # The input is not modified.
    assert current == NetworkFilesystemStatus()


def test_build_status_not_ready() -> None:
    current = build_endpoint_status(
        make_endpoints(NAME, ["10.52.0.8"]), NetworkFilesystemStatus(), NOW
    )

    for endpoints in (
        make_endpoints(NAME),
        make_endpoints(NAME, empty_subset=True),
    ):
        status = build_endpoint_status(endpoints, current, NOW)
        assert status.endpoint == ""
        assert status.status == EndpointStatus.NOT_READY
        assert status.state == NetworkFSState.ENABLING
        types = [c.type for c in status.network_fs_conds]
        assert types == [
            ConditionType.ENDPOINT_CHANGED,
            ConditionType.READY,
            ConditionType.NOT_READY,
        ]
        not_ready = status.network_fs_conds[2]
        assert not_ready.reason == "Endpoint is not ready"
        assert not_ready.message == (
            "Endpoint did not contain the corresponding address"
        )


@pytest.mark.asyncio
async def test_reconcile(
    reconciler: EndpointReconciler,
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    networkfs_storage.add(make_networkfs(NAME))
    service_storage.add(make_service(NAME))
    endpoints = make_endpoints(NAME, ["10.52.0.8"])

    await reconciler.reconcile(NAME, endpoints)
    assert len(networkfs_storage.updates) == 1
    networkfs = networkfs_storage.get(NAME, "harvester-system")
    assert networkfs.spec.desired_state == NetworkFSState.ENABLED
    assert networkfs.status.endpoint == "10.52.0.8"
    assert networkfs.status.status == EndpointStatus.READY
    assert networkfs.status.state == NetworkFSState.ENABLING
    assert networkfs.status.type == NetworkFSType.NFS
    obj = networkfs.to_object()
    conditions = obj["status"]["networkFSConds"]
    assert [c["type"] for c in conditions] == ["EndpointChanged", "Ready"]
    for condition in conditions:
        assert condition["status"] == "True"
        timestamp = condition["lastTransitionTime"]
        assert re.match(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\dZ$", timestamp)

    # A second pass with the same input writes nothing.
    await reconciler.reconcile(NAME, endpoints)
    assert len(networkfs_storage.updates) == 1
    assert networkfs_storage.get(NAME, "harvester-system") == networkfs


@pytest.mark.asyncio
async def test_address_change(
    reconciler: EndpointReconciler,
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    networkfs_storage.add(make_networkfs(NAME))
    service_storage.add(make_service(NAME))

    await reconciler.reconcile(NAME, make_endpoints(NAME, ["10.52.0.8"]))
    await reconciler.reconcile(NAME, make_endpoints(NAME, ["10.52.1.4"]))
    assert len(networkfs_storage.updates) == 2
    networkfs = networkfs_storage.get(NAME, "harvester-system")
    assert networkfs.status.endpoint == "10.52.1.4"
    assert networkfs.status.status == EndpointStatus.READY
    conditions = networkfs.status.network_fs_conds
    assert [c.type for c in conditions] == [
        ConditionType.ENDPOINT_CHANGED,
        ConditionType.READY,
    ]
    assert conditions[0].message == (
        "Endpoint address is changed from 10.52.0.8 to 10.52.1.4"
    )


@pytest.mark.asyncio
async def test_endpoint_lost(
    reconciler: EndpointReconciler,
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    networkfs_storage.add(make_networkfs(NAME))
    service_storage.add(make_service(NAME))

    await reconciler.reconcile(NAME, make_endpoints(NAME, ["10.52.0.8"]))
    await reconciler.reconcile(NAME, make_endpoints(NAME))
    networkfs = networkfs_storage.get(NAME, "harvester-system")
    assert networkfs.status.endpoint == ""
    assert networkfs.status.status == EndpointStatus.NOT_READY
    assert networkfs.status.state == NetworkFSState.ENABLING
    types = [c.type for c in networkfs.status.network_fs_conds]
    assert types == [
        ConditionType.ENDPOINT_CHANGED,
        ConditionType.READY,
        ConditionType.NOT_READY,
    ]

    # Losing the address again changes nothing.
    await reconciler.reconcile(NAME, make_endpoints(NAME, empty_subset=True))
    assert len(networkfs_storage.updates) == 2

    # Regaining an address records it as newly initialized.
    await reconciler.reconcile(NAME, make_endpoints(NAME, ["10.52.2.2"]))
    networkfs = networkfs_storage.get(NAME, "harvester-system")
    assert networkfs.status.endpoint == "10.52.2.2"
    assert networkfs.status.status == EndpointStatus.READY
    conditions = networkfs.status.network_fs_conds
    assert len(conditions) == 3
    assert conditions[0].message == (
        "Endpoint address is initialized with 10.52.2.2"
    )


@pytest.mark.asyncio
async def test_preserves_other_fields(
    reconciler: EndpointReconciler,
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    status = {"mountOpts": "vers=4.1", "extraField": "kept"}
    networkfs_storage.add(make_networkfs(NAME, status=status))
    service_storage.add(make_service(NAME))

    await reconciler.reconcile(NAME, make_endpoints(NAME, ["10.52.0.8"]))
    obj = networkfs_storage.get(NAME, "harvester-system").to_object()
    assert obj["status"]["mountOpts"] == "vers=4.1"
    assert obj["status"]["extraField"] == "kept"
    assert obj["spec"] == {"networkFSName": NAME, "desiredState": "Enabled"}


@pytest.mark.asyncio
async def test_ignored(
    reconciler: EndpointReconciler,
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    networkfs_storage.add(make_networkfs(NAME))
    service_storage.add(make_service(NAME))

    # Deleted endpoints.
    await reconciler.reconcile(NAME, None)
    deleted = make_endpoints(NAME, ["10.52.0.8"], deleted_at=NOW)
    await reconciler.reconcile(NAME, deleted)

    # Endpoints unrelated to a volume.
    other = make_endpoints("longhorn-frontend", ["10.52.0.8"])
    await reconciler.reconcile("longhorn-frontend", other)

    assert networkfs_storage.reads == []
    assert service_storage.reads == []
    assert networkfs_storage.updates == []


@pytest.mark.asyncio
async def test_ignored_logging(
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    with capture_logs() as logs:
        reconciler = EndpointReconciler(
            namespace="harvester-system",
            networkfs_storage=networkfs_storage,
            service_storage=service_storage,
            logger=structlog.get_logger(__name__),
        )
        await reconciler.reconcile(NAME, None)
        other = make_endpoints("longhorn-frontend", ["10.52.0.8"])
        await reconciler.reconcile("longhorn-frontend", other)

    assert [(e["event"], e["log_level"], e["name"]) for e in logs] == [
        ("Skipping update, endpoints were deleted", "info", NAME),
        (
            "Skipping endpoints not belonging to a volume",
            "debug",
            "longhorn-frontend",
        ),
    ]


@pytest.mark.parametrize("desired_state", ["Disabled", "Disabling", ""])
@pytest.mark.asyncio
async def test_not_enabled(
    desired_state: str,
    reconciler: EndpointReconciler,
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    networkfs_storage.add(make_networkfs(NAME, desired_state=desired_state))
    service_storage.add(make_service(NAME))

    await reconciler.reconcile(NAME, make_endpoints(NAME, ["10.52.0.8"]))
    assert networkfs_storage.reads == [("harvester-system", NAME)]
    assert service_storage.reads == []
    assert networkfs_storage.updates == []


@pytest.mark.asyncio
async def test_not_headless(
    reconciler: EndpointReconciler,
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    networkfs_storage.add(make_networkfs(NAME))
    service_storage.add(make_service(NAME, cluster_ip="10.53.4.17"))

    await reconciler.reconcile(NAME, make_endpoints(NAME, ["10.52.0.8"]))
    assert service_storage.reads == [("longhorn-system", NAME)]
    assert networkfs_storage.updates == []


@pytest.mark.asyncio
async def test_missing_objects(
    reconciler: EndpointReconciler,
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    endpoints = make_endpoints(NAME, ["10.52.0.8"])

    with pytest.raises(MissingObjectError) as excinfo:
        await reconciler.reconcile(NAME, endpoints)
    assert excinfo.value.kind == "NetworkFilesystem"
    assert excinfo.value.namespace == "harvester-system"
    assert excinfo.value.name == NAME

    networkfs_storage.add(make_networkfs(NAME))
    with pytest.raises(MissingObjectError) as excinfo:
        await reconciler.reconcile(NAME, endpoints)
    assert excinfo.value.kind == "Service"
    assert excinfo.value.namespace == "longhorn-system"
    assert networkfs_storage.updates == []


@pytest.mark.asyncio
async def test_errors_propagate(
    reconciler: EndpointReconciler,
    networkfs_storage: MockNetworkFilesystemStorage,
    service_storage: MockServiceStorage,
) -> None:
    networkfs_storage.add(make_networkfs(NAME))
    service_storage.add(make_service(NAME))
    endpoints = make_endpoints(NAME, ["10.52.0.8"])

    networkfs_storage.update_error = KubernetesError(
        "Error updating object status", status=409
    )
    with pytest.raises(KubernetesError):
        await reconciler.reconcile(NAME, endpoints)

    networkfs_storage.read_error = KubernetesError(
        "Error reading object", status=500
    )
    with pytest.raises(KubernetesError):
        await reconciler.reconcile(NAME, endpoints)
    networkfs = networkfs_storage.get(NAME, "harvester-system")
    assert networkfs.status == NetworkFilesystemStatus()
