"""Reconcile ``NetworkFilesystem`` status with its ``Endpoints``."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol

from kubernetes_asyncio.client import V1Endpoints, V1Service
from safir.datetime import current_datetime
from structlog.stdlib import BoundLogger

from ..constants import (
    CLUSTER_IP_NONE,
    ENDPOINT_NAME_PREFIX,
    KUBERNETES_REQUEST_TIMEOUT,
    LONGHORN_NAMESPACE,
    NETWORKFS_KIND,
)
from ..exceptions import MissingObjectError
from ..models.domain.kubernetes import ConditionStatus
from ..models.domain.networkfs import (
    ConditionType,
    EndpointStatus,
    NetworkFilesystem,
    NetworkFilesystemStatus,
    NetworkFSCondition,
    NetworkFSState,
    NetworkFSType,
)
from ..timeout import Timeout
from .conditions import update_conditions

__all__ = [
    "EndpointReconciler",
    "NetworkFilesystemClient",
    "ServiceClient",
    "build_endpoint_status",
    "get_endpoint_address",
]


class NetworkFilesystemClient(Protocol):
    """Operations the reconciler needs on ``NetworkFilesystem`` objects."""

    async def read(
        self, name: str, namespace: str, timeout: Timeout
    ) -> NetworkFilesystem | None: ...

    async def replace_status(
        self, networkfs: NetworkFilesystem, timeout: Timeout
    ) -> None: ...


class ServiceClient(Protocol):
    """Operations the reconciler needs on ``Service`` objects."""

    async def read(
        self, name: str, namespace: str, timeout: Timeout
    ) -> V1Service | None: ...


def get_endpoint_address(endpoints: V1Endpoints) -> str | None:
    """Return the serving address of an ``Endpoints`` object.

    Only the first address of the first subset is considered.

    Parameters
    ----------
    endpoints
        Endpoints to inspect.

    Returns
    -------
    str or None
        IP address, or `None` if the endpoints have no live address.
    """
    if not endpoints.subsets:
        return None
    addresses = endpoints.subsets[0].addresses
    if not addresses:
        return None
    return addresses[0].ip or None


def build_endpoint_status(
    endpoints: V1Endpoints, status: NetworkFilesystemStatus, now: datetime
) -> NetworkFilesystemStatus:
    """Compute the status of a network filesystem from its endpoints.

    Parameters
    ----------
    endpoints
        Current endpoints of the filesystem's headless service.
    status
        Current status of the filesystem. Not modified.
    now
        Transition time to use for any new conditions.

    Returns
    -------
    NetworkFilesystemStatus
        New status.
    """
    result = status.model_copy(deep=True)
    result.type = NetworkFSType.NFS
    result.state = NetworkFSState.ENABLING
    conditions = result.network_fs_conds

    address = get_endpoint_address(endpoints)
    if not address:
        result.endpoint = ""
        result.status = EndpointStatus.NOT_READY
        condition = NetworkFSCondition(
            type=ConditionType.NOT_READY,
            status=ConditionStatus.TRUE,
            last_transition_time=now,
            reason="Endpoint is not ready",
            message="Endpoint did not contain the corresponding address",
        )
        result.network_fs_conds = update_conditions(conditions, condition)
        return result

    if status.endpoint != address:
        if status.endpoint:
            msg = (
                f"Endpoint address is changed from {status.endpoint} to"
                f" {address}"
            )
        else:
            msg = f"Endpoint address is initialized with {address}"
        condition = NetworkFSCondition(
            type=ConditionType.ENDPOINT_CHANGED,
            status=ConditionStatus.TRUE,
            last_transition_time=now,
            reason="Endpoint is changed",
            message=msg,
        )
        conditions = update_conditions(conditions, condition)

    result.endpoint = address
    result.status = EndpointStatus.READY
    condition = NetworkFSCondition(
        type=ConditionType.READY,
        status=ConditionStatus.TRUE,
        last_transition_time=now,
        reason="Endpoint is ready",
        message="Endpoint contains the corresponding address",
    )
    result.network_fs_conds = update_conditions(conditions, condition)
    return result


class EndpointReconciler:
    """Keep ``NetworkFilesystem`` status consistent with its endpoints.

    Invoked once per observed change to an ``Endpoints`` object. Each call
    recomputes the status from the current endpoints, filesystem, and service
    and writes it only if it changed. Nothing is retained between calls.

    Failures to read or write are raised to the caller, which is responsible
    for retrying. Situations that retrying would not change (unrelated or
    deleted endpoints, filesystems that are not enabled, services that are
    not headless) return without doing anything.

    Parameters
    ----------
    namespace
        Namespace holding ``NetworkFilesystem`` objects.
    networkfs_storage
        Storage for ``NetworkFilesystem`` objects.
    service_storage
        Storage for ``Service`` objects.
    logger
        Logger to use.
    timeout
        Overall timeout for the Kubernetes calls made by one reconcile.
    """

    def __init__(
        self,
        *,
        namespace: str,
        networkfs_storage: NetworkFilesystemClient,
        service_storage: ServiceClient,
        logger: BoundLogger,
        timeout: timedelta = KUBERNETES_REQUEST_TIMEOUT,
    ) -> None:
        self._namespace = namespace
        self._networkfs = networkfs_storage
        self._service = service_storage
        self._logger = logger
        self._timeout = timeout

    async def reconcile(
        self, name: str, endpoints: V1Endpoints | None
    ) -> None:
        """Reconcile the filesystem status for a changed ``Endpoints``.

        Parameters
        ----------
        name
            Name of the changed ``Endpoints`` object.
        endpoints
            Current value of the object, or `None` if it was deleted.

        Raises
        ------
        KubernetesError
            Raised if a Kubernetes API call failed.
        MissingObjectError
            Raised if the ``NetworkFilesystem`` or ``Service`` matching the
            endpoints does not exist.
        TimeoutError
            Raised if the Kubernetes calls took longer than the timeout.
        """
        logger = self._logger.bind(name=name)
        if endpoints is None or endpoints.metadata.deletion_timestamp:
            logger.info("Skipping update, endpoints were deleted")
            return
        name = endpoints.metadata.name
        if not name.startswith(ENDPOINT_NAME_PREFIX):
            logger.debug("Skipping endpoints not belonging to a volume")
            return

        logger.info("Handling endpoints change")
        timeout = Timeout(self._timeout)
        networkfs = await self._networkfs.read(name, self._namespace, timeout)
        if not networkfs:
            raise MissingObjectError(
                f"{NETWORKFS_KIND} {name} not found",
                kind=NETWORKFS_KIND,
                namespace=self._namespace,
                name=name,
            )
        if networkfs.spec.desired_state != NetworkFSState.ENABLED:
            logger.info(f"Skipping update, {NETWORKFS_KIND} is not enabled")
            return

        service = await self._service.read(name, LONGHORN_NAMESPACE, timeout)
        if not service:
            raise MissingObjectError(
                f"Service {name} not found",
                kind="Service",
                namespace=LONGHORN_NAMESPACE,
                name=name,
            )
        if service.spec.cluster_ip != CLUSTER_IP_NONE:
            logger.info("Skipping update, service is not headless")
            return

        now = current_datetime()
        status = build_endpoint_status(endpoints, networkfs.status, now)
        if status.model_dump() == networkfs.status.model_dump():
            logger.debug("Status unchanged")
            return
        update = networkfs.model_copy(update={"status": status}, deep=True)
        await self._networkfs.replace_status(update, timeout)
        logger.info(
            f"Updated {NETWORKFS_KIND} status",
            status=status.status.value if status.status else None,
            endpoint=status.endpoint,
        )
