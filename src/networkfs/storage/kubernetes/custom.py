"""Storage layer for ``NetworkFilesystem`` custom objects."""

from __future__ import annotations

from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, ApiException
from structlog.stdlib import BoundLogger

from ...constants import (
    NETWORKFS_GROUP,
    NETWORKFS_KIND,
    NETWORKFS_PLURAL,
    NETWORKFS_VERSION,
)
from ...exceptions import KubernetesError
from ...models.domain.networkfs import NetworkFilesystem
from ...timeout import Timeout

__all__ = ["NetworkFilesystemStorage"]


class NetworkFilesystemStorage:
    """Storage layer for ``NetworkFilesystem`` custom objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        self._api = client.CustomObjectsApi(api_client)
        self._group = NETWORKFS_GROUP
        self._version = NETWORKFS_VERSION
        self._plural = NETWORKFS_PLURAL
        self._kind = NETWORKFS_KIND
        self._logger = logger

    async def read(
        self, name: str, namespace: str, timeout: Timeout
    ) -> NetworkFilesystem | None:
        """Read a ``NetworkFilesystem``.

        Parameters
        ----------
        name
            Name of the object.
        namespace
            Namespace of the object.
        timeout
            Timeout on operation.

        Returns
        -------
        NetworkFilesystem or None
            Parsed object, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        pydantic.ValidationError
            Raised if the object could not be parsed.
        """
        try:
            obj = await self._api.get_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                name,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                "Error reading object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e
        return NetworkFilesystem.from_object(obj)

    async def replace_status(
        self, networkfs: NetworkFilesystem, timeout: Timeout
    ) -> None:
        """Replace the status subresource of a ``NetworkFilesystem``.

        Only the status is written. Changes to metadata or spec in the
        provided object are ignored by the API server. The object must carry
        the resource version it was read with, so a write racing with another
        change to the object fails with a conflict instead of overwriting it.

        Parameters
        ----------
        networkfs
            Object carrying the new status.
        timeout
            Timeout on operation.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = networkfs.name
        namespace = networkfs.metadata["namespace"]
        body = networkfs.to_object()
        msg = f"Updating {self._kind} status"
        self._logger.debug(msg, name=name, namespace=namespace)
        try:
            await self._api.replace_namespaced_custom_object_status(
                self._group,
                self._version,
                namespace,
                self._plural,
                name,
                body,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error updating object status",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e
