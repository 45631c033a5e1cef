"""Generic Kubernetes object storage supporting only read.

Provides a generic Kubernetes object management class and instantiations of
that class for core object types the controller only ever reads. The
controller never creates, modifies, or deletes these objects; they are owned
by the cluster networking layer and by Longhorn.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, ApiException, V1Service
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...models.domain.kubernetes import KubernetesModel
from ...timeout import Timeout

__all__ = [
    "KubernetesObjectReader",
    "ServiceStorage",
]


class KubernetesObjectReader[T: KubernetesModel]:
    """Generic Kubernetes object storage supporting read.

    This class provides a wrapper around any Kubernetes object type that
    implements a read operation, with exception conversion.

    This class is not meant to be used directly by code outside of the
    Kubernetes storage layer. Use one of the kind-specific storage classes
    built on top of it instead.

    Parameters
    ----------
    read_method
        Method to read this type of object.
    object_type
        Type of object being acted on.
    kind
        Kubernetes kind of object being acted on.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        read_method: Callable[..., Awaitable[Any]],
        object_type: type[T],
        kind: str,
        logger: BoundLogger,
    ) -> None:
        self._read = read_method
        self._type = object_type
        self._kind = kind
        self._logger = logger

    async def read(
        self, name: str, namespace: str, timeout: Timeout
    ) -> T | None:
        """Read a Kubernetes object.

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
        typing.Any or None
            Kubernetes object, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        TimeoutError
            Raised if the timeout has already expired.
        """
        try:
            return await self._read(
                name, namespace, _request_timeout=timeout.left()
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


class ServiceStorage(KubernetesObjectReader[V1Service]):
    """Storage layer for ``Service`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            read_method=api.read_namespaced_service,
            object_type=V1Service,
            kind="Service",
            logger=logger,
        )
