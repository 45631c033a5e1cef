"""Storage layer for ``Endpoints`` objects."""

from __future__ import annotations

from collections.abc import AsyncIterator

from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, V1Endpoints
from structlog.stdlib import BoundLogger

from .reader import KubernetesObjectReader
from .watcher import KubernetesWatcher, WatchEvent

__all__ = ["EndpointsStorage"]


class EndpointsStorage(KubernetesObjectReader[V1Endpoints]):
    """Storage layer for ``Endpoints`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        self._api = client.CoreV1Api(api_client)
        super().__init__(
            read_method=self._api.read_namespaced_endpoints,
            object_type=V1Endpoints,
            kind="Endpoints",
            logger=logger,
        )
        self._watcher: KubernetesWatcher[V1Endpoints] | None = None

    async def watch(
        self, namespace: str
    ) -> AsyncIterator[WatchEvent[V1Endpoints]]:
        """Watch all ``Endpoints`` objects in a namespace.

        Continues until `stop` is called or the caller stops iterating.

        Parameters
        ----------
        namespace
            Namespace to watch.

        Yields
        ------
        WatchEvent
            Each change to an ``Endpoints`` object.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        watcher = KubernetesWatcher(
            method=self._api.list_namespaced_endpoints,
            object_type=V1Endpoints,
            kind=self._kind,
            namespace=namespace,
            logger=self._logger,
        )
        self._watcher = watcher
        try:
            async for event in watcher.watch():
                yield event
        finally:
            self._watcher = None
            await watcher.close()

    def stop(self) -> None:
        """Stop any watch in progress."""
        if self._watcher:
            self._watcher.stop()
