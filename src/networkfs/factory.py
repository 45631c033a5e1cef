"""Component factory for the NetworkFilesystem controller."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Self

import structlog
from kubernetes_asyncio.client.api_client import ApiClient
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from .background import EndpointWatchHandler
from .config import Config
from .constants import LONGHORN_NAMESPACE, ROOT_LOGGER
from .services.endpoint import EndpointReconciler
from .storage.kubernetes.custom import NetworkFilesystemStorage
from .storage.kubernetes.endpoints import EndpointsStorage
from .storage.kubernetes.reader import ServiceStorage

__all__ = ["Factory"]


class Factory:
    """Build controller components.

    Uses the configuration and a shared Kubernetes API client to construct
    the storage layers and services of the controller.

    Parameters
    ----------
    config
        Controller configuration.
    kubernetes_client
        Shared Kubernetes API client.
    logger
        Logger to use.
    """

    @classmethod
    @asynccontextmanager
    async def standalone(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for controller components.

        Creates and closes the Kubernetes API client. Kubernetes
        configuration must already have been loaded.

        Parameters
        ----------
        config
            Controller configuration.

        Yields
        ------
        Factory
            Newly-created factory.
        """
        logger = structlog.get_logger(ROOT_LOGGER)
        async with ApiClient() as kubernetes_client:
            yield cls(config, kubernetes_client, logger)

    def __init__(
        self, config: Config, kubernetes_client: ApiClient, logger: BoundLogger
    ) -> None:
        self._config = config
        self._client = kubernetes_client
        self._logger = logger
        if config.node_name:
            self._logger = logger.bind(node=config.node_name)

    def create_endpoint_reconciler(self) -> EndpointReconciler:
        """Create a reconciler for ``Endpoints`` changes.

        Returns
        -------
        EndpointReconciler
            Newly-created reconciler.
        """
        return EndpointReconciler(
            namespace=self._config.namespace,
            networkfs_storage=NetworkFilesystemStorage(
                self._client, self._logger
            ),
            service_storage=ServiceStorage(self._client, self._logger),
            logger=self._logger,
        )

    def create_endpoint_watch_handler(self) -> EndpointWatchHandler:
        """Create the handler that watches ``Endpoints`` changes.

        Returns
        -------
        EndpointWatchHandler
            Newly-created handler. It must be started to begin watching.
        """
        return EndpointWatchHandler(
            namespace=LONGHORN_NAMESPACE,
            endpoints_storage=EndpointsStorage(self._client, self._logger),
            reconciler=self.create_endpoint_reconciler(),
            slack_client=self.create_slack_client(),
            logger=self._logger,
        )

    def create_slack_client(self) -> SlackWebhookClient | None:
        """Create a client for Slack alerts, if a webhook is configured.

        Returns
        -------
        SlackWebhookClient or None
            Newly-created client, or `None` if alerts are disabled.
        """
        if not self._config.slack_webhook:
            return None
        return SlackWebhookClient(
            self._config.slack_webhook.get_secret_value(),
            self._config.name,
            self._logger,
        )
