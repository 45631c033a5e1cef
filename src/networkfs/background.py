"""Delivery of ``Endpoints`` watch events to the reconciler."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Protocol

import sentry_sdk
from aiojobs import Scheduler
from kubernetes_asyncio.client import V1Endpoints
from safir.slack.blockkit import SlackException
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from .constants import (
    ENDPOINT_HANDLER_NAME,
    KUBERNETES_REQUEST_TIMEOUT,
    REQUEUE_INITIAL_DELAY,
    REQUEUE_MAX_DELAY,
    WATCH_RESTART_DELAY,
)
from .models.domain.kubernetes import WatchEventType
from .services.endpoint import EndpointReconciler
from .storage.kubernetes.watcher import WatchEvent
from .timeout import Timeout

__all__ = ["EndpointSource", "EndpointWatchHandler"]


class EndpointSource(Protocol):
    """Source of ``Endpoints`` objects and changes to them."""

    async def read(
        self, name: str, namespace: str, timeout: Timeout
    ) -> V1Endpoints | None: ...

    def watch(
        self, namespace: str
    ) -> AsyncIterator[WatchEvent[V1Endpoints]]: ...

    def stop(self) -> None: ...


class EndpointWatchHandler:
    """Watch ``Endpoints`` objects and reconcile each change.

    Each change is handed to the reconciler in its own task so that changes
    to different objects are handled concurrently. Changes to the same
    object are serialized. If reconciling an object fails, it is retried
    with exponential backoff, re-reading the object first so that the retry
    acts on its current state. Failures are reported to Sentry, and failures
    of the watch itself are also reported to Slack if configured.

    Parameters
    ----------
    namespace
        Namespace to watch.
    endpoints_storage
        Source of ``Endpoints`` objects.
    reconciler
        Reconciler to invoke on each change.
    slack_client
        Optional Slack webhook client for alerts.
    logger
        Logger to use.
    initial_delay
        Delay before the first retry of a failed reconcile.
    max_delay
        Maximum delay between retries.
    """

    name = ENDPOINT_HANDLER_NAME
    """Name under which the handler is registered."""

    def __init__(
        self,
        *,
        namespace: str,
        endpoints_storage: EndpointSource,
        reconciler: EndpointReconciler,
        slack_client: SlackWebhookClient | None,
        logger: BoundLogger,
        initial_delay: timedelta = REQUEUE_INITIAL_DELAY,
        max_delay: timedelta = REQUEUE_MAX_DELAY,
    ) -> None:
        self._namespace = namespace
        self._endpoints = endpoints_storage
        self._reconciler = reconciler
        self._slack = slack_client
        self._logger = logger.bind(handler=self.name)
        self._initial_delay = initial_delay
        self._max_delay = max_delay

        self._scheduler: Scheduler | None = None
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()
        self._delays: dict[str, timedelta] = {}
        self._requeued: set[str] = set()

    async def start(self) -> None:
        """Start watching for changes."""
        if self._scheduler:
            self._logger.warning("Endpoint watch already running")
            return
        # Retries sleep inside their jobs, so a job limit would hold back
        # delivery of new events.
        self._scheduler = Scheduler(limit=None)
        msg = "Starting endpoint watch"
        self._logger.info(msg, namespace=self._namespace)
        await self._scheduler.spawn(self._watch())

    async def stop(self) -> None:
        """Stop watching and cancel any pending work."""
        if not self._scheduler:
            self._logger.warning("Endpoint watch was already stopped")
            return
        self._logger.info("Stopping endpoint watch")
        self._endpoints.stop()
        await self._scheduler.close()
        self._scheduler = None
        self._requeued.clear()

    async def handle(self, event: WatchEvent[V1Endpoints]) -> None:
        """Reconcile one watch event.

        Parameters
        ----------
        event
            Change to an ``Endpoints`` object.
        """
        name = event.object.metadata.name
        if event.action == WatchEventType.DELETED:
            await self._reconcile(name, None)
        else:
            await self._reconcile(name, event.object)

    async def _reconcile(
        self, name: str, endpoints: V1Endpoints | None
    ) -> None:
        """Run the reconciler for one object, requeuing it on failure."""
        async with self._lock(name):
            try:
                await self._reconciler.reconcile(name, endpoints)
            except Exception as e:
                await self._requeue(name, e)
            else:
                self._delays.pop(name, None)

    @asynccontextmanager
    async def _lock(self, name: str) -> AsyncIterator[None]:
        """Serialize work on one object.

        The lock for a name is dropped once nothing holds or waits for it.
        """
        lock = self._locks.setdefault(name, asyncio.Lock())
        self._lock_users[name] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[name] -= 1
            if not self._lock_users[name]:
                del self._lock_users[name]
                del self._locks[name]

    async def _requeue(self, name: str, exc: Exception) -> None:
        """Schedule a retry of a failed reconcile.

        Only the first of a run of failures for the same object is reported
        to Sentry.
        """
        if name not in self._delays:
            sentry_sdk.capture_exception(exc)
        delay = self._delays.get(name, self._initial_delay)
        self._delays[name] = min(delay * 2, self._max_delay)
        self._logger.exception(
            "Reconcile failed, requeuing",
            name=name,
            delay=delay.total_seconds(),
        )
        if not self._scheduler or name in self._requeued:
            return
        self._requeued.add(name)
        await self._scheduler.spawn(self._retry(name, delay))

    async def _retry(self, name: str, delay: timedelta) -> None:
        """Re-read an object after a delay and reconcile it again."""
        await asyncio.sleep(delay.total_seconds())
        self._requeued.discard(name)
        timeout = Timeout(KUBERNETES_REQUEST_TIMEOUT)
        try:
            endpoints = await self._endpoints.read(
                name, self._namespace, timeout
            )
        except Exception as e:
            await self._requeue(name, e)
            return
        await self._reconcile(name, endpoints)

    async def _report_exception(self, exc: Exception) -> None:
        """Report an exception to Sentry and, if configured, Slack."""
        sentry_sdk.capture_exception(exc)
        if not self._slack:
            return
        if isinstance(exc, SlackException):
            await self._slack.post_exception(exc)
        else:
            await self._slack.post_uncaught_exception(exc)

    async def _watch(self) -> None:
        """Watch for changes, restarting the watch if it fails."""
        while True:
            try:
                async for event in self._endpoints.watch(self._namespace):
                    if self._scheduler:
                        await self._scheduler.spawn(self.handle(event))
            except Exception as e:
                self._logger.exception("Error watching endpoints")
                await self._report_exception(e)
            await asyncio.sleep(WATCH_RESTART_DELAY.total_seconds())
