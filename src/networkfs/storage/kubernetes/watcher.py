"""Watch a Kubernetes namespace for events."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Self

from kubernetes_asyncio.client import ApiException
from kubernetes_asyncio.watch import Watch
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...models.domain.kubernetes import WatchEventType

__all__ = [
    "KubernetesWatcher",
    "WatchEvent",
]


@dataclass
class WatchEvent[T]:
    """Parsed event from a Kubernetes watch."""

    action: WatchEventType
    """Action the event represents."""

    object: T
    """Affected Kubernetes object."""

    @classmethod
    def from_event(cls, event: dict[str, Any], object_type: type[T]) -> Self:
        """Create a `WatchEvent` from a watch event.

        Parameters
        ----------
        event
            Event as returned by the Kubernetes watch API.
        object_type
            Expected type of the object.

        Raises
        ------
        TypeError
            Raised if the type of the object in the watch event was incorrect.
        """
        action = WatchEventType(event["type"])
        obj = event["object"]
        if not isinstance(obj, object_type):
            real_type = type(obj).__name__
            expected_type = object_type.__name__
            msg = f"Watch object was of type {real_type}, not {expected_type}"
            raise TypeError(msg)
        return cls(action=action, object=obj)


class KubernetesWatcher[T]:
    """Watch Kubernetes for events on one kind of object.

    This wrapper around the watch API of the Kubernetes client restarts the
    watch when the server closes it and handles expired resource versions.
    The watch runs until `stop` is called or the caller stops iterating.

    Parameters
    ----------
    method
        API list method that supports the watch API.
    object_type
        Type of object being watched. This cannot be autodiscovered from the
        method when the Safir mock is in use and therefore must be provided
        by the caller.
    kind
        Kubernetes kind of object being watched, for error reporting.
    namespace
        Namespace to watch.
    resource_version
        Resource version at which to start the watch.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        method: Callable[..., Awaitable[Any]],
        object_type: type[T],
        kind: str,
        namespace: str,
        resource_version: str | None = None,
        logger: BoundLogger,
    ) -> None:
        self._method = method
        self._type = object_type
        self._kind = kind
        self._namespace = namespace
        self._resource_version = resource_version
        self._logger = logger
        self._stopped = False

        # kubernetes_asyncio determines the return type of a method by
        # parsing its docstring, which breaks with the Safir mock.
        self._watch = Watch(return_type=object_type)

    async def close(self) -> None:
        """Close the internal API client used by the watch API."""
        self._watch.stop()
        await self._watch.close()

    def stop(self) -> None:
        """Stop a watch in progress."""
        self._watch.stop()
        self._stopped = True

    async def watch(self) -> AsyncIterator[WatchEvent[T]]:
        """Watch Kubernetes for events.

        The watch is resumed from the last seen resource version whenever the
        server ends it. If that resource version is too old to still be known
        to Kubernetes, the API call returns a 410 error and the watch is
        retried without a resource version. Events that arrive between the
        error and the retry are missed, but the retry starts with synthetic
        ``ADDED`` events for every existing object, so level-triggered
        consumers see current state.

        Yields
        ------
        WatchEvent
            Parsed event.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server during the
            watch.
        """
        while not self._stopped:
            args: dict[str, Any] = {"namespace": self._namespace}
            if self._resource_version:
                args["resource_version"] = self._resource_version
            try:
                async with self._watch.stream(self._method, **args) as s:
                    async for event in s:
                        parsed = WatchEvent.from_event(event, self._type)
                        metadata = getattr(parsed.object, "metadata", None)
                        if metadata and metadata.resource_version:
                            self._resource_version = metadata.resource_version
                        yield parsed
            except ApiException as e:
                if e.status == 410:
                    rv = self._resource_version
                    msg = f"Resource version {rv} expired, retrying watch"
                    self._logger.info(msg, kind=self._kind)
                    self._resource_version = None
                    continue
                raise KubernetesError.from_exception(
                    "Error watching objects",
                    e,
                    kind=self._kind,
                    namespace=self._namespace,
                ) from e
            if not self._stopped:
                msg = f"{self._kind} watch closed by server, restarting"
                self._logger.debug(msg, namespace=self._namespace)
