"""Exceptions for the NetworkFilesystem controller."""

from __future__ import annotations

from typing import Self, override

from kubernetes_asyncio.client import ApiException
from safir.slack.blockkit import (
    SlackCodeBlock,
    SlackException,
    SlackMessage,
    SlackTextBlock,
    SlackTextField,
)
from safir.slack.sentry import SentryEventInfo

__all__ = [
    "KubernetesError",
    "MissingObjectError",
]


class KubernetesError(SlackException):
    """An API call to Kubernetes failed.

    Parameters
    ----------
    message
        Summary of error.
    kind
        Kind of object being acted on.
    namespace
        Namespace of object being acted on.
    name
        Name of object being acted on.
    status
        Status code of failure, if any.
    body
        Body of failure message, if any.
    """

    @classmethod
    def from_exception(
        cls,
        message: str,
        exc: ApiException,
        *,
        kind: str | None = None,
        namespace: str | None = None,
        name: str | None = None,
    ) -> Self:
        """Create an exception from a Kubernetes API exception.

        Parameters
        ----------
        message
            Brief explanation of what was being attempted.
        exc
            Kubernetes API exception.
        kind
            Kind of object being acted on.
        namespace
            Namespace of object being acted on.
        name
            Name of object being acted on.

        Returns
        -------
        KubernetesError
            Newly-created exception.
        """
        return cls(
            message,
            kind=kind,
            namespace=namespace,
            name=name,
            status=exc.status,
            body=exc.body if exc.body else exc.reason,
        )

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        namespace: str | None = None,
        name: str | None = None,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.status = status
        self.body = body

    @override
    def __str__(self) -> str:
        result = self._summary()
        if self.body:
            result += f": {self.body}"
        return result

    @override
    def to_slack(self) -> SlackMessage:
        """Convert to a Slack message for Slack alerting.

        Returns
        -------
        safir.slack.blockkit.SlackMessage
            Slack message suitable for posting as an alert.
        """
        message = super().to_slack()
        message.message = self._summary()
        if self.status:
            field = SlackTextField(heading="Status", text=str(self.status))
            message.fields.append(field)
        if self.name or self.kind:
            obj = self._object()
            message.blocks.append(SlackTextBlock(heading="Object", text=obj))
        if self.body:
            code = SlackCodeBlock(heading="Error", code=self.body)
            message.blocks.append(code)
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        """Return a collection of Sentry event metadata about the exception.

        Returns
        -------
        safir.slack.sentry.SentryEventInfo
            Sentry event metadata for use with
            `~safir.sentry.before_send_handler`.
        """
        info = super().to_sentry()
        if self.status:
            info.tags["status"] = str(self.status)
        if self.name:
            info.tags["name"] = self.name
        if self.kind:
            info.tags["kind"] = self.kind
        if self.namespace:
            info.tags["namespace"] = self.namespace
        if self.body:
            info.attachments["body"] = self.body
        return info

    def _object(self) -> str:
        """Describe the object being acted on."""
        if self.name:
            kind = f"{self.kind} " if self.kind else ""
            if self.namespace:
                return f"{kind}{self.namespace}/{self.name}"
            return f"{kind}{self.name}"
        if self.namespace:
            return f"{self.kind} in namespace {self.namespace}"
        return self.kind or ""

    def _summary(self) -> str:
        """Summarize the exception.

        Produces a single-line summary, used for the main part of the Slack
        message and part of the stringification.
        """
        result = self.message
        details = []
        if self.name or self.kind:
            details.append(self._object())
        if self.status:
            details.append(f"status {self.status}")
        if details:
            result += " (" + ", ".join(details) + ")"
        return result


class MissingObjectError(SlackException):
    """An expected Kubernetes object is missing.

    Raised when the ``NetworkFilesystem`` or ``Service`` matching a changed
    endpoint does not exist. The watch handler retries these like any other
    failure, since the object may be created later.

    Parameters
    ----------
    message
        Summary of error.
    kind
        Kind of Kubernetes object that is missing.
    namespace
        Namespace of object being acted on.
    name
        Name of object being acted on.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        namespace: str | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.namespace = namespace
        self.name = name

    @override
    def to_slack(self) -> SlackMessage:
        """Convert to a Slack message for Slack alerting.

        Returns
        -------
        safir.slack.blockkit.SlackMessage
            Slack message suitable for posting as an alert.
        """
        message = super().to_slack()
        if self.name:
            if self.namespace:
                obj = f"{self.kind} {self.namespace}/{self.name}"
            else:
                obj = f"{self.kind} {self.name}"
        elif self.namespace:
            obj = f"{self.kind} (namespace: {self.namespace})"
        else:
            obj = self.kind
        message.blocks.append(SlackTextBlock(heading="Object", text=obj))
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        """Return a collection of Sentry event metadata about the exception.

        Returns
        -------
        safir.slack.sentry.SentryEventInfo
            Sentry event metadata for use with
            `~safir.sentry.before_send_handler`.
        """
        info = super().to_sentry()
        info.tags["kind"] = self.kind
        if self.name:
            info.tags["name"] = self.name
        if self.namespace:
            info.tags["namespace"] = self.namespace
        return info
