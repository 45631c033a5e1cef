"""Models for the ``NetworkFilesystem`` custom resource."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Self

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel
from safir.datetime import isodatetime
from safir.pydantic import normalize_datetime

from ...constants import NETWORKFS_GROUP, NETWORKFS_KIND, NETWORKFS_VERSION
from .kubernetes import ConditionStatus

__all__ = [
    "ConditionType",
    "EndpointStatus",
    "KubernetesTime",
    "NetworkFSCondition",
    "NetworkFSState",
    "NetworkFSType",
    "NetworkFilesystem",
    "NetworkFilesystemSpec",
    "NetworkFilesystemStatus",
]

KubernetesTime = Annotated[
    datetime,
    AfterValidator(normalize_datetime),
    PlainSerializer(isodatetime, return_type=str),
]
"""Timestamp in the second-precision RFC 3339 form Kubernetes uses."""


class ConditionType(str, Enum):
    """Types of conditions recorded in the status history."""

    READY = "Ready"
    NOT_READY = "NotReady"
    ENDPOINT_CHANGED = "EndpointChanged"


class EndpointStatus(str, Enum):
    """Whether the network filesystem has a live serving address."""

    READY = "Ready"
    NOT_READY = "NotReady"


class NetworkFSState(str, Enum):
    """Lifecycle state of a network filesystem.

    Used both for the desired state in the object spec, which is set by other
    controllers, and for the observed state in the status.
    """

    ENABLED = "Enabled"
    ENABLING = "Enabling"
    DISABLED = "Disabled"
    DISABLING = "Disabling"
    UNKNOWN = "Unknown"


class NetworkFSType(str, Enum):
    """Protocol used to export the filesystem."""

    NFS = "NFS"


def _empty_to_none(v: Any) -> Any:
    """Treat empty strings in enum fields as unset.

    Go clients serialize unset string enums as the empty string rather than
    omitting them.
    """
    return None if v == "" else v


class NetworkFSCondition(BaseModel):
    """One entry in the condition history of a network filesystem."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="allow", populate_by_name=True
    )

    type: Annotated[ConditionType, Field(title="Condition type")]

    status: Annotated[ConditionStatus, Field(title="Condition status")]

    last_transition_time: Annotated[
        KubernetesTime | None,
        Field(
            title="Last transition",
            description="When the condition last changed",
        ),
    ] = None

    reason: Annotated[str, Field(title="Reason for the condition")] = ""

    message: Annotated[str, Field(title="Human-readable message")] = ""


class NetworkFilesystemSpec(BaseModel):
    """Desired state of a network filesystem.

    Only the fields this controller reads are modeled. Any others are
    preserved untouched.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, extra="allow", populate_by_name=True
    )

    network_fs_name: Annotated[
        str | None,
        Field(
            title="Name of the backing volume",
            alias="networkFSName",
        ),
    ] = None

    desired_state: Annotated[
        NetworkFSState | None,
        Field(
            title="Desired state",
            description=(
                "Set by an external controller. Status is only maintained"
                " here while this is ``Enabled``."
            ),
        ),
    ] = None

    _normalize_desired_state = field_validator(
        "desired_state", mode="before"
    )(_empty_to_none)


class NetworkFilesystemStatus(BaseModel):
    """Observed state of a network filesystem."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="allow", populate_by_name=True
    )

    endpoint: Annotated[
        str,
        Field(
            title="Serving address",
            description="Last known address of the NFS server, or empty",
        ),
    ] = ""

    status: Annotated[
        EndpointStatus | None, Field(title="Endpoint readiness")
    ] = None

    type: Annotated[NetworkFSType | None, Field(title="Protocol")] = None

    state: Annotated[NetworkFSState | None, Field(title="State")] = None

    mount_opts: Annotated[str | None, Field(title="Mount options")] = None

    network_fs_conds: Annotated[
        list[NetworkFSCondition],
        Field(
            title="Condition history",
            description="At most one entry per condition type",
            alias="networkFSConds",
        ),
    ] = []

    _normalize_enums = field_validator(
        "status", "type", "state", mode="before"
    )(_empty_to_none)


class NetworkFilesystem(BaseModel):
    """A ``NetworkFilesystem`` custom object.

    Metadata is carried verbatim so that writes include the resource version
    that was read.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: Annotated[str, Field(alias="apiVersion")] = (
        f"{NETWORKFS_GROUP}/{NETWORKFS_VERSION}"
    )

    kind: str = NETWORKFS_KIND

    metadata: dict[str, Any]

    spec: NetworkFilesystemSpec = Field(default_factory=NetworkFilesystemSpec)

    status: NetworkFilesystemStatus = Field(
        default_factory=NetworkFilesystemStatus
    )

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> Self:
        """Parse a custom object as returned by the Kubernetes API.

        Parameters
        ----------
        obj
            Custom object.

        Returns
        -------
        NetworkFilesystem
            Parsed object.
        """
        return cls.model_validate(obj)

    @property
    def name(self) -> str:
        """Name of the object."""
        return self.metadata["name"]

    def to_object(self) -> dict[str, Any]:
        """Serialize to a custom object suitable for the Kubernetes API."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
