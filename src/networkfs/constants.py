"""Global constants."""

from datetime import timedelta
from pathlib import Path

__all__ = [
    "CLUSTER_IP_NONE",
    "CONFIGURATION_PATH",
    "DEFAULT_NAMESPACE",
    "ENDPOINT_HANDLER_NAME",
    "ENDPOINT_NAME_PREFIX",
    "ENV_PREFIX",
    "KUBERNETES_REQUEST_TIMEOUT",
    "LONGHORN_NAMESPACE",
    "NETWORKFS_GROUP",
    "NETWORKFS_KIND",
    "NETWORKFS_PLURAL",
    "NETWORKFS_VERSION",
    "REQUEUE_INITIAL_DELAY",
    "REQUEUE_MAX_DELAY",
    "ROOT_LOGGER",
    "WATCH_RESTART_DELAY",
]

CLUSTER_IP_NONE = "None"
"""Cluster IP of a headless service, routed directly via its endpoints."""

CONFIGURATION_PATH = Path("/etc/networkfs/config.yaml")
"""Default path to controller configuration."""

DEFAULT_NAMESPACE = "harvester-system"
"""Default namespace holding ``NetworkFilesystem`` objects."""

ENDPOINT_HANDLER_NAME = "harvester-netfs-endpoint-handler"
"""Name under which the endpoint watch handler is registered."""

ENDPOINT_NAME_PREFIX = "pvc-"
"""Prefix of the names of endpoints backing a network filesystem.

Other endpoints in the watched namespace are ignored.
"""

ENV_PREFIX = "NETWORKFS_"
"""Prefix of environment variables that override configuration."""

KUBERNETES_REQUEST_TIMEOUT = timedelta(seconds=30)
"""How long to wait for a single Kubernetes API call."""

LONGHORN_NAMESPACE = "longhorn-system"
"""Namespace holding the share manager services and endpoints."""

NETWORKFS_GROUP = "harvesterhci.io"
"""API group of the ``NetworkFilesystem`` custom resource."""

NETWORKFS_KIND = "NetworkFilesystem"
"""Kind of the ``NetworkFilesystem`` custom resource."""

NETWORKFS_PLURAL = "networkfilesystems"
"""Plural of the ``NetworkFilesystem`` custom resource."""

NETWORKFS_VERSION = "v1beta1"
"""API version of the ``NetworkFilesystem`` custom resource."""

REQUEUE_INITIAL_DELAY = timedelta(seconds=1)
"""Delay before the first retry of a failed reconcile.

The delay doubles on each consecutive failure for the same name.
"""

REQUEUE_MAX_DELAY = timedelta(minutes=5)
"""Maximum delay between retries of a failed reconcile."""

ROOT_LOGGER = "networkfs"
"""Name of the root logger for the controller."""

WATCH_RESTART_DELAY = timedelta(seconds=1)
"""How long to pause before restarting a failed endpoint watch."""
