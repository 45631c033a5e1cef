"""Controller that keeps NetworkFilesystem status in sync with endpoints."""

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

try:
    __version__ = version("networkfs-controller")
except PackageNotFoundError:
    __version__ = "0.0.0"
