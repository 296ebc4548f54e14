"""Transfer modules for volume data migration."""

from .base import BaseTransfer  # noqa: F401
from .copy import CopyTransfer  # noqa: F401
from .rsync import RsyncTransfer  # noqa: F401
from .worker import WorkerPodRunner  # noqa: F401

__all__ = [
    "BaseTransfer",
    "CopyTransfer",
    "RsyncTransfer",
    "WorkerPodRunner",
    "get_transfer",
]


def get_transfer(method: str, image: str) -> BaseTransfer:
    """Transfer implementation for a configured method name."""
    if method == "rsync":
        return RsyncTransfer(image)
    if method == "copy":
        return CopyTransfer(image)
    raise ValueError(f"Unknown transfer method: {method}")
