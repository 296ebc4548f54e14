"""Core exceptions for Kube Volume MCP operations."""

from typing import Any


class KubeVolumeError(Exception):
    """Base exception for volume operations."""


class ConfigurationError(KubeVolumeError):
    """Configuration validation or loading failed."""


class InputError(KubeVolumeError):
    """Request input was rejected before touching the cluster."""


class InvalidSizeError(InputError):
    """Size string could not be parsed as a storage quantity."""


class ClaimNotFoundError(InputError):
    """Requested volume claim does not exist."""

    def __init__(self, namespace: str, name: str):
        super().__init__(f"volume claim {namespace}/{name} not found")
        self.namespace = namespace
        self.name = name


class PreconditionError(KubeVolumeError):
    """Operation refused before any destructive step."""


class ShrinkNotPossibleError(PreconditionError):
    """Data on the volume does not fit in the requested size."""

    def __init__(self, used_bytes: int, target_bytes: int):
        super().__init__(
            f"cannot shrink volume: current data size ({used_bytes} bytes) "
            f"is larger than requested size ({target_bytes} bytes)"
        )
        self.used_bytes = used_bytes
        self.target_bytes = target_bytes


class MigrationInProgressError(PreconditionError):
    """Another migration already owns this volume."""


class StorageClassError(PreconditionError):
    """Claim storage class is missing or unusable."""


class ProtectedNamespaceError(PreconditionError):
    """Namespace is configured as protected."""


class OperationTimeoutError(KubeVolumeError, TimeoutError):
    """Polling budget exhausted before the expected state was observed."""


class ClusterAPIError(KubeVolumeError):
    """A cluster API call failed."""

    def __init__(self, operation: str, target: str, reason: str, status: int | None = None):
        super().__init__(f"failed to {operation} {target}: {reason}")
        self.operation = operation
        self.target = target
        self.status = status


class WorkerFailedError(KubeVolumeError):
    """Worker pod reached the Failed phase."""

    def __init__(self, message: str, logs: str = ""):
        super().__init__(f"{message}: {logs}" if logs else message)
        self.logs = logs


class ResizeError(KubeVolumeError):
    """Resize aborted; carries how far the state machine got."""

    def __init__(self, message: str, state: str, source_deleted: bool = False, report: Any = None):
        super().__init__(message)
        self.state = state
        self.source_deleted = source_deleted
        self.report = report


class DeletionError(KubeVolumeError):
    """Volume deletion aborted."""
