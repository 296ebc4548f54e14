"""Enum definitions for Kube Volume MCP."""

from enum import Enum


class VolumeAction(Enum):
    """Actions for the kube_volume tool."""

    LIST = "list"
    INFO = "info"
    RESIZE = "resize"
    DELETE = "delete"


class ClaimPhase(Enum):
    """Persistent volume claim phases reported by the control plane."""

    PENDING = "Pending"
    BOUND = "Bound"
    LOST = "Lost"


class PodPhase(Enum):
    """Pod phases reported by the control plane."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (PodPhase.SUCCEEDED, PodPhase.FAILED)


class MigrationJobState(Enum):
    """Lifecycle of a data migration worker."""

    CREATED = "Created"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class ResizeState(Enum):
    """Steps of the resize state machine, in execution order."""

    VALIDATING = "validating"
    PAUSE_CONSUMERS = "pause_consumers"
    PROVISION_TARGET = "provision_target"
    AWAIT_BOUND = "await_bound"
    TRANSFER_DATA = "transfer_data"
    DELETE_SOURCE = "delete_source"
    AWAIT_SOURCE_GONE = "await_source_gone"
    RENAME_TARGET = "rename_target"
    CLEANUP_TEMP = "cleanup_temp"
    DONE = "done"
    DONE_WITH_WARNINGS = "done_with_warnings"
    FAILED = "failed"

    @property
    def source_at_risk(self) -> bool:
        """True once the source claim may already have been deleted."""
        return self in _POST_DELETE_STATES


_POST_DELETE_STATES = frozenset(
    {
        ResizeState.DELETE_SOURCE,
        ResizeState.AWAIT_SOURCE_GONE,
        ResizeState.RENAME_TARGET,
        ResizeState.CLEANUP_TEMP,
    }
)
