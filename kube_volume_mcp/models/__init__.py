"""Data models for Kube Volume MCP."""

from .enums import ClaimPhase, MigrationJobState, PodPhase, ResizeState, VolumeAction
from .params import KubeVolumeParams
from .volume import (
    CleanupReport,
    Consumer,
    DeletionPlan,
    DeletionReport,
    DeploymentInfo,
    MCPModel,
    MigrationJob,
    PersistentVolumeInfo,
    PodInfo,
    ResizeReport,
    ScaledDeployment,
    StorageClassInfo,
    VolumeClaim,
    WorkerMount,
    WorkerResult,
    WorkerSpec,
)

__all__ = [
    "ClaimPhase",
    "CleanupReport",
    "Consumer",
    "DeletionPlan",
    "DeletionReport",
    "DeploymentInfo",
    "KubeVolumeParams",
    "MCPModel",
    "MigrationJob",
    "MigrationJobState",
    "PersistentVolumeInfo",
    "PodInfo",
    "PodPhase",
    "ResizeReport",
    "ResizeState",
    "ScaledDeployment",
    "StorageClassInfo",
    "VolumeAction",
    "VolumeClaim",
    "WorkerMount",
    "WorkerResult",
    "WorkerSpec",
]
