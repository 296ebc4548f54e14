"""Volume-related data models."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .enums import ClaimPhase, MigrationJobState, PodPhase, ResizeState

# Annotations written by the binding/provisioning controllers
CONTROLLER_ANNOTATION_PREFIXES = (
    "pv.kubernetes.io/",
    "volume.kubernetes.io/",
    "volume.beta.kubernetes.io/",
)


class MCPModel(BaseModel):
    """Base model with common MCP settings."""

    def model_dump(self, **kwargs) -> dict[str, Any]:
        """Convert to dict with exclude_none by default."""
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)


class VolumeClaim(MCPModel):
    """A persistent volume claim as seen by the orchestration layer."""

    namespace: str
    name: str
    capacity: str | None = None  # requested storage, e.g. "10Gi"
    storage_class: str | None = None
    access_modes: list[str] = Field(default_factory=list)
    volume_mode: str | None = None
    phase: ClaimPhase | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    volume_name: str | None = None  # bound persistent volume

    # Cluster-assigned metadata
    uid: str | None = None
    resource_version: str | None = None
    created_at: datetime | None = None

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_bound(self) -> bool:
        return self.phase == ClaimPhase.BOUND

    def as_fresh(self, name: str) -> "VolumeClaim":
        """Copy under a new name with all cluster-assigned state stripped.

        The bound volume name is kept so the copy can be pinned to the same data.
        """
        annotations = {
            key: value
            for key, value in self.annotations.items()
            if not key.startswith(CONTROLLER_ANNOTATION_PREFIXES)
        }
        return self.model_copy(
            update={
                "name": name,
                "annotations": annotations,
                "phase": None,
                "uid": None,
                "resource_version": None,
                "created_at": None,
            },
            deep=True,
        )


class PodInfo(MCPModel):
    """Pod summary limited to what volume orchestration needs."""

    namespace: str
    name: str
    phase: PodPhase = PodPhase.UNKNOWN
    # volume mount name -> claim name
    claim_volumes: dict[str, str] = Field(default_factory=dict)
    owner_kind: str | None = None
    owner_name: str | None = None
    deleting: bool = False

    def mount_name_for(self, claim_name: str) -> str | None:
        for volume_name, claim in self.claim_volumes.items():
            if claim == claim_name:
                return volume_name
        return None


class DeploymentInfo(MCPModel):
    """Deployment summary with the claims its pod template references."""

    namespace: str
    name: str
    replicas: int = 0
    claim_names: list[str] = Field(default_factory=list)


class Consumer(MCPModel):
    """A workload currently mounting a claim. Never cached."""

    kind: str  # "Pod" or "Deployment"
    name: str
    namespace: str
    volume_mount: str | None = None


class StorageClassInfo(MCPModel):
    """Storage class summary."""

    name: str
    provisioner: str = ""


class PersistentVolumeInfo(MCPModel):
    """Persistent volume summary used when re-pointing migrated data."""

    name: str
    reclaim_policy: str | None = None
    claim_namespace: str | None = None
    claim_name: str | None = None
    phase: str | None = None


class WorkerMount(MCPModel):
    """A claim mounted into a worker pod."""

    claim_name: str
    mount_path: str
    read_only: bool = False


class WorkerSpec(MCPModel):
    """Run a short shell script against mounted claims."""

    namespace: str
    name: str
    image: str
    script: str
    mounts: list[WorkerMount] = Field(default_factory=list)
    container_name: str = "worker"
    labels: dict[str, str] = Field(default_factory=dict)


class WorkerResult(MCPModel):
    """Terminal outcome of a worker pod."""

    name: str
    phase: PodPhase
    logs: str = ""

    @property
    def succeeded(self) -> bool:
        return self.phase == PodPhase.SUCCEEDED


class MigrationJob(MCPModel):
    """A data migration from a source claim to a target claim."""

    source: str
    target: str
    worker: str
    state: MigrationJobState = MigrationJobState.CREATED
    logs: str = ""


class ScaledDeployment(MCPModel):
    """Deployment scaled to zero, with its former replica count."""

    name: str
    original_replicas: int


class DeletionPlan(MCPModel):
    """Deployments scaled to zero to free a claim. Never restored automatically."""

    namespace: str
    claim: str
    scaled: list[ScaledDeployment] = Field(default_factory=list)


class CleanupReport(MCPModel):
    """Outcome of best-effort cleanup; failures are collected, never raised."""

    attempted: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def clean(self) -> bool:
        return not self.warnings


class ResizeReport(MCPModel):
    """Everything a resize did, in order, for the operator."""

    namespace: str
    name: str
    current_size: str | None = None
    target_size: str
    state: ResizeState = ResizeState.VALIDATING
    transitions: list[ResizeState] = Field(default_factory=list)
    dry_run: bool = False
    probe_required: bool = False
    used_bytes: int | None = None
    consumers: list[Consumer] = Field(default_factory=list)
    paused: DeletionPlan | None = None
    temp_claim: str | None = None
    job: MigrationJob | None = None
    cleanup: CleanupReport | None = None
    warnings: list[str] = Field(default_factory=list)
    progress: list[str] = Field(default_factory=list)

    def enter(self, state: ResizeState) -> None:
        self.state = state
        self.transitions.append(state)


class DeletionReport(MCPModel):
    """Outcome of a volume deletion."""

    namespace: str
    name: str
    existed: bool = True
    dry_run: bool = False
    plan: DeletionPlan | None = None
    drained_pods: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    progress: list[str] = Field(default_factory=list)
