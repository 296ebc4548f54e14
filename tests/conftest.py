"""Shared pytest fixtures for Kube Volume MCP tests."""

import asyncio
import itertools
from collections.abc import Callable
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from kube_volume_mcp.core.config_loader import KubeVolumeConfig
from kube_volume_mcp.core.polling import PollPolicies, PollPolicy
from kube_volume_mcp.middleware import ErrorHandlingMiddleware, LoggingMiddleware, TimingMiddleware
from kube_volume_mcp.models.enums import ClaimPhase, PodPhase
from kube_volume_mcp.models.volume import (
    DeploymentInfo,
    PersistentVolumeInfo,
    PodInfo,
    StorageClassInfo,
    VolumeClaim,
    WorkerSpec,
)


class FakeCluster:
    """In-memory cluster implementing the ClusterAPI protocol.

    Worker pods finish as soon as they are created, with the phase and log
    scripted in ``worker_outcomes`` (default: Succeeded). Size-check workers
    report ``used_bytes[claim]``. Created claims bind at once unless
    ``bind_claims`` is off or their name is in ``pending_claims``. Every call is appended to ``calls`` so tests
    can assert on ordering.
    """

    def __init__(self):
        self.claims: dict[tuple[str, str], VolumeClaim] = {}
        self.pods: dict[tuple[str, str], PodInfo] = {}
        self.deployments: dict[tuple[str, str], DeploymentInfo] = {}
        self.volumes: dict[str, PersistentVolumeInfo] = {}
        self.storage_classes: dict[str, StorageClassInfo] = {
            "standard": StorageClassInfo(name="standard", provisioner="rancher.io/local-path"),
        }
        self.worker_specs: dict[str, WorkerSpec] = {}
        self.worker_outcomes: dict[str, tuple[PodPhase, str]] = {}
        self.worker_logs: dict[str, str] = {}
        self.used_bytes: dict[str, int] = {}
        self.sticky_pods: set[str] = set()
        self.bind_claims = True
        self.pending_claims: set[str] = set()
        self.calls: list[tuple] = []
        self._failures: list[tuple[str, Exception, Callable[..., bool] | None]] = []
        self._ids = itertools.count(1)

    # Test setup helpers

    def inject(self, method: str, error: Exception, when: Callable[..., bool] | None = None) -> None:
        """Make ``method`` raise ``error`` (only when ``when(*args)`` is true, if given)."""
        self._failures.append((method, error, when))

    def add_claim(
        self,
        namespace: str,
        name: str,
        capacity: str = "5Gi",
        storage_class: str | None = "standard",
        labels: dict[str, str] | None = None,
    ) -> VolumeClaim:
        volume_name = f"pv-{next(self._ids)}"
        claim = VolumeClaim(
            namespace=namespace,
            name=name,
            capacity=capacity,
            storage_class=storage_class,
            access_modes=["ReadWriteOnce"],
            volume_mode="Filesystem",
            phase=ClaimPhase.BOUND,
            labels=labels or {},
            annotations={"pv.kubernetes.io/bind-completed": "yes", "team": "storage"},
            volume_name=volume_name,
            uid=f"uid-{next(self._ids)}",
            resource_version="1",
        )
        self.claims[(namespace, name)] = claim
        self.volumes[volume_name] = PersistentVolumeInfo(
            name=volume_name,
            reclaim_policy="Delete",
            claim_namespace=namespace,
            claim_name=name,
            phase="Bound",
        )
        return claim

    def add_pod(
        self,
        namespace: str,
        name: str,
        claim: str,
        owner_kind: str | None = None,
        owner_name: str | None = None,
    ) -> PodInfo:
        pod = PodInfo(
            namespace=namespace,
            name=name,
            phase=PodPhase.RUNNING,
            claim_volumes={"data": claim},
            owner_kind=owner_kind,
            owner_name=owner_name,
        )
        self.pods[(namespace, name)] = pod
        return pod

    def add_deployment(self, namespace: str, name: str, claim: str, replicas: int = 2) -> DeploymentInfo:
        deployment = DeploymentInfo(namespace=namespace, name=name, replicas=replicas, claim_names=[claim])
        self.deployments[(namespace, name)] = deployment
        replica_set = f"{name}-5d9c7b8f4"
        for index in range(replicas):
            self.add_pod(namespace, f"{replica_set}-{index}", claim, "ReplicaSet", replica_set)
        return deployment

    def called(self, method: str, *args) -> bool:
        return any(call[0] == method and call[1 : 1 + len(args)] == args for call in self.calls)

    def call_index(self, method: str, *args) -> int:
        for index, call in enumerate(self.calls):
            if call[0] == method and call[1 : 1 + len(args)] == args:
                return index
        raise AssertionError(f"{method}{args} was never called")

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        for failing_method, error, when in self._failures:
            if failing_method == method and (when is None or when(*args)):
                raise error

    # Volume claims

    async def get_claim(self, namespace, name):
        self._record("get_claim", namespace, name)
        claim = self.claims.get((namespace, name))
        return claim.model_copy(deep=True) if claim else None

    async def list_claims(self, namespace=None):
        self._record("list_claims", namespace)
        return [
            claim.model_copy(deep=True)
            for (ns, _), claim in sorted(self.claims.items())
            if namespace is None or ns == namespace
        ]

    async def create_claim(self, claim):
        self._record("create_claim", claim.namespace, claim.name, claim.capacity)
        if (claim.namespace, claim.name) in self.claims:
            raise AssertionError(f"claim {claim.key} already exists")

        stored = claim.model_copy(deep=True)
        stored.uid = f"uid-{next(self._ids)}"
        stored.resource_version = "1"
        stored.phase = ClaimPhase.PENDING
        if self.bind_claims and claim.name not in self.pending_claims:
            if not stored.volume_name:
                stored.volume_name = f"pv-{next(self._ids)}"
                self.volumes[stored.volume_name] = PersistentVolumeInfo(
                    name=stored.volume_name,
                    reclaim_policy="Delete",
                    claim_namespace=stored.namespace,
                    claim_name=stored.name,
                    phase="Bound",
                )
            stored.phase = ClaimPhase.BOUND
        self.claims[(claim.namespace, claim.name)] = stored
        return stored.model_copy(deep=True)

    async def delete_claim(self, namespace, name):
        self._record("delete_claim", namespace, name)
        claim = self.claims.pop((namespace, name), None)
        if claim is None:
            return False
        volume = self.volumes.get(claim.volume_name or "")
        if volume is not None:
            if volume.reclaim_policy == "Delete":
                del self.volumes[volume.name]
            else:
                volume.phase = "Released"
        return True

    # Pods

    async def list_pods(self, namespace):
        self._record("list_pods", namespace)
        return [pod.model_copy(deep=True) for (ns, _), pod in self.pods.items() if ns == namespace]

    async def get_pod(self, namespace, name):
        self._record("get_pod", namespace, name)
        pod = self.pods.get((namespace, name))
        return pod.model_copy(deep=True) if pod else None

    async def create_pod(self, spec):
        self._record("create_pod", spec.namespace, spec.name)
        self.worker_specs[spec.name] = spec

        phase, logs = self.worker_outcomes.get(spec.name, (PodPhase.SUCCEEDED, ""))
        if spec.name.startswith("size-check-") and spec.name not in self.worker_outcomes:
            claim = spec.mounts[0].claim_name
            logs = f"{self.used_bytes.get(claim, 0)}\n"
        self.worker_logs[spec.name] = logs

        pod = PodInfo(
            namespace=spec.namespace,
            name=spec.name,
            phase=phase,
            claim_volumes={f"vol-{i}": m.claim_name for i, m in enumerate(spec.mounts)},
        )
        self.pods[(spec.namespace, spec.name)] = pod
        return pod.model_copy(deep=True)

    async def delete_pod(self, namespace, name, grace_period_seconds=None):
        self._record("delete_pod", namespace, name, grace_period_seconds)
        pod = self.pods.get((namespace, name))
        if pod is None:
            return False
        if name in self.sticky_pods and grace_period_seconds != 0:
            pod.deleting = True
        else:
            del self.pods[(namespace, name)]
        return True

    async def read_pod_log(self, namespace, name):
        self._record("read_pod_log", namespace, name)
        return self.worker_logs.get(name, "")

    # Deployments

    async def list_deployments(self, namespace):
        self._record("list_deployments", namespace)
        return [d.model_copy(deep=True) for (ns, _), d in self.deployments.items() if ns == namespace]

    async def scale_deployment(self, namespace, name, replicas):
        self._record("scale_deployment", namespace, name, replicas)
        self.deployments[(namespace, name)].replicas = replicas
        if replicas == 0:
            for key, pod in list(self.pods.items()):
                if pod.owner_name and pod.owner_name.startswith(f"{name}-") and key[1] not in self.sticky_pods:
                    del self.pods[key]

    # Storage

    async def get_storage_class(self, name):
        self._record("get_storage_class", name)
        return self.storage_classes.get(name)

    async def get_volume(self, name):
        self._record("get_volume", name)
        volume = self.volumes.get(name)
        return volume.model_copy(deep=True) if volume else None

    async def patch_volume_reclaim_policy(self, name, policy):
        self._record("patch_volume_reclaim_policy", name, policy)
        self.volumes[name].reclaim_policy = policy

    async def bind_volume_to_claim(self, volume_name, claim):
        self._record("bind_volume_to_claim", volume_name, claim.name)
        volume = self.volumes[volume_name]
        volume.claim_namespace = claim.namespace
        volume.claim_name = claim.name
        volume.phase = "Bound"


class MockCall:
    """Mock call_next function for middleware testing."""

    def __init__(self, return_value=None, exception=None, delay=0):
        self.return_value = return_value or {"status": "success"}
        self.exception = exception
        self.delay = delay
        self.call_count = 0

    async def __call__(self, context):
        self.call_count += 1
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.exception:
            raise self.exception
        return self.return_value


@pytest.fixture
def cluster() -> FakeCluster:
    """Empty in-memory cluster."""
    return FakeCluster()


@pytest.fixture
def fast_policies() -> PollPolicies:
    """Polling policies with zero intervals and small budgets."""
    return PollPolicies(
        short=PollPolicy(0, max_attempts=3),
        drain=PollPolicy(0, max_attempts=3),
        pod_delete=PollPolicy(0, max_attempts=2),
        transfer=PollPolicy(0, max_attempts=3),
    )


@pytest.fixture
def config() -> KubeVolumeConfig:
    """Default configuration without reading files."""
    return KubeVolumeConfig()


@pytest.fixture
def mock_context():
    """MiddlewareContext stand-in for a kube_volume tool call."""
    context = MagicMock()
    context.method = "tools/call"
    context.source = "client"
    context.type = "request"
    context.timestamp = 1640995200.0
    context.message = SimpleNamespace(
        name="kube_volume",
        arguments={"action": "resize", "namespace": "ns", "name": "data", "size": "10Gi"},
    )
    return context


@pytest.fixture
def logging_middleware() -> LoggingMiddleware:
    return LoggingMiddleware(include_payloads=True, max_payload_length=100)


@pytest.fixture
def error_middleware() -> ErrorHandlingMiddleware:
    return ErrorHandlingMiddleware(include_traceback=False, track_error_stats=True)


@pytest.fixture
def timing_middleware() -> TimingMiddleware:
    return TimingMiddleware(slow_request_threshold_ms=50.0)
