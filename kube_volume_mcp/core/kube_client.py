"""Cluster API boundary for volume orchestration.

All reads and writes of cluster state go through ``KubeClusterClient``. It
wraps the synchronous ``kubernetes`` client, runs each request in a worker
thread, and converts API objects to and from the plain models in
``kube_volume_mcp.models``. Orchestration code never touches ``kubernetes``
types directly.
"""

import asyncio
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

import structlog
from kubernetes import client
from kubernetes import config as kube_config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError as TransportError

from ..models.enums import ClaimPhase, PodPhase
from ..models.volume import (
    DeploymentInfo,
    PersistentVolumeInfo,
    PodInfo,
    StorageClassInfo,
    VolumeClaim,
    WorkerSpec,
)
from .config_loader import KubeConnection
from .exceptions import ClusterAPIError, ConfigurationError

logger = structlog.get_logger()

T = TypeVar("T")


class ClusterAPI(Protocol):
    """Operations the volume workflows need from the cluster."""

    async def get_claim(self, namespace: str, name: str) -> VolumeClaim | None: ...

    async def list_claims(self, namespace: str | None = None) -> list[VolumeClaim]: ...

    async def create_claim(self, claim: VolumeClaim) -> VolumeClaim: ...

    async def delete_claim(self, namespace: str, name: str) -> bool: ...

    async def list_pods(self, namespace: str) -> list[PodInfo]: ...

    async def get_pod(self, namespace: str, name: str) -> PodInfo | None: ...

    async def create_pod(self, spec: WorkerSpec) -> PodInfo: ...

    async def delete_pod(
        self, namespace: str, name: str, grace_period_seconds: int | None = None
    ) -> bool: ...

    async def read_pod_log(self, namespace: str, name: str) -> str: ...

    async def list_deployments(self, namespace: str) -> list[DeploymentInfo]: ...

    async def scale_deployment(self, namespace: str, name: str, replicas: int) -> None: ...

    async def get_storage_class(self, name: str) -> StorageClassInfo | None: ...

    async def get_volume(self, name: str) -> PersistentVolumeInfo | None: ...

    async def patch_volume_reclaim_policy(self, name: str, policy: str) -> None: ...

    async def bind_volume_to_claim(self, volume_name: str, claim: VolumeClaim) -> None: ...


def claim_from_k8s(pvc: client.V1PersistentVolumeClaim) -> VolumeClaim:
    """Convert an API claim object to a VolumeClaim."""
    metadata = pvc.metadata
    spec = pvc.spec
    requests = (spec.resources.requests or {}) if spec.resources else {}
    phase = pvc.status.phase if pvc.status else None

    return VolumeClaim(
        namespace=metadata.namespace,
        name=metadata.name,
        capacity=requests.get("storage"),
        storage_class=spec.storage_class_name,
        access_modes=list(spec.access_modes or []),
        volume_mode=spec.volume_mode,
        phase=ClaimPhase(phase) if phase else None,
        labels=dict(metadata.labels or {}),
        annotations=dict(metadata.annotations or {}),
        volume_name=spec.volume_name,
        uid=metadata.uid,
        resource_version=metadata.resource_version,
        created_at=metadata.creation_timestamp,
    )


def claim_to_k8s(claim: VolumeClaim) -> client.V1PersistentVolumeClaim:
    """Build a fresh API claim object; cluster-assigned fields are never sent."""
    return client.V1PersistentVolumeClaim(
        api_version="v1",
        kind="PersistentVolumeClaim",
        metadata=client.V1ObjectMeta(
            name=claim.name,
            namespace=claim.namespace,
            labels=claim.labels or None,
            annotations=claim.annotations or None,
        ),
        spec=client.V1PersistentVolumeClaimSpec(
            access_modes=claim.access_modes or None,
            storage_class_name=claim.storage_class,
            volume_mode=claim.volume_mode,
            volume_name=claim.volume_name,
            resources=client.V1VolumeResourceRequirements(
                requests={"storage": claim.capacity},
            ),
        ),
    )


def pod_from_k8s(pod: client.V1Pod) -> PodInfo:
    """Convert an API pod object to a PodInfo."""
    metadata = pod.metadata
    claim_volumes: dict[str, str] = {}
    for volume in (pod.spec.volumes if pod.spec else None) or []:
        if volume.persistent_volume_claim is not None:
            claim_volumes[volume.name] = volume.persistent_volume_claim.claim_name

    owner_kind = owner_name = None
    for ref in metadata.owner_references or []:
        if ref.controller or owner_kind is None:
            owner_kind, owner_name = ref.kind, ref.name

    phase = pod.status.phase if pod.status else None
    return PodInfo(
        namespace=metadata.namespace,
        name=metadata.name,
        phase=PodPhase(phase) if phase else PodPhase.UNKNOWN,
        claim_volumes=claim_volumes,
        owner_kind=owner_kind,
        owner_name=owner_name,
        deleting=metadata.deletion_timestamp is not None,
    )


def worker_to_k8s(spec: WorkerSpec) -> client.V1Pod:
    """Build the single-container, never-restarting worker pod."""
    volumes = []
    mounts = []
    for index, mount in enumerate(spec.mounts):
        volume_name = f"vol-{index}"
        volumes.append(
            client.V1Volume(
                name=volume_name,
                persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                    claim_name=mount.claim_name,
                    read_only=mount.read_only,
                ),
            )
        )
        mounts.append(
            client.V1VolumeMount(
                name=volume_name,
                mount_path=mount.mount_path,
                read_only=mount.read_only,
            )
        )

    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=spec.name,
            namespace=spec.namespace,
            labels=spec.labels or None,
        ),
        spec=client.V1PodSpec(
            restart_policy="Never",
            containers=[
                client.V1Container(
                    name=spec.container_name,
                    image=spec.image,
                    command=["sh", "-c", spec.script],
                    volume_mounts=mounts,
                )
            ],
            volumes=volumes,
        ),
    )


def deployment_from_k8s(deployment: client.V1Deployment) -> DeploymentInfo:
    """Convert an API deployment to a DeploymentInfo."""
    template_spec = deployment.spec.template.spec if deployment.spec.template else None
    claim_names = [
        volume.persistent_volume_claim.claim_name
        for volume in (template_spec.volumes if template_spec else None) or []
        if volume.persistent_volume_claim is not None
    ]
    replicas = deployment.spec.replicas
    return DeploymentInfo(
        namespace=deployment.metadata.namespace,
        name=deployment.metadata.name,
        replicas=1 if replicas is None else replicas,
        claim_names=claim_names,
    )


class KubeClusterClient:
    """Kubernetes API access for the volume workflows."""

    def __init__(self, connection: KubeConnection, api_client: client.ApiClient | None = None):
        self.connection = connection
        self.logger = logger.bind(component="kube_client")
        self._api_client = api_client
        self._core: client.CoreV1Api | None = None
        self._apps: client.AppsV1Api | None = None
        self._storage: client.StorageV1Api | None = None

    def _load_api_client(self) -> client.ApiClient:
        """Load cluster credentials from kubeconfig, falling back to in-cluster."""
        if self.connection.in_cluster:
            try:
                kube_config.load_incluster_config()
            except ConfigException as e:
                raise ConfigurationError(f"In-cluster configuration unavailable: {e}") from e
            return client.ApiClient()

        try:
            return kube_config.new_client_from_config(
                config_file=self.connection.kubeconfig,
                context=self.connection.context,
            )
        except (ConfigException, FileNotFoundError) as kubeconfig_error:
            try:
                kube_config.load_incluster_config()
            except ConfigException:
                raise ConfigurationError(
                    f"Unable to load kubeconfig: {kubeconfig_error}"
                ) from kubeconfig_error
            self.logger.info("Kubeconfig unavailable, using in-cluster configuration")
            return client.ApiClient()

    def _ensure_apis(self) -> None:
        if self._core is not None:
            return
        if self._api_client is None:
            self._api_client = self._load_api_client()
            self.logger.info(
                "Cluster client initialized",
                kubeconfig=self.connection.kubeconfig,
                context=self.connection.context,
                in_cluster=self.connection.in_cluster,
            )
        self._core = client.CoreV1Api(self._api_client)
        self._apps = client.AppsV1Api(self._api_client)
        self._storage = client.StorageV1Api(self._api_client)

    @property
    def core(self) -> client.CoreV1Api:
        self._ensure_apis()
        return self._core

    @property
    def apps(self) -> client.AppsV1Api:
        self._ensure_apis()
        return self._apps

    @property
    def storage(self) -> client.StorageV1Api:
        self._ensure_apis()
        return self._storage

    async def _call(
        self,
        operation: str,
        target: str,
        func: Callable[..., T],
        *args: Any,
        missing_ok: bool = False,
        **kwargs: Any,
    ) -> T | None:
        """Run a blocking API call in a thread, mapping API failures.

        With ``missing_ok`` a 404 returns None instead of raising.
        """
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except ApiException as e:
            if missing_ok and e.status == 404:
                return None
            reason = e.reason or str(e)
            self.logger.error(
                "Cluster API call failed",
                operation=operation,
                target=target,
                status=e.status,
                reason=reason,
            )
            raise ClusterAPIError(operation, target, reason, status=e.status) from e
        except TransportError as e:
            self.logger.error(
                "Cluster unreachable", operation=operation, target=target, error=str(e)
            )
            raise ClusterAPIError(operation, target, f"cluster unreachable: {e}") from e

    # Volume claims

    async def get_claim(self, namespace: str, name: str) -> VolumeClaim | None:
        pvc = await self._call(
            "get",
            f"claim {namespace}/{name}",
            self.core.read_namespaced_persistent_volume_claim,
            name,
            namespace,
            missing_ok=True,
        )
        return claim_from_k8s(pvc) if pvc is not None else None

    async def list_claims(self, namespace: str | None = None) -> list[VolumeClaim]:
        if namespace:
            result = await self._call(
                "list",
                f"claims in {namespace}",
                self.core.list_namespaced_persistent_volume_claim,
                namespace,
            )
        else:
            result = await self._call(
                "list",
                "claims in all namespaces",
                self.core.list_persistent_volume_claim_for_all_namespaces,
            )
        return [claim_from_k8s(item) for item in result.items]

    async def create_claim(self, claim: VolumeClaim) -> VolumeClaim:
        created = await self._call(
            "create",
            f"claim {claim.key}",
            self.core.create_namespaced_persistent_volume_claim,
            claim.namespace,
            claim_to_k8s(claim),
        )
        return claim_from_k8s(created)

    async def delete_claim(self, namespace: str, name: str) -> bool:
        result = await self._call(
            "delete",
            f"claim {namespace}/{name}",
            self.core.delete_namespaced_persistent_volume_claim,
            name,
            namespace,
            missing_ok=True,
        )
        return result is not None

    # Pods

    async def list_pods(self, namespace: str) -> list[PodInfo]:
        result = await self._call(
            "list", f"pods in {namespace}", self.core.list_namespaced_pod, namespace
        )
        return [pod_from_k8s(item) for item in result.items]

    async def get_pod(self, namespace: str, name: str) -> PodInfo | None:
        pod = await self._call(
            "get",
            f"pod {namespace}/{name}",
            self.core.read_namespaced_pod,
            name,
            namespace,
            missing_ok=True,
        )
        return pod_from_k8s(pod) if pod is not None else None

    async def create_pod(self, spec: WorkerSpec) -> PodInfo:
        created = await self._call(
            "create",
            f"pod {spec.namespace}/{spec.name}",
            self.core.create_namespaced_pod,
            spec.namespace,
            worker_to_k8s(spec),
        )
        return pod_from_k8s(created)

    async def delete_pod(
        self, namespace: str, name: str, grace_period_seconds: int | None = None
    ) -> bool:
        body = client.V1DeleteOptions(grace_period_seconds=grace_period_seconds)
        result = await self._call(
            "delete",
            f"pod {namespace}/{name}",
            self.core.delete_namespaced_pod,
            name,
            namespace,
            body=body,
            missing_ok=True,
        )
        return result is not None

    async def read_pod_log(self, namespace: str, name: str) -> str:
        logs = await self._call(
            "read logs of",
            f"pod {namespace}/{name}",
            self.core.read_namespaced_pod_log,
            name,
            namespace,
        )
        return logs or ""

    # Deployments

    async def list_deployments(self, namespace: str) -> list[DeploymentInfo]:
        result = await self._call(
            "list", f"deployments in {namespace}", self.apps.list_namespaced_deployment, namespace
        )
        return [deployment_from_k8s(item) for item in result.items]

    async def scale_deployment(self, namespace: str, name: str, replicas: int) -> None:
        await self._call(
            "scale",
            f"deployment {namespace}/{name}",
            self.apps.patch_namespaced_deployment_scale,
            name,
            namespace,
            {"spec": {"replicas": replicas}},
        )

    # Cluster-scoped storage objects

    async def get_storage_class(self, name: str) -> StorageClassInfo | None:
        sc = await self._call(
            "get",
            f"storage class {name}",
            self.storage.read_storage_class,
            name,
            missing_ok=True,
        )
        if sc is None:
            return None
        return StorageClassInfo(
            name=sc.metadata.name,
            provisioner=sc.provisioner or "",
        )

    async def get_volume(self, name: str) -> PersistentVolumeInfo | None:
        pv = await self._call(
            "get",
            f"persistent volume {name}",
            self.core.read_persistent_volume,
            name,
            missing_ok=True,
        )
        if pv is None:
            return None
        claim_ref = pv.spec.claim_ref
        return PersistentVolumeInfo(
            name=pv.metadata.name,
            reclaim_policy=pv.spec.persistent_volume_reclaim_policy,
            claim_namespace=claim_ref.namespace if claim_ref else None,
            claim_name=claim_ref.name if claim_ref else None,
            phase=pv.status.phase if pv.status else None,
        )

    async def patch_volume_reclaim_policy(self, name: str, policy: str) -> None:
        await self._call(
            "set reclaim policy of",
            f"persistent volume {name}",
            self.core.patch_persistent_volume,
            name,
            {"spec": {"persistentVolumeReclaimPolicy": policy}},
        )

    async def bind_volume_to_claim(self, volume_name: str, claim: VolumeClaim) -> None:
        """Point a released volume's claimRef at ``claim``."""
        claim_ref = {
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "namespace": claim.namespace,
            "name": claim.name,
            "uid": claim.uid,
            "resourceVersion": claim.resource_version,
        }
        await self._call(
            "re-point",
            f"persistent volume {volume_name}",
            self.core.patch_persistent_volume,
            volume_name,
            {"spec": {"claimRef": claim_ref}},
        )
