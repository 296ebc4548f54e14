"""Tests for the kubernetes client boundary."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from kube_volume_mcp.core.config_loader import KubeConnection
from kube_volume_mcp.core.exceptions import ClusterAPIError
from kube_volume_mcp.core.kube_client import (
    KubeClusterClient,
    claim_from_k8s,
    claim_to_k8s,
    deployment_from_k8s,
    pod_from_k8s,
    worker_to_k8s,
)
from kube_volume_mcp.models.enums import ClaimPhase, PodPhase
from kube_volume_mcp.models.volume import VolumeClaim, WorkerMount, WorkerSpec


def make_pvc(name="data", phase="Bound") -> client.V1PersistentVolumeClaim:
    return client.V1PersistentVolumeClaim(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace="ns",
            uid="abc-123",
            resource_version="42",
            creation_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
            labels={"app": "db"},
            annotations={"pv.kubernetes.io/bind-completed": "yes"},
        ),
        spec=client.V1PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            storage_class_name="standard",
            volume_mode="Filesystem",
            volume_name="pv-1",
            resources=client.V1VolumeResourceRequirements(requests={"storage": "5Gi"}),
        ),
        status=client.V1PersistentVolumeClaimStatus(phase=phase),
    )


def pvc_volume(name: str, claim: str) -> client.V1Volume:
    return client.V1Volume(
        name=name,
        persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(claim_name=claim),
    )


class TestConversions:
    """Conversion between API objects and models."""

    def test_claim_from_k8s(self):
        claim = claim_from_k8s(make_pvc())

        assert claim.key == "ns/data"
        assert claim.capacity == "5Gi"
        assert claim.phase == ClaimPhase.BOUND
        assert claim.volume_name == "pv-1"
        assert claim.uid == "abc-123"
        assert claim.resource_version == "42"

    def test_fresh_claim_to_k8s_has_no_cluster_state(self):
        fresh = claim_from_k8s(make_pvc()).as_fresh("data")

        pvc = claim_to_k8s(fresh)

        assert pvc.metadata.uid is None
        assert pvc.metadata.resource_version is None
        assert pvc.metadata.annotations is None
        assert pvc.status is None
        assert pvc.spec.volume_name == "pv-1"
        assert pvc.spec.resources.requests == {"storage": "5Gi"}

    def test_pod_from_k8s(self):
        pod = client.V1Pod(
            metadata=client.V1ObjectMeta(
                name="app-5d9c7b8f4-x2",
                namespace="ns",
                owner_references=[
                    client.V1OwnerReference(
                        api_version="apps/v1", kind="ReplicaSet", name="app-5d9c7b8f4", uid="u", controller=True
                    )
                ],
            ),
            spec=client.V1PodSpec(
                containers=[client.V1Container(name="app")],
                volumes=[pvc_volume("storage", "data"), client.V1Volume(name="tmp")],
            ),
            status=client.V1PodStatus(phase="Running"),
        )

        info = pod_from_k8s(pod)

        assert info.claim_volumes == {"storage": "data"}
        assert info.owner_kind == "ReplicaSet"
        assert info.owner_name == "app-5d9c7b8f4"
        assert info.phase == PodPhase.RUNNING
        assert info.deleting is False

    def test_worker_to_k8s(self):
        spec = WorkerSpec(
            namespace="ns",
            name="transfer-pod-data",
            image="busybox",
            script="cp -av /source/. /target/",
            mounts=[
                WorkerMount(claim_name="data", mount_path="/source", read_only=True),
                WorkerMount(claim_name="data-new", mount_path="/target"),
            ],
        )

        pod = worker_to_k8s(spec)

        assert pod.spec.restart_policy == "Never"
        container = pod.spec.containers[0]
        assert container.command == ["sh", "-c", "cp -av /source/. /target/"]
        assert [(m.mount_path, m.read_only) for m in container.volume_mounts] == [
            ("/source", True),
            ("/target", False),
        ]
        assert pod.spec.volumes[0].persistent_volume_claim.read_only is True

    def test_deployment_from_k8s(self):
        deployment = client.V1Deployment(
            metadata=client.V1ObjectMeta(name="app", namespace="ns"),
            spec=client.V1DeploymentSpec(
                replicas=None,
                selector=client.V1LabelSelector(match_labels={"app": "app"}),
                template=client.V1PodTemplateSpec(
                    spec=client.V1PodSpec(
                        containers=[client.V1Container(name="app")],
                        volumes=[pvc_volume("storage", "data")],
                    )
                ),
            ),
        )

        info = deployment_from_k8s(deployment)

        assert info.replicas == 1
        assert info.claim_names == ["data"]


class TestKubeClusterClient:
    """API error mapping."""

    @pytest.fixture
    def kube(self):
        cluster = KubeClusterClient(KubeConnection(), api_client=MagicMock())
        cluster._core = MagicMock()
        cluster._apps = MagicMock()
        cluster._storage = MagicMock()
        return cluster

    @pytest.mark.asyncio
    async def test_get_claim_missing_returns_none(self, kube):
        kube.core.read_namespaced_persistent_volume_claim.side_effect = ApiException(status=404, reason="Not Found")

        assert await kube.get_claim("ns", "data") is None

    @pytest.mark.asyncio
    async def test_get_claim(self, kube):
        kube.core.read_namespaced_persistent_volume_claim.return_value = make_pvc()

        claim = await kube.get_claim("ns", "data")

        assert claim.name == "data"
        kube.core.read_namespaced_persistent_volume_claim.assert_called_once_with("data", "ns")

    @pytest.mark.asyncio
    async def test_delete_missing_claim_returns_false(self, kube):
        kube.core.delete_namespaced_persistent_volume_claim.side_effect = ApiException(status=404)

        assert await kube.delete_claim("ns", "data") is False

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self, kube):
        kube.core.create_namespaced_persistent_volume_claim.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        with pytest.raises(ClusterAPIError, match="failed to create claim ns/data-new: Forbidden") as exc_info:
            await kube.create_claim(VolumeClaim(namespace="ns", name="data-new", capacity="10Gi"))

        assert exc_info.value.status == 403

    @pytest.mark.asyncio
    async def test_force_delete_pod_sends_zero_grace(self, kube):
        await kube.delete_pod("ns", "web", grace_period_seconds=0)

        _, kwargs = kube.core.delete_namespaced_pod.call_args
        assert kwargs["body"].grace_period_seconds == 0

    @pytest.mark.asyncio
    async def test_scale_deployment_patches_scale(self, kube):
        await kube.scale_deployment("ns", "app", 0)

        kube.apps.patch_namespaced_deployment_scale.assert_called_once_with(
            "app", "ns", {"spec": {"replicas": 0}}
        )

    @pytest.mark.asyncio
    async def test_bind_volume_uses_new_claim_identity(self, kube):
        claim = VolumeClaim(namespace="ns", name="data", uid="new-uid", resource_version="7")

        await kube.bind_volume_to_claim("pv-1", claim)

        args = kube.core.patch_persistent_volume.call_args.args
        assert args[0] == "pv-1"
        claim_ref = args[1]["spec"]["claimRef"]
        assert (claim_ref["name"], claim_ref["uid"], claim_ref["resourceVersion"]) == ("data", "new-uid", "7")
