"""Tests for tool parameter and volume models."""

import pytest
from pydantic import ValidationError

from kube_volume_mcp.models.enums import ClaimPhase, PodPhase, ResizeState, VolumeAction
from kube_volume_mcp.models.params import KubeVolumeParams
from kube_volume_mcp.models.volume import PodInfo, ResizeReport, VolumeClaim


class TestKubeVolumeParams:
    """Validation of kube_volume arguments."""

    @pytest.mark.parametrize("action", ["resize", "RESIZE", "VolumeAction.RESIZE", VolumeAction.RESIZE])
    def test_action_formats(self, action):
        params = KubeVolumeParams(action=action, namespace="ns", name="data", size=" 10Gi ")

        assert params.action == VolumeAction.RESIZE
        assert params.size == "10Gi"

    def test_list_needs_nothing(self):
        params = KubeVolumeParams()

        assert params.action == VolumeAction.LIST
        assert params.confirm is False

    @pytest.mark.parametrize("action", ["info", "resize", "delete"])
    def test_claim_identity_required(self, action):
        with pytest.raises(ValidationError, match="namespace and name are required"):
            KubeVolumeParams(action=action, namespace="ns", size="1Gi")

    def test_resize_requires_size(self):
        with pytest.raises(ValidationError, match="size is required"):
            KubeVolumeParams(action="resize", namespace="ns", name="data")

    @pytest.mark.parametrize("namespace", ["Default", "ns_1", "-ns", "a" * 64])
    def test_namespace_must_be_dns_label(self, namespace):
        with pytest.raises(ValidationError):
            KubeVolumeParams(action="info", namespace=namespace, name="data")

    def test_claim_name_may_contain_dots(self):
        params = KubeVolumeParams(action="info", namespace="ns", name="data.db-0")

        assert params.name == "data.db-0"

    def test_unknown_action(self):
        with pytest.raises(ValidationError):
            KubeVolumeParams(action="expand")


class TestVolumeModels:
    """Behaviour on the volume models."""

    def test_as_fresh_strips_cluster_state(self):
        claim = VolumeClaim(
            namespace="ns",
            name="data",
            capacity="5Gi",
            phase=ClaimPhase.BOUND,
            labels={"app": "db"},
            annotations={
                "pv.kubernetes.io/bind-completed": "yes",
                "volume.kubernetes.io/storage-provisioner": "local",
                "team": "storage",
            },
            volume_name="pv-1",
            uid="abc",
            resource_version="9",
        )

        fresh = claim.as_fresh("data-new")

        assert fresh.name == "data-new"
        assert fresh.annotations == {"team": "storage"}
        assert fresh.labels == {"app": "db"}
        assert fresh.volume_name == "pv-1"
        assert (fresh.uid, fresh.resource_version, fresh.phase) == (None, None, None)
        assert claim.annotations["pv.kubernetes.io/bind-completed"] == "yes"

    def test_pod_mount_name(self):
        pod = PodInfo(namespace="ns", name="web", claim_volumes={"storage": "data", "cache": "tmp"})

        assert pod.mount_name_for("data") == "storage"
        assert pod.mount_name_for("other") is None

    def test_terminal_pod_phases(self):
        assert PodPhase.SUCCEEDED.is_terminal
        assert PodPhase.FAILED.is_terminal
        assert not PodPhase.RUNNING.is_terminal

    def test_source_at_risk_states(self):
        at_risk = {state for state in ResizeState if state.source_at_risk}

        assert at_risk == {
            ResizeState.DELETE_SOURCE,
            ResizeState.AWAIT_SOURCE_GONE,
            ResizeState.RENAME_TARGET,
            ResizeState.CLEANUP_TEMP,
        }

    def test_report_records_transitions(self):
        report = ResizeReport(namespace="ns", name="data", target_size="10Gi")

        report.enter(ResizeState.PAUSE_CONSUMERS)
        report.enter(ResizeState.PROVISION_TARGET)

        assert report.state == ResizeState.PROVISION_TARGET
        assert report.transitions == [ResizeState.PAUSE_CONSUMERS, ResizeState.PROVISION_TARGET]
