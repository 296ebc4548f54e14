"""Tests for safe volume claim deletion."""

from unittest.mock import AsyncMock

import pytest

from kube_volume_mcp.core.exceptions import ClusterAPIError, DeletionError, OperationTimeoutError
from kube_volume_mcp.core.migration import VolumeDeleter
from kube_volume_mcp.models.volume import ScaledDeployment


@pytest.fixture
def deleter(cluster, fast_policies):
    return VolumeDeleter(cluster, policies=fast_policies)


class TestVolumeDeleter:
    """Test suite for VolumeDeleter."""

    @pytest.mark.asyncio
    async def test_delete_scales_referencing_deployment(self, cluster, deleter):
        """Deployment `app` with 2 replicas is scaled to 0 and stays there."""
        cluster.add_claim("ns", "data")
        cluster.add_deployment("ns", "app", "data", replicas=2)

        report = await deleter.delete("ns", "data")

        assert report.existed is True
        assert report.plan.scaled == [ScaledDeployment(name="app", original_replicas=2)]
        assert cluster.deployments[("ns", "app")].replicas == 0
        assert ("ns", "data") not in cluster.claims
        assert cluster.call_index("scale_deployment", "ns", "app", 0) < cluster.call_index(
            "delete_claim", "ns", "data"
        )

    @pytest.mark.asyncio
    async def test_delete_absent_claim_succeeds(self, cluster, deleter):
        report = await deleter.delete("ns", "missing")

        assert report.existed is False
        assert not cluster.called("delete_claim")

    @pytest.mark.asyncio
    async def test_delete_twice_is_idempotent(self, cluster, deleter):
        cluster.add_claim("ns", "data")

        first = await deleter.delete("ns", "data")
        second = await deleter.delete("ns", "data")

        assert first.existed is True
        assert second.existed is False

    @pytest.mark.asyncio
    async def test_claim_vanishing_before_delete_call_succeeds(self, cluster, deleter, monkeypatch):
        cluster.add_claim("ns", "data")
        monkeypatch.setattr(cluster, "delete_claim", AsyncMock(return_value=False))

        report = await deleter.delete("ns", "data")

        assert report.existed is True
        cluster.delete_claim.assert_awaited_once_with("ns", "data")

    @pytest.mark.asyncio
    async def test_waits_for_pods_before_deleting_claim(self, cluster, deleter):
        cluster.add_claim("ns", "data")
        cluster.add_pod("ns", "web", "data")
        cluster.add_pod("ns", "other", "logs")

        report = await deleter.delete("ns", "data")

        assert report.drained_pods == ["web"]
        assert ("ns", "other") in cluster.pods
        last_pod_check = max(
            index for index, call in enumerate(cluster.calls) if call[0] == "list_pods"
        )
        assert last_pod_check < cluster.call_index("delete_claim", "ns", "data")

    @pytest.mark.asyncio
    async def test_stuck_pod_is_force_deleted(self, cluster, deleter):
        cluster.add_claim("ns", "data")
        cluster.add_pod("ns", "web", "data")
        cluster.sticky_pods.add("web")

        report = await deleter.delete("ns", "data")

        assert cluster.called("delete_pod", "ns", "web", 0)
        assert any("force deleted" in line for line in report.progress)
        assert ("ns", "data") not in cluster.claims

    @pytest.mark.asyncio
    async def test_claim_not_disappearing_is_an_error(self, cluster, deleter, monkeypatch):
        cluster.add_claim("ns", "data")
        monkeypatch.setattr(cluster, "delete_claim", AsyncMock(return_value=True))

        with pytest.raises(DeletionError) as exc_info:
            await deleter.delete("ns", "data")

        assert isinstance(exc_info.value.__cause__, OperationTimeoutError)

    @pytest.mark.asyncio
    async def test_scale_failure_aborts_before_delete(self, cluster, deleter):
        cluster.add_claim("ns", "data")
        cluster.add_deployment("ns", "app", "data", replicas=1)
        cluster.inject("scale_deployment", ClusterAPIError("scale", "deployment ns/app", "forbidden", 403))

        with pytest.raises(DeletionError, match="forbidden"):
            await deleter.delete("ns", "data")

        assert ("ns", "data") in cluster.claims

    @pytest.mark.asyncio
    async def test_dry_run_reports_plan_only(self, cluster, deleter):
        cluster.add_claim("ns", "data")
        cluster.add_deployment("ns", "app", "data", replicas=3)

        report = await deleter.delete("ns", "data", dry_run=True)

        assert report.dry_run is True
        assert report.plan is None
        assert cluster.deployments[("ns", "app")].replicas == 3
        assert ("ns", "data") in cluster.claims
        assert any("Would scale deployment app to 0 (now 3)" in line for line in report.progress)

    @pytest.mark.asyncio
    async def test_deployment_already_at_zero_not_recorded(self, cluster, deleter):
        cluster.add_claim("ns", "data")
        cluster.add_deployment("ns", "idle", "data", replicas=0)

        report = await deleter.delete("ns", "data")

        assert report.plan.scaled == []
        assert not cluster.called("scale_deployment")
