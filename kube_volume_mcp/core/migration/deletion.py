"""Safe deletion of a volume claim that may still be in use."""

import structlog

from ...models.volume import DeletionPlan, DeletionReport
from ..exceptions import DeletionError, KubeVolumeError
from ..kube_client import ClusterAPI
from ..logging_config import ProgressReporter
from ..polling import PollPolicies
from ..settings import VolumeTimeoutSettings, timeout_settings
from .consumers import ConsumerTracker
from .pause import WorkloadPauseCoordinator
from .provisioner import VolumeProvisioner

logger = structlog.get_logger()


class VolumeDeleter:
    """Scale referencing deployments down, drain pods, then delete the claim.

    Deleting a claim that does not exist succeeds. Scaled deployments stay at
    zero replicas; the ``DeletionPlan`` records what they were.
    """

    def __init__(
        self,
        cluster: ClusterAPI,
        settings: VolumeTimeoutSettings | None = None,
        policies: PollPolicies | None = None,
    ):
        settings = settings or timeout_settings
        policies = policies or PollPolicies.from_settings(settings)
        self.cluster = cluster
        self.tracker = ConsumerTracker(cluster)
        self.pause = WorkloadPauseCoordinator(cluster, self.tracker, policies.drain, policies.pod_delete)
        self.provisioner = VolumeProvisioner(cluster, policies.short, settings.temp_claim_suffix)
        self.logger = logger.bind(component="volume_deleter")

    async def delete(
        self,
        namespace: str,
        name: str,
        dry_run: bool = False,
        progress: ProgressReporter | None = None,
    ) -> DeletionReport:
        progress = progress or ProgressReporter("delete", namespace=namespace, claim=name)
        report = DeletionReport(namespace=namespace, name=name, dry_run=dry_run)
        report.progress = progress.lines

        claim = await self.cluster.get_claim(namespace, name)
        if claim is None:
            report.existed = False
            progress.success(f"Volume claim {namespace}/{name} does not exist, nothing to delete")
            return report

        deployments = await self.tracker.find_deployments(namespace, name)
        if dry_run:
            pods = await self.tracker.find_pods(namespace, name)
            for deployment in deployments:
                progress.detail(f"Would scale deployment {deployment.name} to 0 (now {deployment.replicas})")
            for pod in pods:
                progress.detail(f"Would wait for pod {pod.name} to terminate")
            progress.detail(f"Would delete volume claim {namespace}/{name}")
            progress.success("Dry run complete, no changes made")
            return report

        try:
            await self._delete(report, deployments, progress)
        except KubeVolumeError as e:
            progress.error(f"Failed to delete volume claim {namespace}/{name}: {e}")
            raise DeletionError(f"failed to delete volume claim {namespace}/{name}: {e}") from e

        progress.success(f"Deleted volume claim {namespace}/{name}")
        return report

    async def _delete(self, report: DeletionReport, deployments, progress: ProgressReporter) -> None:
        namespace, name = report.namespace, report.name

        report.plan = DeletionPlan(namespace=namespace, claim=name)
        if deployments:
            progress.step(f"Scaling down {len(deployments)} deployment(s) using the volume")
        report.plan.scaled = await self.pause.scale_to_zero(namespace, deployments)
        for scaled in report.plan.scaled:
            progress.detail(f"Scaled deployment {scaled.name} to 0 (was {scaled.original_replicas})")

        pods = await self.tracker.find_pods(namespace, name)
        if pods:
            progress.step(f"Waiting for {len(pods)} pod(s) to terminate")
        for pod in pods:
            forced = await self.pause.delete_pod_and_wait(namespace, pod.name)
            report.drained_pods.append(pod.name)
            if forced:
                progress.warn(f"Pod {pod.name} was force deleted")
        await self.pause.wait_for_drain(namespace, name)

        progress.step(f"Deleting volume claim {namespace}/{name}")
        if not await self.cluster.delete_claim(namespace, name):
            self.logger.info("Claim already gone", namespace=namespace, claim=name)
            return
        await self.provisioner.wait_gone(namespace, name)
