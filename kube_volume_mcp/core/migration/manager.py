"""Resize orchestrator: migrate a claim onto a new, differently sized claim."""

import structlog

from ...models.enums import ResizeState
from ...models.volume import ResizeReport, VolumeClaim
from ..exceptions import (
    ClaimNotFoundError,
    KubeVolumeError,
    MigrationInProgressError,
    ResizeError,
    ShrinkNotPossibleError,
)
from ..kube_client import ClusterAPI
from ..logging_config import ProgressReporter
from ..polling import PollPolicies
from ..quantity import format_bytes, parse_size
from ..safety import MigrationSafety
from ..settings import VolumeTimeoutSettings, timeout_settings
from ..transfer import WorkerPodRunner, get_transfer
from .consumers import ConsumerTracker
from .data import DataMigrator, transfer_pod_name
from .pause import WorkloadPauseCoordinator
from .probe import CapacityProber
from .provisioner import VolumeProvisioner

logger = structlog.get_logger()

RETAIN = "Retain"


class VolumeResizer:
    """Orchestrates a resize as an ordered state machine.

    Validation raises typed input/precondition errors before anything is
    created. Failures up to and including the transfer worker's removal clean
    up the temporary claim and worker pod and raise ``ResizeError``. Once the
    source claim delete has been issued nothing is rolled back: hard failures
    raise ``ResizeError`` with ``source_deleted=True`` and soft failures end in
    ``DONE_WITH_WARNINGS``.
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
        self.logger = logger.bind(component="volume_resizer")

        image = settings.rsync_image if settings.transfer_method == "rsync" else settings.worker_image
        runner = WorkerPodRunner(cluster)
        self.tracker = ConsumerTracker(cluster)
        self.prober = CapacityProber(cluster, runner, policies.short, settings.worker_image)
        self.pause = WorkloadPauseCoordinator(cluster, self.tracker, policies.drain, policies.pod_delete)
        self.provisioner = VolumeProvisioner(cluster, policies.short, settings.temp_claim_suffix)
        self.migrator = DataMigrator(runner, get_transfer(settings.transfer_method, image), policies.transfer)
        self.safety = MigrationSafety(cluster, settings.temp_claim_suffix)

        # namespace/name of resizes running in this process
        self._in_flight: set[str] = set()

    async def resize(
        self,
        namespace: str,
        name: str,
        size: str,
        dry_run: bool = False,
        progress: ProgressReporter | None = None,
    ) -> ResizeReport:
        """Resize ``namespace/name`` to ``size``.

        Args:
            namespace: Namespace of the claim
            name: Claim name
            size: Target size such as "20Gi"
            dry_run: Validate and report the plan without creating anything
            progress: Receives human-readable progress lines

        Returns:
            Report of every step taken
        """
        progress = progress or ProgressReporter("resize", namespace=namespace, claim=name)
        key = f"{namespace}/{name}"
        if key in self._in_flight:
            raise MigrationInProgressError(f"a resize of {key} is already running")

        self._in_flight.add(key)
        try:
            report = ResizeReport(namespace=namespace, name=name, target_size=size, dry_run=dry_run)
            report.progress = progress.lines

            source, target_bytes = await self._validate(report, progress)
            if dry_run:
                self._describe_plan(report, progress)
                return report

            if report.probe_required:
                await self._check_shrink(report, target_bytes, progress)

            await self._migrate(report, source, progress)
            await self._finalize(report, source, progress)
            return report
        finally:
            self._in_flight.discard(key)

    async def _validate(
        self, report: ResizeReport, progress: ProgressReporter
    ) -> tuple[VolumeClaim, int]:
        report.enter(ResizeState.VALIDATING)
        namespace, name = report.namespace, report.name

        target_bytes = parse_size(report.target_size)

        source = await self.cluster.get_claim(namespace, name)
        if source is None:
            raise ClaimNotFoundError(namespace, name)
        report.current_size = source.capacity
        progress.step(f"Resizing {source.key} from {source.capacity} to {report.target_size}")

        await self._check_not_in_flight(source)
        await self.provisioner.validate_storage_class(source)

        current_bytes = parse_size(source.capacity) if source.capacity else None
        report.probe_required = current_bytes is None or target_bytes < current_bytes
        report.consumers = await self.tracker.find_consumers(namespace, name)
        return source, target_bytes

    async def _check_not_in_flight(self, source: VolumeClaim) -> None:
        temp_name = self.provisioner.temp_name(source.name)
        if await self.cluster.get_claim(source.namespace, temp_name) is not None:
            raise MigrationInProgressError(
                f"temporary claim {source.namespace}/{temp_name} already exists; "
                "another migration is in progress or was left behind"
            )
        worker = transfer_pod_name(source.name)
        if await self.cluster.get_pod(source.namespace, worker) is not None:
            raise MigrationInProgressError(
                f"transfer pod {source.namespace}/{worker} already exists; "
                "another migration is in progress or was left behind"
            )

    def _describe_plan(self, report: ResizeReport, progress: ProgressReporter) -> None:
        temp_name = self.provisioner.temp_name(report.name)
        if report.probe_required:
            progress.detail("Would measure used bytes (target is smaller than current size)")
        if report.consumers:
            names = ", ".join(f"{c.kind}/{c.name}" for c in report.consumers)
            progress.detail(f"Would stop consumers: {names}")
        progress.detail(f"Would create {report.namespace}/{temp_name} at {report.target_size}")
        progress.detail(f"Would copy data and recreate {report.namespace}/{report.name}")
        progress.success("Dry run complete, no changes made")

    async def _check_shrink(
        self, report: ResizeReport, target_bytes: int, progress: ProgressReporter
    ) -> None:
        progress.step("Measuring data size for shrink")
        used = await self.prober.measure(report.namespace, report.name)
        report.used_bytes = used
        progress.detail(f"Used {format_bytes(used)} of requested {format_bytes(target_bytes)}")
        if used > target_bytes:
            raise ShrinkNotPossibleError(used, target_bytes)

    async def _migrate(self, report: ResizeReport, source: VolumeClaim, progress: ProgressReporter) -> None:
        """Pause consumers, provision the target and copy the data."""
        namespace, name = report.namespace, report.name
        try:
            report.enter(ResizeState.PAUSE_CONSUMERS)
            if report.consumers:
                progress.step(f"Stopping {len(report.consumers)} consumer(s)")
            report.paused = await self.pause.pause(namespace, name)
            for scaled in report.paused.scaled:
                progress.detail(f"Scaled deployment {scaled.name} to 0 (was {scaled.original_replicas})")
            await self.pause.wait_for_drain(namespace, name)

            report.enter(ResizeState.PROVISION_TARGET)
            progress.step(f"Creating new volume claim with size {report.target_size}")
            temp = await self.provisioner.provision(source, report.target_size)
            report.temp_claim = temp.name

            report.enter(ResizeState.AWAIT_BOUND)
            progress.step(f"Waiting for {namespace}/{temp.name} to bind")
            await self.provisioner.wait_bound(namespace, temp.name)

            report.enter(ResizeState.TRANSFER_DATA)
            progress.step("Migrating data")
            report.job = await self.migrator.start(namespace, name, temp.name)
            await self.migrator.wait(namespace, report.job)
            progress.success("Data migration complete")

            await self.cluster.delete_pod(namespace, report.job.worker)
        except Exception as e:
            failed_at = report.state
            progress.error(f"Resize failed during {failed_at.value}: {e}")
            await self._cleanup(report, progress)
            report.enter(ResizeState.FAILED)
            raise ResizeError(
                f"resize of {namespace}/{name} failed during {failed_at.value}: {e}",
                state=failed_at.value,
                report=report,
            ) from e

    async def _cleanup(self, report: ResizeReport, progress: ProgressReporter) -> None:
        claims = [report.temp_claim] if report.temp_claim else []
        pods = [report.job.worker] if report.job else []
        if report.state == ResizeState.PROVISION_TARGET and not claims:
            # a failed create call may still have created the claim
            claims = [self.provisioner.temp_name(report.name)]
        if report.state == ResizeState.TRANSFER_DATA and not pods:
            pods = [transfer_pod_name(report.name)]
        if not claims and not pods:
            return

        progress.step("Cleaning up temporary objects")
        report.cleanup = await self.safety.cleanup(
            report.namespace, claims=claims, pods=pods, reason="Resize failed"
        )
        for warning in report.cleanup.warnings:
            progress.warn(warning)
        report.warnings.extend(report.cleanup.warnings)

    async def _finalize(self, report: ResizeReport, source: VolumeClaim, progress: ProgressReporter) -> None:
        """Swap the migrated data in under the original name. No rollback past here."""
        namespace, name = report.namespace, report.name
        temp_name = report.temp_claim
        try:
            report.enter(ResizeState.DELETE_SOURCE)
            progress.step(f"Deleting original volume claim {namespace}/{name}")
            await self.cluster.delete_claim(namespace, name)

            report.enter(ResizeState.AWAIT_SOURCE_GONE)
            await self.provisioner.wait_gone(namespace, name)

            report.enter(ResizeState.RENAME_TARGET)
            progress.step(f"Recreating {namespace}/{name} on the migrated data")
            target = await self.cluster.get_claim(namespace, temp_name)
            if target is None or not target.volume_name:
                raise KubeVolumeError(f"temporary claim {namespace}/{temp_name} has no bound volume")
            volume = await self.cluster.get_volume(target.volume_name)
            original_policy = volume.reclaim_policy if volume else None
            if original_policy != RETAIN:
                await self.cluster.patch_volume_reclaim_policy(target.volume_name, RETAIN)

            fresh = target.as_fresh(name)
            fresh.annotations = source.as_fresh(name).annotations
            recreated = await self.provisioner.create(fresh)
        except KubeVolumeError as e:
            failed_at = report.state
            progress.error(f"Resize failed during {failed_at.value}: {e}")
            progress.warn(f"Data is preserved on temporary claim {namespace}/{temp_name}")
            # FAILED is only entered before the source delete
            raise ResizeError(
                f"resize of {namespace}/{name} failed during {failed_at.value} after the source "
                f"claim delete was issued: {e}. The data exists only on temporary claim "
                f"{namespace}/{temp_name} and must be recovered manually",
                state=failed_at.value,
                source_deleted=True,
                report=report,
            ) from e

        report.enter(ResizeState.CLEANUP_TEMP)
        await self._release_temp(report, target.volume_name, recreated, original_policy, progress)

        if report.warnings:
            report.enter(ResizeState.DONE_WITH_WARNINGS)
            progress.warn(f"Resize of {namespace}/{name} completed with {len(report.warnings)} warning(s)")
        else:
            report.enter(ResizeState.DONE)
            progress.success(f"Resized {namespace}/{name} to {report.target_size}")

    async def _release_temp(
        self,
        report: ResizeReport,
        volume_name: str,
        recreated: VolumeClaim,
        original_policy: str | None,
        progress: ProgressReporter,
    ) -> None:
        """Drop the temporary claim and hand its volume to the recreated claim.

        Every failure here is a warning. The original reclaim policy is only
        restored once the recreated claim is bound to the volume; otherwise the
        volume keeps Retain so the migrated data cannot be reclaimed.
        """
        namespace, temp_name = report.namespace, report.temp_claim

        def warn(message: str) -> None:
            report.warnings.append(message)
            progress.warn(message)

        progress.step(f"Removing temporary claim {namespace}/{temp_name}")
        try:
            await self.cluster.delete_claim(namespace, temp_name)
            await self.provisioner.wait_gone(namespace, temp_name)
        except KubeVolumeError as e:
            warn(f"temporary claim {namespace}/{temp_name} not removed cleanly: {e}")

        bound = True
        try:
            await self.cluster.bind_volume_to_claim(volume_name, recreated)
        except KubeVolumeError as e:
            bound = False
            warn(f"failed to re-point volume {volume_name} at {recreated.key}: {e}")

        if bound:
            try:
                claim = await self.provisioner.wait_bound(namespace, recreated.name)
            except KubeVolumeError as e:
                bound = False
                warn(f"recreated claim {recreated.key} is not bound yet: {e}")
            else:
                if claim.volume_name != volume_name:
                    bound = False
                    warn(f"recreated claim {recreated.key} bound to {claim.volume_name}, not {volume_name}")

        if not original_policy or original_policy == RETAIN:
            return
        if not bound:
            warn(
                f"volume {volume_name} left with reclaim policy {RETAIN} (was {original_policy}); "
                f"restore it once {recreated.key} is bound"
            )
            return
        try:
            await self.cluster.patch_volume_reclaim_policy(volume_name, original_policy)
        except KubeVolumeError as e:
            warn(f"failed to restore reclaim policy {original_policy} on volume {volume_name}: {e}")
