"""Copy a claim's contents onto another through a transfer worker."""

import structlog

from ...models.enums import MigrationJobState
from ...models.volume import MigrationJob
from ..exceptions import WorkerFailedError
from ..polling import PollPolicy
from ..transfer.base import BaseTransfer
from ..transfer.worker import WorkerPodRunner

logger = structlog.get_logger()

TRANSFER_POD_PREFIX = "transfer-pod-"


def transfer_pod_name(claim_name: str) -> str:
    return f"{TRANSFER_POD_PREFIX}{claim_name}"


class DataMigrator:
    """Owns a MigrationJob from worker creation to its terminal phase."""

    def __init__(self, runner: WorkerPodRunner, transfer: BaseTransfer, policy: PollPolicy):
        self.runner = runner
        self.transfer = transfer
        self.policy = policy
        self.logger = logger.bind(component="data_migrator")

    async def start(self, namespace: str, source: str, target: str) -> MigrationJob:
        worker = transfer_pod_name(source)
        spec = self.transfer.build_worker(namespace, worker, source, target)
        await self.runner.launch(spec)

        self.logger.info(
            "Data transfer started",
            namespace=namespace,
            source=source,
            target=target,
            worker=worker,
            method=self.transfer.get_transfer_type(),
        )
        return MigrationJob(source=source, target=target, worker=worker, state=MigrationJobState.RUNNING)

    async def wait(self, namespace: str, job: MigrationJob) -> MigrationJob:
        """Wait for the worker; on failure the worker's log is part of the error.

        Raises:
            WorkerFailedError: Worker reached Failed
            OperationTimeoutError: Transfer deadline (if configured) exceeded
        """
        result = await self.runner.wait(
            namespace, job.worker, self.policy, f"data transfer {job.source} -> {job.target}"
        )
        job.logs = result.logs

        if not result.succeeded:
            job.state = MigrationJobState.FAILED
            raise WorkerFailedError("data migration failed", result.logs.strip())

        job.state = MigrationJobState.SUCCEEDED
        self.logger.info("Data transfer succeeded", source=job.source, target=job.target)
        return job
