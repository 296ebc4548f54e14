"""Measure bytes used on a claim with a read-only worker pod."""

import structlog

from ...models.volume import WorkerMount, WorkerSpec
from ..exceptions import ClusterAPIError, KubeVolumeError, OperationTimeoutError, WorkerFailedError
from ..kube_client import ClusterAPI
from ..polling import PollPolicy
from ..transfer.worker import WorkerPodRunner

logger = structlog.get_logger()

PROBE_POD_PREFIX = "size-check-"
PROBE_MOUNT = "/data"


class CapacityProber:
    """Runs ``du`` against a claim mounted read-only and parses the byte count."""

    def __init__(self, cluster: ClusterAPI, runner: WorkerPodRunner, policy: PollPolicy, image: str):
        self.cluster = cluster
        self.runner = runner
        self.policy = policy
        self.image = image
        self.logger = logger.bind(component="capacity_prober")

    def build_worker(self, namespace: str, claim_name: str) -> WorkerSpec:
        return WorkerSpec(
            namespace=namespace,
            name=f"{PROBE_POD_PREFIX}{claim_name}",
            image=self.image,
            script=f"du -sb {PROBE_MOUNT} | cut -f1",
            container_name="size-check",
            mounts=[WorkerMount(claim_name=claim_name, mount_path=PROBE_MOUNT, read_only=True)],
            labels={"app.kubernetes.io/component": "volume-size-check"},
        )

    async def measure(self, namespace: str, claim_name: str) -> int:
        """Return the bytes currently used on ``claim_name``.

        The worker pod is always deleted afterwards; a failure to delete it is
        only logged.

        Raises:
            OperationTimeoutError: The worker did not finish within the poll budget
            WorkerFailedError: The worker failed; its logs are included
            KubeVolumeError: The output was not a byte count
        """
        spec = self.build_worker(namespace, claim_name)
        try:
            try:
                result = await self.runner.run(spec, self.policy, f"size probe {spec.name}")
            except OperationTimeoutError as e:
                raise OperationTimeoutError(
                    f"size probe did not complete for {namespace}/{claim_name}: {e}"
                ) from e

            if not result.succeeded:
                raise WorkerFailedError("size probe failed", result.logs.strip())

            return self._parse_output(result.logs)
        finally:
            await self._remove_worker(namespace, spec.name)

    def _parse_output(self, output: str) -> int:
        lines = [line.strip() for line in output.strip().splitlines() if line.strip()]
        if not lines or not lines[-1].isdigit():
            raise KubeVolumeError(f"failed to parse size probe output: {output.strip()!r}")
        used = int(lines[-1])
        self.logger.info("Volume usage measured", used_bytes=used)
        return used

    async def _remove_worker(self, namespace: str, pod_name: str) -> None:
        try:
            await self.cluster.delete_pod(namespace, pod_name)
        except ClusterAPIError as e:
            self.logger.warning("Failed to delete size probe pod", pod=pod_name, error=str(e))
