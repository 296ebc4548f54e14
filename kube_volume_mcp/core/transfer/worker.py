"""Ephemeral worker pods: run a short script against mounted claims."""

import structlog

from ...models.enums import PodPhase
from ...models.volume import PodInfo, WorkerResult, WorkerSpec
from ..exceptions import KubeVolumeError
from ..kube_client import ClusterAPI
from ..polling import PollPolicy, poll_until

logger = structlog.get_logger()


class WorkerPodRunner:
    """Creates worker pods, waits for a terminal phase and captures logs.

    The runner knows nothing about what the script does; measuring and copying
    are expressed as ``WorkerSpec`` scripts by their callers.
    """

    def __init__(self, cluster: ClusterAPI):
        self.cluster = cluster
        self.logger = logger.bind(component="worker_runner")

    async def launch(self, spec: WorkerSpec) -> PodInfo:
        self.logger.info(
            "Creating worker pod",
            namespace=spec.namespace,
            pod=spec.name,
            image=spec.image,
            mounts=[m.model_dump() for m in spec.mounts],
        )
        return await self.cluster.create_pod(spec)

    async def wait(
        self, namespace: str, name: str, policy: PollPolicy, description: str
    ) -> WorkerResult:
        """Poll the worker until Succeeded or Failed and collect its output.

        Logs of a failed worker are fetched best-effort; logs of a successful
        worker are required and a failure to read them propagates.
        """

        async def terminal_phase() -> PodPhase | None:
            pod = await self.cluster.get_pod(namespace, name)
            if pod is None:
                raise KubeVolumeError(f"worker pod {namespace}/{name} disappeared")
            if pod.phase.is_terminal:
                return pod.phase
            self.logger.debug("Worker not finished", pod=name, phase=pod.phase.value)
            return None

        phase = await poll_until(terminal_phase, policy, description)

        if phase == PodPhase.SUCCEEDED:
            logs = await self.cluster.read_pod_log(namespace, name)
        else:
            try:
                logs = await self.cluster.read_pod_log(namespace, name)
            except KubeVolumeError as e:
                self.logger.warning("Could not read failed worker logs", pod=name, error=str(e))
                logs = f"(logs unavailable: {e})"

        self.logger.info("Worker finished", namespace=namespace, pod=name, phase=phase.value)
        return WorkerResult(name=name, phase=phase, logs=logs)

    async def run(self, spec: WorkerSpec, policy: PollPolicy, description: str) -> WorkerResult:
        """Launch a worker and wait for it; the pod is left for the caller to remove."""
        await self.launch(spec)
        return await self.wait(spec.namespace, spec.name, policy, description)
