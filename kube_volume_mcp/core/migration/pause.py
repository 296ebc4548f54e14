"""Stop the workloads using a claim and wait until it is free."""

import structlog

from ...models.volume import DeletionPlan, DeploymentInfo, ScaledDeployment
from ..exceptions import OperationTimeoutError
from ..kube_client import ClusterAPI
from ..polling import PollPolicy, poll_until
from .consumers import ConsumerTracker

logger = structlog.get_logger()


class WorkloadPauseCoordinator:
    """Scales deployments to zero, deletes pods and waits for the drain.

    Scaled deployments are recorded but never scaled back up.
    """

    def __init__(
        self,
        cluster: ClusterAPI,
        tracker: ConsumerTracker,
        drain_policy: PollPolicy,
        pod_delete_policy: PollPolicy,
    ):
        self.cluster = cluster
        self.tracker = tracker
        self.drain_policy = drain_policy
        self.pod_delete_policy = pod_delete_policy
        self.logger = logger.bind(component="pause_coordinator")

    async def scale_to_zero(
        self, namespace: str, deployments: list[DeploymentInfo]
    ) -> list[ScaledDeployment]:
        scaled = []
        for deployment in deployments:
            if deployment.replicas == 0:
                continue
            self.logger.info(
                "Scaling deployment to zero",
                namespace=namespace,
                deployment=deployment.name,
                original_replicas=deployment.replicas,
            )
            await self.cluster.scale_deployment(namespace, deployment.name, 0)
            scaled.append(
                ScaledDeployment(name=deployment.name, original_replicas=deployment.replicas)
            )
        return scaled

    async def pause(self, namespace: str, claim_name: str) -> DeletionPlan:
        """Stop every consumer of the claim without waiting.

        Owning deployments are scaled to zero first so their pods are not
        recreated, then each consumer pod is deleted. Any API error aborts.
        """
        pods = await self.tracker.find_pods(namespace, claim_name)
        owners = await self.tracker.owning_deployments(namespace, claim_name, pods)

        plan = DeletionPlan(namespace=namespace, claim=claim_name)
        plan.scaled = await self.scale_to_zero(namespace, owners)

        for pod in pods:
            if pod.deleting:
                self.logger.debug("Consumer pod already terminating", namespace=namespace, pod=pod.name)
                continue
            self.logger.info("Deleting consumer pod", namespace=namespace, pod=pod.name)
            await self.cluster.delete_pod(namespace, pod.name)

        return plan

    async def wait_for_drain(self, namespace: str, claim_name: str) -> None:
        """Block until no pod references the claim.

        Raises:
            OperationTimeoutError: Consumers still present at the deadline
        """

        async def drained() -> bool:
            remaining = await self.tracker.find_pods(namespace, claim_name)
            if remaining:
                self.logger.debug(
                    "Waiting for consumers to stop",
                    claim=claim_name,
                    pods=[pod.name for pod in remaining],
                )
                return False
            return True

        await poll_until(drained, self.drain_policy, f"consumers of {namespace}/{claim_name} to stop")
        self.logger.info("Volume has no consumers", namespace=namespace, claim=claim_name)

    async def delete_pod_and_wait(self, namespace: str, pod_name: str) -> bool:
        """Delete a pod and wait for it to vanish, forcing deletion if it stalls.

        Returns:
            True if the pod had to be force deleted
        """
        await self.cluster.delete_pod(namespace, pod_name)

        async def gone() -> bool:
            return await self.cluster.get_pod(namespace, pod_name) is None

        try:
            await poll_until(gone, self.pod_delete_policy, f"pod {namespace}/{pod_name} to terminate")
            return False
        except OperationTimeoutError:
            self.logger.warning("Pod still terminating, forcing deletion", pod=pod_name)
            await self.cluster.delete_pod(namespace, pod_name, grace_period_seconds=0)
            return True
