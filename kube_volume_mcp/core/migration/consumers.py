"""Find the workloads currently mounting a volume claim."""

import structlog

from ...models.volume import Consumer, DeploymentInfo, PodInfo
from ..kube_client import ClusterAPI

logger = structlog.get_logger()


class ConsumerTracker:
    """Read-only consumer discovery. Every call re-queries the cluster."""

    def __init__(self, cluster: ClusterAPI):
        self.cluster = cluster
        self.logger = logger.bind(component="consumer_tracker")

    async def find_pods(self, namespace: str, claim_name: str) -> list[PodInfo]:
        """Pods whose volume list references ``claim_name``."""
        pods = await self.cluster.list_pods(namespace)
        return [pod for pod in pods if claim_name in pod.claim_volumes.values()]

    async def find_deployments(self, namespace: str, claim_name: str) -> list[DeploymentInfo]:
        """Deployments whose pod template references ``claim_name``."""
        deployments = await self.cluster.list_deployments(namespace)
        return [d for d in deployments if claim_name in d.claim_names]

    async def owning_deployments(
        self, namespace: str, claim_name: str, pods: list[PodInfo]
    ) -> list[DeploymentInfo]:
        """Deployments that own any of ``pods`` through a ReplicaSet.

        A pod created by a deployment is owned by a ReplicaSet named
        ``<deployment>-<hash>``; the deployment must also reference the claim.
        """
        replica_sets = {
            pod.owner_name for pod in pods if pod.owner_kind == "ReplicaSet" and pod.owner_name
        }
        if not replica_sets:
            return []

        owners = []
        for deployment in await self.find_deployments(namespace, claim_name):
            prefix = f"{deployment.name}-"
            if any(rs.startswith(prefix) for rs in replica_sets):
                owners.append(deployment)
        return owners

    async def find_consumers(self, namespace: str, claim_name: str) -> list[Consumer]:
        """Pods mounting the claim plus the deployments that own them."""
        pods = await self.find_pods(namespace, claim_name)
        consumers = [
            Consumer(
                kind="Pod",
                name=pod.name,
                namespace=namespace,
                volume_mount=pod.mount_name_for(claim_name),
            )
            for pod in pods
        ]
        for deployment in await self.owning_deployments(namespace, claim_name, pods):
            consumers.append(Consumer(kind="Deployment", name=deployment.name, namespace=namespace))

        self.logger.debug(
            "Consumers discovered",
            namespace=namespace,
            claim=claim_name,
            pods=len(pods),
            total=len(consumers),
        )
        return consumers
