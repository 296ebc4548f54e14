"""Create, bind and remove volume claims."""

import structlog

from ...models.volume import StorageClassInfo, VolumeClaim
from ..exceptions import KubeVolumeError, StorageClassError
from ..kube_client import ClusterAPI
from ..polling import PollPolicy, poll_until

logger = structlog.get_logger()


class VolumeProvisioner:
    """Claim lifecycle helpers shared by the resize and delete workflows."""

    def __init__(self, cluster: ClusterAPI, policy: PollPolicy, temp_claim_suffix: str = "-new"):
        self.cluster = cluster
        self.policy = policy
        self.temp_claim_suffix = temp_claim_suffix
        self.logger = logger.bind(component="volume_provisioner")

    def temp_name(self, claim_name: str) -> str:
        return f"{claim_name}{self.temp_claim_suffix}"

    async def validate_storage_class(self, claim: VolumeClaim) -> StorageClassInfo:
        """The claim's storage class must exist and name a provisioner."""
        if not claim.storage_class:
            raise StorageClassError(f"volume claim {claim.key} has no storage class")

        storage_class = await self.cluster.get_storage_class(claim.storage_class)
        if storage_class is None:
            raise StorageClassError(f"storage class {claim.storage_class} not found")
        if not storage_class.provisioner:
            raise StorageClassError(f"storage class {claim.storage_class} has no provisioner")
        return storage_class

    async def provision(self, source: VolumeClaim, capacity: str) -> VolumeClaim:
        """Create the temporary target claim shaped like ``source``."""
        target = VolumeClaim(
            namespace=source.namespace,
            name=self.temp_name(source.name),
            capacity=capacity,
            storage_class=source.storage_class,
            access_modes=list(source.access_modes),
            volume_mode=source.volume_mode,
            labels=dict(source.labels),
        )
        self.logger.info(
            "Creating target claim",
            namespace=target.namespace,
            claim=target.name,
            capacity=capacity,
            storage_class=target.storage_class,
        )
        return await self.cluster.create_claim(target)

    async def create(self, claim: VolumeClaim) -> VolumeClaim:
        self.logger.info("Creating claim", namespace=claim.namespace, claim=claim.name, volume=claim.volume_name)
        return await self.cluster.create_claim(claim)

    async def wait_bound(self, namespace: str, name: str) -> VolumeClaim:
        """Poll until the claim is Bound and return its fresh state."""

        async def bound() -> VolumeClaim | None:
            claim = await self.cluster.get_claim(namespace, name)
            if claim is None:
                raise KubeVolumeError(f"volume claim {namespace}/{name} disappeared while binding")
            return claim if claim.is_bound else None

        return await poll_until(bound, self.policy, f"volume claim {namespace}/{name} to bind")

    async def wait_gone(self, namespace: str, name: str) -> None:
        async def gone() -> bool:
            return await self.cluster.get_claim(namespace, name) is None

        await poll_until(gone, self.policy, f"volume claim {namespace}/{name} to be deleted")
