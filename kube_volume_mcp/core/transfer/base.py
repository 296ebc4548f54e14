"""Abstract base class for transfer methods."""

from abc import ABC, abstractmethod

import structlog

from ...models.volume import WorkerMount, WorkerSpec

logger = structlog.get_logger()

SOURCE_MOUNT = "/source"
TARGET_MOUNT = "/target"


class BaseTransfer(ABC):
    """A way of copying one claim's contents onto another inside a worker pod.

    Implementations only decide image and script; pod lifecycle belongs to
    ``WorkerPodRunner``. Exit status 0 is success, anything else is failure.
    """

    def __init__(self, image: str):
        self.image = image
        self.logger = logger.bind(component=self.__class__.__name__.lower())

    @abstractmethod
    def build_script(self, source_path: str, target_path: str) -> str:
        """Shell script run by the worker.

        Args:
            source_path: Read-only mount of the source claim
            target_path: Read-write mount of the target claim

        Returns:
            Script for ``sh -c``
        """

    @abstractmethod
    def get_transfer_type(self) -> str:
        """Get the name/type of this transfer method."""

    def build_worker(
        self, namespace: str, worker_name: str, source_claim: str, target_claim: str
    ) -> WorkerSpec:
        """Worker mounting the source read-only and the target read-write."""
        return WorkerSpec(
            namespace=namespace,
            name=worker_name,
            image=self.image,
            script=self.build_script(SOURCE_MOUNT, TARGET_MOUNT),
            container_name="transfer",
            mounts=[
                WorkerMount(claim_name=source_claim, mount_path=SOURCE_MOUNT, read_only=True),
                WorkerMount(claim_name=target_claim, mount_path=TARGET_MOUNT),
            ],
            labels={"app.kubernetes.io/component": "volume-transfer"},
        )
