"""Volume migration components: consumer discovery, pausing, provisioning and transfer."""

from .consumers import ConsumerTracker  # noqa: F401
from .data import DataMigrator  # noqa: F401
from .deletion import VolumeDeleter  # noqa: F401
from .manager import VolumeResizer  # noqa: F401
from .pause import WorkloadPauseCoordinator  # noqa: F401
from .probe import CapacityProber  # noqa: F401
from .provisioner import VolumeProvisioner  # noqa: F401

__all__ = [
    "CapacityProber",
    "ConsumerTracker",
    "DataMigrator",
    "VolumeDeleter",
    "VolumeProvisioner",
    "VolumeResizer",
    "WorkloadPauseCoordinator",
]
