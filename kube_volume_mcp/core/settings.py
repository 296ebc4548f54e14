"""Polling and worker settings for volume operations.

Provides centralized timing configuration using Pydantic BaseSettings
with environment variable support for operational tuning.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VolumeTimeoutSettings(BaseSettings):
    """Polling intervals, budgets and worker defaults."""

    short_poll_interval: float = Field(
        1.0, alias="SHORT_POLL_INTERVAL", description="Interval for bind/delete/probe polls in seconds"
    )

    short_poll_attempts: int = Field(
        30, alias="SHORT_POLL_ATTEMPTS", description="Attempts for bind/delete/probe polls"
    )

    drain_poll_interval: float = Field(
        2.0, alias="DRAIN_POLL_INTERVAL", description="Interval between consumer drain checks in seconds"
    )

    drain_timeout: float = Field(
        300.0, alias="DRAIN_TIMEOUT", description="Deadline for consumers to stop in seconds"
    )

    pod_delete_timeout: float = Field(
        30.0, alias="POD_DELETE_TIMEOUT", description="Grace before a pod is force deleted in seconds"
    )

    transfer_poll_interval: float = Field(
        2.0, alias="TRANSFER_POLL_INTERVAL", description="Interval between transfer worker checks in seconds"
    )

    transfer_timeout: float | None = Field(
        None, alias="TRANSFER_TIMEOUT", description="Optional deadline for the transfer worker in seconds"
    )

    worker_image: str = Field(
        "busybox", alias="WORKER_IMAGE", description="Shell-capable image for worker pods"
    )

    transfer_method: str = Field(
        "copy", alias="TRANSFER_METHOD", description="Transfer strategy for data migration: copy or rsync"
    )

    rsync_image: str = Field(
        "instrumentisto/rsync-ssh:latest", alias="RSYNC_IMAGE", description="Image used by the rsync transfer"
    )

    temp_claim_suffix: str = Field(
        "-new", alias="TEMP_CLAIM_SUFFIX", description="Suffix for the temporary target claim"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


# Global settings instance (environment and .env applied)
timeout_settings = VolumeTimeoutSettings()

