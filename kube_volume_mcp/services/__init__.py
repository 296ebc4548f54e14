"""Service layer for volume operations."""

from .volume import VolumeService

__all__ = ["VolumeService"]
