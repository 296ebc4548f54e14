"""Attribute-preserving recursive copy with a plain shell image."""

from .base import BaseTransfer


class CopyTransfer(BaseTransfer):
    """Copy with ``cp -a``; lists both sides before and after for the log."""

    def __init__(self, image: str = "busybox"):
        super().__init__(image)

    def get_transfer_type(self) -> str:
        return "copy"

    def build_script(self, source_path: str, target_path: str) -> str:
        steps = [
            'echo "Source contents:"',
            f"ls -la {source_path}",
            'echo "Target contents before copy:"',
            f"ls -la {target_path}",
            'echo "Starting copy..."',
            f"cp -av {source_path}/. {target_path}/",
            'echo "Target contents:"',
            f"ls -la {target_path}",
            'echo "Data transfer complete"',
        ]
        return "set -e\n" + " && \\\n".join(steps) + "\n"
