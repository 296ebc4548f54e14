"""Rsync transfer inside the worker pod."""

import shlex

from .base import BaseTransfer


class RsyncTransfer(BaseTransfer):
    """Copy with ``rsync -aHAX``, preserving hard links, ACLs and xattrs."""

    def __init__(self, image: str = "instrumentisto/rsync-ssh:latest"):
        super().__init__(image)

    def get_transfer_type(self) -> str:
        return "rsync"

    def build_script(self, source_path: str, target_path: str) -> str:
        rsync_cmd = ["rsync", "-aHAX", "--numeric-ids", "--stats", f"{source_path}/", f"{target_path}/"]
        steps = [
            'echo "Source contents:"',
            f"ls -la {source_path}",
            'echo "Starting rsync..."',
            shlex.join(rsync_cmd),
            'echo "Target contents:"',
            f"ls -la {target_path}",
            'echo "Data transfer complete"',
        ]
        return "set -e\n" + " && \\\n".join(steps) + "\n"
