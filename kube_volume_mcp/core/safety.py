"""Safety guards and best-effort cleanup of temporary migration objects."""

from typing import Any

import structlog

from ..models.volume import CleanupReport
from .kube_client import ClusterAPI

logger = structlog.get_logger()

# Worker pod name prefixes created by the volume workflows
WORKER_POD_PREFIXES = ("size-check-", "transfer-pod-")


class MigrationSafety:
    """Guards cleanup so it can only ever remove objects the workflows created."""

    def __init__(self, cluster: ClusterAPI, temp_claim_suffix: str = "-new"):
        self.cluster = cluster
        self.temp_claim_suffix = temp_claim_suffix
        self.logger = logger.bind(component="migration_safety")
        self.deletion_manifest: list[dict[str, Any]] = []

    def validate_cleanup_target(self, kind: str, name: str) -> tuple[bool, str]:
        """Validate that an object is a temporary one and safe to remove.

        Returns:
            Tuple of (is_safe: bool, reason: str)
        """
        if kind == "claim":
            if name.endswith(self.temp_claim_suffix) and len(name) > len(self.temp_claim_suffix):
                return True, f"Temporary claim validated: {name}"
            return False, f"Claim '{name}' is not a temporary migration claim"
        if kind == "pod":
            if name.startswith(WORKER_POD_PREFIXES):
                return True, f"Worker pod validated: {name}"
            return False, f"Pod '{name}' is not a migration worker"
        return False, f"Unknown object kind '{kind}'"

    def _record(self, kind: str, namespace: str, name: str, reason: str, validated: bool) -> None:
        self.deletion_manifest.append(
            {
                "kind": kind,
                "namespace": namespace,
                "name": name,
                "reason": reason,
                "validated": validated,
            }
        )

    async def cleanup(
        self,
        namespace: str,
        claims: list[str] | None = None,
        pods: list[str] | None = None,
        reason: str = "Migration cleanup",
    ) -> CleanupReport:
        """Delete temporary claims and worker pods, collecting failures as warnings.

        Never raises for a failed deletion; a blocked or failed removal only
        adds a warning to the returned report.
        """
        report = CleanupReport()
        targets = [("pod", name) for name in pods or []] + [("claim", name) for name in claims or []]

        for kind, name in targets:
            label = f"{kind} {namespace}/{name}"
            report.attempted.append(label)

            is_safe, validation_reason = self.validate_cleanup_target(kind, name)
            self._record(kind, namespace, name, reason, is_safe)
            if not is_safe:
                self.logger.error("Cleanup blocked by safety check", target=label, reason=validation_reason)
                report.warnings.append(f"SAFETY BLOCK: {validation_reason}")
                continue

            try:
                if kind == "pod":
                    existed = await self.cluster.delete_pod(namespace, name)
                else:
                    existed = await self.cluster.delete_claim(namespace, name)
            except Exception as e:
                self.logger.warning("Failed to cleanup temporary object", target=label, error=str(e))
                report.warnings.append(f"failed to cleanup {label}: {e}")
                continue

            if existed:
                report.removed.append(label)
                self.logger.info("Temporary object removed", target=label, reason=reason)

        return report

    def get_deletion_manifest(self) -> list[dict[str, Any]]:
        """Get the audit trail of cleanup attempts."""
        return self.deletion_manifest.copy()
