"""
Volume Management Service

Dispatches kube_volume tool actions to the resize and deletion workflows and
shapes their reports into tool responses.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from ..core.config_loader import KubeVolumeConfig
from ..core.error_response import VolumeMCPErrorResponse
from ..core.exceptions import KubeVolumeError, PreconditionError, ProtectedNamespaceError
from ..core.kube_client import ClusterAPI
from ..core.logging_config import ProgressReporter
from ..core.migration import ConsumerTracker, VolumeDeleter, VolumeResizer
from ..models.enums import VolumeAction
from ..models.volume import VolumeClaim


class VolumeService:
    """Service for persistent volume claim listing, inspection, resize and deletion."""

    def __init__(
        self,
        config: KubeVolumeConfig,
        cluster: ClusterAPI,
        resizer: VolumeResizer | None = None,
        deleter: VolumeDeleter | None = None,
    ):
        self.config = config
        self.cluster = cluster
        self.resizer = resizer or VolumeResizer(cluster, config.timeouts)
        self.deleter = deleter or VolumeDeleter(cluster, config.timeouts)
        self.tracker = ConsumerTracker(cluster)
        self.logger = structlog.get_logger().bind(component="volume_service")

    async def handle_action(self, action: VolumeAction | str, **params) -> dict[str, Any]:
        """Unified action handler for all volume operations."""
        normalized_action = self._normalize_action(action)

        dispatch_map: dict[VolumeAction, Callable[..., Awaitable[dict[str, Any]]]] = {
            VolumeAction.LIST: self._handle_list_action,
            VolumeAction.INFO: self._handle_info_action,
            VolumeAction.RESIZE: self._handle_resize_action,
            VolumeAction.DELETE: self._handle_delete_action,
        }

        handler = dispatch_map.get(normalized_action) if isinstance(normalized_action, VolumeAction) else None
        if handler is None:
            return self._error_response(
                f"Unsupported action: {normalized_action}",
                supported_actions=[a.value for a in VolumeAction],
            )

        progress = ProgressReporter(
            normalized_action.value,
            namespace=params.get("namespace", ""),
            claim=params.get("name", ""),
        )
        try:
            return await handler(progress, **params)
        except KubeVolumeError as e:
            return self._exception_response(e, normalized_action, progress, **params)
        except Exception as e:
            self.logger.error(
                "volume service action error",
                action=normalized_action.value,
                namespace=params.get("namespace", ""),
                name=params.get("name", ""),
                error=str(e),
            )
            response = VolumeMCPErrorResponse.generic_error(
                f"Service action failed: {e}", context={"action": normalized_action.value}
            )
            response["progress"] = progress.lines
            response["formatted_output"] = self._format_failure(str(e), progress)
            return response

    def _normalize_action(self, action: VolumeAction | str) -> VolumeAction | str:
        """Normalize action string to enum when possible."""
        if isinstance(action, str):
            try:
                return VolumeAction(action.lower().strip())
            except ValueError:
                return action.lower().strip()
        return action

    def _error_response(self, message: str, **extra: Any) -> dict[str, Any]:
        response: dict[str, Any] = {
            "success": False,
            "error": message,
            "formatted_output": f"❌ {message}",
        }
        response.update(extra)
        return response

    def _exception_response(
        self, error: KubeVolumeError, action: VolumeAction, progress: ProgressReporter, **params
    ) -> dict[str, Any]:
        namespace = params.get("namespace", "")
        name = params.get("name", "")
        self.logger.warning(
            "Volume action failed",
            action=action.value,
            namespace=namespace,
            name=name,
            error_type=type(error).__name__,
            error=str(error),
        )
        response = VolumeMCPErrorResponse.from_exception(error, namespace, name, action.value)
        response["progress"] = progress.lines
        response["formatted_output"] = self._format_failure(str(error), progress)
        return response

    def _format_failure(self, message: str, progress: ProgressReporter) -> str:
        lines = list(progress.lines)
        if not lines or not lines[-1].startswith("❌"):
            lines.append(f"❌ {message}")
        return "\n".join(lines)

    def _check_mutation_allowed(self, namespace: str, dry_run: bool) -> None:
        if self.config.is_protected(namespace):
            raise ProtectedNamespaceError(f"namespace '{namespace}' is protected")
        if not dry_run and not self.config.allow_destructive:
            raise PreconditionError("destructive operations are disabled by configuration")

    async def _handle_list_action(self, progress: ProgressReporter, **params) -> dict[str, Any]:
        """Handle LIST action."""
        namespace = params.get("namespace") or None
        claims = await self.cluster.list_claims(namespace)
        volumes = [self._claim_summary(claim) for claim in claims]
        return {
            "success": True,
            "namespace": namespace,
            "volumes": volumes,
            "count": len(volumes),
            "formatted_output": "\n".join(self._format_claims_list(claims, namespace)),
        }

    async def _handle_info_action(self, progress: ProgressReporter, **params) -> dict[str, Any]:
        """Handle INFO action."""
        namespace = params.get("namespace", "")
        name = params.get("name", "")

        claim = await self.cluster.get_claim(namespace, name)
        if claim is None:
            response = VolumeMCPErrorResponse.claim_not_found(namespace, name)
            response["formatted_output"] = f"❌ {response['error']}"
            return response

        consumers = await self.tracker.find_consumers(namespace, name)
        lines = [
            f"Volume claim {claim.key}",
            f"  Size:          {claim.capacity or '-'}",
            f"  Phase:         {claim.phase.value if claim.phase else '-'}",
            f"  Storage class: {claim.storage_class or '-'}",
            f"  Access modes:  {', '.join(claim.access_modes) or '-'}",
            f"  Volume:        {claim.volume_name or '-'}",
            f"  Consumers:     {len(consumers)}",
        ]
        lines.extend(f"    • {c.kind}/{c.name}" for c in consumers)
        return {
            "success": True,
            "volume": self._claim_summary(claim),
            "consumers": [c.model_dump() for c in consumers],
            "formatted_output": "\n".join(lines),
        }

    async def _handle_resize_action(self, progress: ProgressReporter, **params) -> dict[str, Any]:
        """Handle RESIZE action."""
        namespace = params.get("namespace", "")
        name = params.get("name", "")
        size = params.get("size", "")
        dry_run = bool(params.get("dry_run", False))

        self._check_mutation_allowed(namespace, dry_run)
        report = await self.resizer.resize(namespace, name, size, dry_run=dry_run, progress=progress)
        return {
            "success": True,
            "namespace": namespace,
            "name": name,
            "dry_run": dry_run,
            "state": report.state.value,
            "warnings": report.warnings,
            "report": report.model_dump(mode="json", exclude={"progress"}),
            "progress": progress.lines,
            "formatted_output": "\n".join(progress.lines),
        }

    async def _handle_delete_action(self, progress: ProgressReporter, **params) -> dict[str, Any]:
        """Handle DELETE action."""
        namespace = params.get("namespace", "")
        name = params.get("name", "")
        dry_run = bool(params.get("dry_run", False))

        if not dry_run and not params.get("confirm", False):
            response = VolumeMCPErrorResponse.validation_error(
                "confirm", False, "deleting a volume claim destroys its data; pass confirm=true"
            )
            response["formatted_output"] = f"❌ {response['error']}"
            return response

        self._check_mutation_allowed(namespace, dry_run)
        report = await self.deleter.delete(namespace, name, dry_run=dry_run, progress=progress)
        return {
            "success": True,
            "namespace": namespace,
            "name": name,
            "dry_run": dry_run,
            "existed": report.existed,
            "report": report.model_dump(mode="json", exclude={"progress"}),
            "progress": progress.lines,
            "formatted_output": "\n".join(progress.lines),
        }

    def _claim_summary(self, claim: VolumeClaim) -> dict[str, Any]:
        return {
            "namespace": claim.namespace,
            "name": claim.name,
            "size": claim.capacity,
            "phase": claim.phase.value if claim.phase else None,
            "storage_class": claim.storage_class,
            "access_modes": claim.access_modes,
            "volume_mode": claim.volume_mode,
            "volume_name": claim.volume_name,
        }

    def _format_claims_list(self, claims: list[VolumeClaim], namespace: str | None) -> list[str]:
        scope = f"namespace {namespace}" if namespace else "all namespaces"
        lines = [f"Volume claims in {scope} ({len(claims)} total)", ""]
        if not claims:
            return lines + ["  No volume claims found"]

        lines.extend([
            "  Namespace        Name                           Size       Phase    Storage class",
            "  ---------------- ------------------------------ ---------- -------- ----------------",
        ])
        for claim in claims:
            phase = claim.phase.value if claim.phase else "-"
            lines.append(
                f"  {claim.namespace:<16} {claim.name:<30} {claim.capacity or '-':<10} "
                f"{phase:<8} {claim.storage_class or '-'}"
            )
        return lines
