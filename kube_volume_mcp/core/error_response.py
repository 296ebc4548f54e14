"""RFC 7807 compliant error response helpers.

Problem Details (RFC 7807) adapted for MCP tool responses. Each branch of
the volume error taxonomy maps to one problem type.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .exceptions import (
    ClaimNotFoundError,
    ClusterAPIError,
    ConfigurationError,
    DeletionError,
    InputError,
    OperationTimeoutError,
    PreconditionError,
    ResizeError,
    ShrinkNotPossibleError,
    WorkerFailedError,
)


class ErrorDetail(BaseModel):
    """RFC 7807 compliant error detail structure.

    Optional RFC 7807 fields:
    - type: URI reference that identifies the problem type
    - title: Short, human-readable summary of the problem type
    - detail: Human-readable explanation specific to this occurrence
    - instance: URI reference that identifies the specific occurrence
    """

    success: bool = Field(default=False, description="Always False for errors")
    error: str = Field(description="Human-readable error message")
    type: str | None = Field(default=None, description="Problem type URI")
    title: str | None = Field(default=None, description="Problem type summary")
    detail: str | None = Field(default=None, description="Specific problem details")
    instance: str | None = Field(default=None, description="Problem occurrence URI")
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class VolumeMCPErrorResponse:
    """Factory for standardized volume operation error responses."""

    PROBLEM_TYPES: dict[str, dict[str, str]] = {
        "validation-error": {
            "type": "/problems/validation-error",
            "title": "Input Validation Failed",
        },
        "claim-not-found": {
            "type": "/problems/claim-not-found",
            "title": "Volume Claim Not Found",
        },
        "precondition-failed": {
            "type": "/problems/precondition-failed",
            "title": "Precondition Failed",
        },
        "shrink-not-possible": {
            "type": "/problems/shrink-not-possible",
            "title": "Volume Cannot Be Shrunk",
        },
        "timeout-error": {
            "type": "/problems/timeout-error",
            "title": "Operation Timed Out",
        },
        "cluster-api-error": {
            "type": "/problems/cluster-api-error",
            "title": "Cluster API Call Failed",
        },
        "worker-failed": {
            "type": "/problems/worker-failed",
            "title": "Worker Pod Failed",
        },
        "resize-error": {
            "type": "/problems/resize-error",
            "title": "Resize Failed",
        },
        "deletion-error": {
            "type": "/problems/deletion-error",
            "title": "Volume Deletion Failed",
        },
        "configuration-error": {
            "type": "/problems/configuration-error",
            "title": "Configuration Error",
        },
    }

    @classmethod
    def create_error(
        cls,
        error_message: str,
        problem_type: str | None = None,
        detail: str | None = None,
        instance: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a standardized error response.

        Args:
            error_message: Primary error message
            problem_type: Standard problem type key or custom type URI
            detail: Additional problem-specific details
            instance: Identifier for this specific occurrence
            context: Additional context fields (namespace, name, state...)

        Returns:
            RFC 7807 compliant error response dictionary
        """
        error_detail = ErrorDetail(error=error_message, detail=detail, instance=instance)

        if problem_type and problem_type in cls.PROBLEM_TYPES:
            problem_info = cls.PROBLEM_TYPES[problem_type]
            error_detail.type = problem_info["type"]
            error_detail.title = problem_info["title"]
        elif problem_type:
            error_detail.type = problem_type

        response = error_detail.model_dump(exclude_none=True)

        if context:
            reserved_fields = {"success", "error", "type", "title", "detail", "instance", "timestamp"}
            response.update({k: v for k, v in context.items() if k not in reserved_fields})

        return response

    @classmethod
    def problem_type_for(cls, error: Exception) -> str:
        """Problem type key for a volume exception.

        Wrapped resize/deletion failures are classified by their cause when the
        cause is a timeout or a worker failure.
        """
        if isinstance(error, (ResizeError, DeletionError)):
            cause = error.__cause__
            if isinstance(cause, (OperationTimeoutError, WorkerFailedError)):
                return cls.problem_type_for(cause)
            return "resize-error" if isinstance(error, ResizeError) else "deletion-error"

        for error_class, problem_type in (
            (ClaimNotFoundError, "claim-not-found"),
            (InputError, "validation-error"),
            (ShrinkNotPossibleError, "shrink-not-possible"),
            (PreconditionError, "precondition-failed"),
            (OperationTimeoutError, "timeout-error"),
            (WorkerFailedError, "worker-failed"),
            (ClusterAPIError, "cluster-api-error"),
            (ConfigurationError, "configuration-error"),
        ):
            if isinstance(error, error_class):
                return problem_type
        return "about:blank"

    @classmethod
    def from_exception(
        cls, error: Exception, namespace: str = "", name: str = "", action: str = ""
    ) -> dict[str, Any]:
        """Error response for an exception raised by a volume operation."""
        context: dict[str, Any] = {"namespace": namespace, "name": name, "action": action}
        if isinstance(error, ResizeError):
            context["state"] = error.state
            context["source_deleted"] = error.source_deleted
        worker_error = error if isinstance(error, WorkerFailedError) else error.__cause__
        if isinstance(worker_error, WorkerFailedError):
            context["worker_logs"] = worker_error.logs

        return cls.create_error(
            error_message=str(error),
            problem_type=cls.problem_type_for(error),
            instance=f"/volumes/{namespace}/{name}" if namespace and name else None,
            context=context,
        )

    @classmethod
    def claim_not_found(cls, namespace: str, name: str) -> dict[str, Any]:
        """Standard claim not found error."""
        return cls.create_error(
            error_message=f"Volume claim '{namespace}/{name}' not found",
            problem_type="claim-not-found",
            detail="The specified persistent volume claim does not exist.",
            instance=f"/volumes/{namespace}/{name}",
            context={"namespace": namespace, "name": name},
        )

    @classmethod
    def validation_error(cls, field: str, value: Any, reason: str) -> dict[str, Any]:
        """Standard validation error."""
        return cls.create_error(
            error_message=f"Validation failed for '{field}': {reason}",
            problem_type="validation-error",
            detail=f"The value '{value}' for field '{field}' is invalid: {reason}",
            instance=f"/validation/{field}",
            context={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def generic_error(cls, error_message: str, context: dict[str, Any] | None = None) -> dict[str, Any]:
        """Generic error response for unexpected errors."""
        return cls.create_error(error_message=error_message, context=context or {})
