"""Error tracking middleware for the Kube Volume MCP server."""

from collections import defaultdict
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.exceptions import InputError, PreconditionError, ResizeError
from ..core.logging_config import get_middleware_logger
from .logging import volume_call_fields


class ErrorHandlingMiddleware(Middleware):
    """Counts and logs errors escaping tool handlers, then re-raises them.

    Rejected requests (bad input, failed preconditions, timeouts) are logged at
    warning level. A resize that failed after its source claim was deleted is
    logged as critical since the data only survives on the temporary claim.
    """

    def __init__(self, include_traceback: bool = True, track_error_stats: bool = True):
        self.logger = get_middleware_logger()
        self.include_traceback = include_traceback
        self.track_error_stats = track_error_stats

        self.error_stats: dict[str, int] = defaultdict(int)
        self.method_errors: dict[str, int] = defaultdict(int)

    async def on_message(self, context: MiddlewareContext, call_next):
        try:
            return await call_next(context)
        except Exception as e:
            self._handle_error(e, context)
            raise

    def _handle_error(self, error: Exception, context: MiddlewareContext) -> None:
        error_type = type(error).__name__
        method = context.method

        error_data: dict[str, Any] = {
            "error_type": error_type,
            "error_message": str(error),
            "method": method,
            "source": context.source,
            **volume_call_fields(context.message),
        }

        if self.track_error_stats:
            error_key = f"{error_type}:{method}"
            self.error_stats[error_key] += 1
            self.method_errors[method] += 1
            error_data["error_occurrence_count"] = self.error_stats[error_key]
            error_data["method_error_count"] = self.method_errors[method]

        if isinstance(error, ResizeError):
            error_data["state"] = error.state
            error_data["source_deleted"] = error.source_deleted

        if self._is_critical_error(error):
            self.logger.critical("Critical error in MCP request", **error_data, exc_info=self.include_traceback)
        elif self._is_warning_level_error(error):
            self.logger.warning("Request rejected", **error_data)
        else:
            self.logger.error("Error in MCP request", **error_data, exc_info=self.include_traceback)

    def _is_critical_error(self, error: Exception) -> bool:
        if isinstance(error, ResizeError):
            return error.source_deleted
        return isinstance(error, (SystemError, MemoryError, RecursionError))

    def _is_warning_level_error(self, error: Exception) -> bool:
        return isinstance(error, (InputError, PreconditionError, TimeoutError, ConnectionError))

    def get_error_statistics(self) -> dict[str, Any]:
        if not self.track_error_stats:
            return {"error_tracking": "disabled"}

        top_errors = sorted(self.error_stats.items(), key=lambda item: item[1], reverse=True)[:10]
        return {
            "total_errors": sum(self.error_stats.values()),
            "unique_error_types": len(self.error_stats),
            "top_errors": top_errors,
            "error_distribution": dict(self.error_stats),
        }

    def reset_statistics(self) -> None:
        self.error_stats.clear()
        self.method_errors.clear()
        self.logger.info("Error statistics reset")
