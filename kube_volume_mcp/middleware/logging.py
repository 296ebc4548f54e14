"""Request/response logging middleware for the Kube Volume MCP server."""

import time
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.logging_config import get_middleware_logger

SENSITIVE_KEYWORDS = (
    "password",
    "token",
    "secret",
    "credential",
    "authorization",
    "kubeconfig",
    "cert",
    "key",
)


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name suggests credentials that must not be logged."""
    field_lower = field_name.lower()
    return any(keyword in field_lower for keyword in SENSITIVE_KEYWORDS)


def volume_call_fields(message: Any) -> dict[str, Any]:
    """Pull tool name and volume identity out of a tools/call message."""
    fields: dict[str, Any] = {}
    tool_name = getattr(message, "name", None)
    if isinstance(tool_name, str):
        fields["tool"] = tool_name
    arguments = getattr(message, "arguments", None)
    if isinstance(arguments, dict):
        for key in ("action", "namespace", "name", "size", "dry_run"):
            if key in arguments:
                fields["claim" if key == "name" else key] = arguments[key]
    return fields


class LoggingMiddleware(Middleware):
    """Logs every MCP message to console and middleware.log.

    Volume tool calls are logged with their action and claim identity so a
    resize can be followed across the request and the orchestration logs.
    """

    def __init__(self, include_payloads: bool = True, max_payload_length: int = 1000):
        self.logger = get_middleware_logger()
        self.include_payloads = include_payloads
        self.max_payload_length = max_payload_length

    async def on_message(self, context: MiddlewareContext, call_next):
        start_time = time.perf_counter()
        call_fields = volume_call_fields(context.message)

        log_data = {
            "method": context.method,
            "source": context.source,
            "message_type": context.type,
            **call_fields,
        }
        if self.include_payloads:
            log_data["params"] = self._sanitize_message(context.message)

        self.logger.info("MCP request started", **log_data)

        try:
            result = await call_next(context)
        except Exception as e:
            self.logger.error(
                "MCP request failed",
                method=context.method,
                success=False,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
                **call_fields,
            )
            raise

        self.logger.info(
            "MCP request completed",
            method=context.method,
            success=True,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            **call_fields,
        )
        return result

    def _truncate(self, value: Any) -> Any:
        text = value if isinstance(value, str) else str(value)
        if len(text) > self.max_payload_length:
            return text[: self.max_payload_length] + "... [TRUNCATED]"
        return value

    def _sanitize_message(self, message: Any) -> dict[str, Any]:
        """Message attributes with credentials redacted and long values cut."""
        if not hasattr(message, "__dict__"):
            return {"message": self._truncate(str(message))}

        sanitized: dict[str, Any] = {}
        for key, value in message.__dict__.items():
            if key.startswith("_"):
                continue
            if is_sensitive_field(key):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = {
                    k: "[REDACTED]" if is_sensitive_field(str(k)) else self._truncate(v)
                    for k, v in value.items()
                }
            else:
                sanitized[key] = self._truncate(value)
        return sanitized
