"""Timing middleware for the Kube Volume MCP server."""

import time
from collections import defaultdict, deque
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.logging_config import get_middleware_logger
from .logging import volume_call_fields


class TimingMiddleware(Middleware):
    """Measures request duration per method and per volume action.

    Resizes copy whole volumes, so the slow threshold is generous and the
    statistics are keyed by ``method`` plus the tool ``action`` when present.
    """

    def __init__(self, slow_request_threshold_ms: float = 60_000.0, max_history_size: int = 1000):
        self.logger = get_middleware_logger()
        self.slow_threshold_ms = slow_request_threshold_ms
        self.request_times: dict[str, deque] = defaultdict(lambda: deque(maxlen=max_history_size))
        self.total_requests = 0
        self.slow_requests = 0

    async def on_message(self, context: MiddlewareContext, call_next):
        start_time = time.perf_counter()
        call_fields = volume_call_fields(context.message)
        key = context.method or "unknown"
        if "action" in call_fields:
            key = f"{key}:{call_fields['action']}"
        success = False

        try:
            result = await call_next(context)
            success = True
            return result
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self._record(key, duration_ms, success)
            self._log_timing(key, duration_ms, success, call_fields)

    def _record(self, key: str, duration_ms: float, success: bool) -> None:
        self.total_requests += 1
        if duration_ms > self.slow_threshold_ms:
            self.slow_requests += 1
        self.request_times[key].append({"duration_ms": duration_ms, "success": success})

    def _log_timing(self, key: str, duration_ms: float, success: bool, call_fields: dict[str, Any]) -> None:
        log_data = {"operation": key, "duration_ms": round(duration_ms, 2), "success": success, **call_fields}
        if duration_ms > self.slow_threshold_ms:
            self.logger.warning("Slow request detected", slow_threshold_ms=self.slow_threshold_ms, **log_data)
        else:
            self.logger.debug("Request completed", **log_data)

    def get_performance_statistics(self) -> dict[str, Any]:
        operations = {}
        for key, records in self.request_times.items():
            durations = [r["duration_ms"] for r in records]
            if not durations:
                continue
            operations[key] = {
                "count": len(durations),
                "avg_ms": round(sum(durations) / len(durations), 2),
                "max_ms": round(max(durations), 2),
                "success_rate": round(sum(1 for r in records if r["success"]) / len(records), 3),
            }
        return {
            "total_requests": self.total_requests,
            "slow_requests": self.slow_requests,
            "slow_threshold_ms": self.slow_threshold_ms,
            "operations": operations,
        }
