"""FastMCP middleware for the Kube Volume MCP server.

- LoggingMiddleware: request/response logging with credential redaction
- ErrorHandlingMiddleware: error statistics and severity-aware logging
- TimingMiddleware: per-action duration statistics and slow request warnings
"""

from .error_handling import ErrorHandlingMiddleware
from .logging import LoggingMiddleware
from .timing import TimingMiddleware

__all__ = ["ErrorHandlingMiddleware", "LoggingMiddleware", "TimingMiddleware"]
