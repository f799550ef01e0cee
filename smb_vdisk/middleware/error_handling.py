"""Error handling middleware for the SMB virtual disk server."""

from collections import defaultdict
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.exceptions import SmbVdiskError
from ..core.logging_config import get_middleware_logger
from .logging import redact_url_credentials


class ErrorHandlingMiddleware(Middleware):
    """FastMCP middleware for error tracking.

    Counts errors per type and method, logs them at a level matching their
    severity, and always re-raises so FastMCP formats the MCP error.
    """

    def __init__(self, include_traceback: bool = True, track_error_stats: bool = True):
        """Initialize error handling middleware.

        Args:
            include_traceback: Whether to include full stack traces in logs
            track_error_stats: Whether to track error statistics
        """
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
        """Record and log an error with its request context."""
        error_type = type(error).__name__
        method = context.method

        if self.track_error_stats:
            self.error_stats[f"{error_type}:{method}"] += 1
            self.method_errors[method] += 1

        error_data: dict[str, Any] = {
            "error_type": error_type,
            "error_message": redact_url_credentials(str(error)),
            "method": method,
            "source": context.source,
            "message_type": context.type,
            "timestamp": context.timestamp,
        }
        if self.track_error_stats:
            error_data.update(
                {
                    "error_occurrence_count": self.error_stats[f"{error_type}:{method}"],
                    "method_error_count": self.method_errors[method],
                }
            )

        if self._is_critical_error(error):
            self.logger.critical(
                "Critical error in MCP request", **error_data, exc_info=self.include_traceback
            )
        elif self._is_warning_level_error(error):
            self.logger.warning("Warning-level error in MCP request", **error_data, exc_info=False)
        else:
            self.logger.error("Error in MCP request", **error_data, exc_info=self.include_traceback)

    def _is_critical_error(self, error: Exception) -> bool:
        return isinstance(error, (SystemError, MemoryError, RecursionError))

    def _is_warning_level_error(self, error: Exception) -> bool:
        """Expected operational failures: remote hosts, timeouts, our own errors."""
        return isinstance(error, (TimeoutError, ConnectionError, SmbVdiskError))

    def get_error_statistics(self) -> dict[str, Any]:
        """Get error statistics."""
        if not self.track_error_stats:
            return {"error_tracking": "disabled"}

        top_errors = sorted(self.error_stats.items(), key=lambda x: x[1], reverse=True)[:10]
        return {
            "total_errors": sum(self.error_stats.values()),
            "unique_error_types": len(self.error_stats),
            "top_errors": top_errors,
            "error_distribution": dict(self.error_stats),
            "method_errors": dict(self.method_errors),
        }

    def reset_statistics(self) -> None:
        self.error_stats.clear()
        self.method_errors.clear()
        self.logger.info("Error statistics reset")
