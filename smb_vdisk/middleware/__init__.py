"""FastMCP middleware for the SMB virtual disk server.

- LoggingMiddleware: structured request logging with credential redaction
- ErrorHandlingMiddleware: error statistics and severity-aware logging
"""

from .error_handling import ErrorHandlingMiddleware
from .logging import LoggingMiddleware

__all__ = [
    "ErrorHandlingMiddleware",
    "LoggingMiddleware",
]
