"""
Middleware package for the release orchestrator API.

Cross-cutting request handling: access logging and rendering of
pipeline errors into the JSON envelope every action answers with.
"""

from .error_handling import ErrorHandlingMiddleware
from .logging import LoggingMiddleware

__all__ = [
    "ErrorHandlingMiddleware",
    "LoggingMiddleware",
]
