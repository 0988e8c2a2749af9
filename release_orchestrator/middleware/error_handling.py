"""
Error handling middleware for the release orchestrator API.

Renders every exception that escapes a route as the pipeline JSON envelope
(``status``, ``error``, ``details``, ``timestamp``) so callers never see an
HTML error page or a bare traceback.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from release_orchestrator.domain.errors import PipelineError
from release_orchestrator.schemas.pipeline import PipelineResponse

logger = logging.getLogger(__name__)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for centralized error handling.

    Orchestration failures (status 500 pipeline errors) answer with
    ``status="failed"``; client errors and unexpected exceptions answer
    with ``status="error"``.
    """

    def __init__(self, app, enable_error_logging: bool = True):
        """
        Initialize the error handling middleware.

        Args:
            app: FastAPI application instance
            enable_error_logging: Whether to log full tracebacks for unexpected errors
        """
        super().__init__(app)
        self.enable_error_logging = enable_error_logging

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except PipelineError as e:
            return self._handle_pipeline_error(request, e)

        except StarletteHTTPException as e:
            return self._handle_http_exception(request, e)

        except Exception as e:
            return self._handle_unexpected_exception(request, e)

    def _handle_pipeline_error(self, request: Request, exc: PipelineError) -> JSONResponse:
        status = "failed" if exc.status_code >= 500 else "error"
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"🚨 {type(exc).__name__} ({exc.status_code}) for {request.method} {request.url.path}: {exc.message}"
        )
        return self._render(
            exc.status_code,
            status,
            exc.message,
            {"error_type": type(exc).__name__, **exc.details},
        )

    def _handle_http_exception(self, request: Request, exc: StarletteHTTPException) -> JSONResponse:
        logger.warning(
            f"🚨 HTTP {exc.status_code} error for {request.method} {request.url.path}: {exc.detail}"
        )
        return self._render(
            exc.status_code,
            "error",
            str(exc.detail),
            {"path": str(request.url.path), "method": request.method},
        )

    def _handle_unexpected_exception(self, request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"💥 Unexpected error for {request.method} {request.url.path}: {str(exc)}")
        if self.enable_error_logging:
            logger.error(f"📋 Full traceback:\n{traceback.format_exc()}")

        return self._render(
            500,
            "error",
            "Internal server error",
            {
                "path": str(request.url.path),
                "method": request.method,
                "error_type": type(exc).__name__,
            },
        )

    @staticmethod
    def _render(status_code: int, status: str, message: str, details: dict) -> JSONResponse:
        body = PipelineResponse(
            status=status,
            error=message,
            details=details,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        return JSONResponse(status_code=status_code, content=body.model_dump())
