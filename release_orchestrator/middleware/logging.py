"""
Logging middleware for the release orchestrator API.

Logs every request and response with its processing time.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {"authorization", "cookie", "apikey", "x-api-key"}
SKIP_PATHS = {"/api/v1/health", "/favicon.ico"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request/response access log with an ``X-Process-Time`` header."""

    def __init__(self, app, enable_detailed_logging: bool = False):
        super().__init__(app)
        self.enable_detailed_logging = enable_detailed_logging

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else None
        logger.info(f"📥 {request.method} {request.url.path} - {client_ip}")

        if self.enable_detailed_logging:
            logger.debug(f"📋 Request details: {json.dumps(self._request_info(request), indent=2)}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"💥 {request.method} {request.url.path} - ERROR - {process_time:.3f}s - {str(e)}"
            )
            # Re-raise for the error handling middleware
            raise

        process_time = time.time() - start_time
        logger.info(
            f"📤 {request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s"
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response

    def _request_info(self, request: Request) -> Dict[str, Any]:
        return {
            "method": request.method,
            "path": str(request.url.path),
            "query_params": dict(request.query_params),
            "user_agent": request.headers.get("user-agent"),
            "headers": {
                k: v for k, v in request.headers.items() if k.lower() not in SENSITIVE_HEADERS
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
