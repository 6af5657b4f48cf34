import time
import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .exceptions import create_error_response

logger = logging.getLogger("app.access")


class LoggingMiddleware(BaseHTTPMiddleware):
    """One access line per request. Bodies are never logged."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        client_host = request.client.host if request.client else "unknown"

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.1f}"
        logger.info(
            f"{client_host} {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last-resort handler: anything not mapped to an HTTP error becomes a 500 envelope."""

    def __init__(self, app: ASGIApp, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {request.url.path}: {e}", exc_info=True)
            message = f"Internal server error: {e}" if self.debug else "Internal server error"
            return JSONResponse(status_code=500, content=create_error_response(message, 500))
