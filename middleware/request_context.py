"""Per-request context: request ID propagation and access logging.

A caller-supplied X-Request-ID is reused when it looks like an identifier
(short, no whitespace or control characters); anything else is replaced with
a fresh UUID so that untrusted header text never reaches logs or responses.

Bodies are never read here. Utterances and session contexts stay out of the
access log.
"""

import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from utils.logging import clear_request_context, get_logger, set_request_context

logger = get_logger(__name__)

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

# Probes are answered without an access-log line
QUIET_PATHS = frozenset({"/health", "/health/live"})


def resolve_request_id(header_value: str | None) -> str:
    if header_value and _REQUEST_ID_RE.match(header_value):
        return header_value
    return uuid.uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request ID to the logging context and logs each request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        path = request.url.path
        quiet = path in QUIET_PATHS
        started = time.perf_counter()
        try:
            if not quiet:
                logger.info(
                    f"{request.method} {path}",
                    extra={
                        "event": "request_start",
                        "method": request.method,
                        "path": path,
                        "content_length": request.headers.get("content-length"),
                    },
                )
            try:
                response = await call_next(request)
            except Exception as e:
                # Exception class only; messages can echo user input
                logger.error(
                    f"{request.method} {path} failed: {type(e).__name__}",
                    extra={
                        "event": "request_error",
                        "path": path,
                        "duration_seconds": time.perf_counter() - started,
                    },
                )
                raise

            elapsed = time.perf_counter() - started
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{elapsed * 1000:.1f}ms"
            if not quiet:
                level = "warning" if response.status_code >= 400 else "info"
                getattr(logger, level)(
                    f"{request.method} {path} -> {response.status_code} ({elapsed:.3f}s)",
                    extra={
                        "event": "request_complete",
                        "path": path,
                        "status_code": response.status_code,
                        "duration_seconds": elapsed,
                        "parse_call": path.startswith("/api/ai/") and "parse" in path,
                    },
                )
            return response
        finally:
            clear_request_context()
