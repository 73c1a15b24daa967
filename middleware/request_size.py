"""Request size limit middleware."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from models.errors import ErrorType, create_error_response
from utils.logging import get_logger

logger = get_logger(__name__)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects request bodies larger than the limit with a 413.

    Parse requests carry the whole serialized session context, so the limit
    is generous; it grows with the number of interactions a session records.
    """

    DEFAULT_MAX_SIZE = 1024 * 1024  # 1MB

    def __init__(self, app, max_size: int | None = None):
        super().__init__(app)
        self.max_size = max_size or self.DEFAULT_MAX_SIZE

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                length = int(content_length)
            except ValueError:
                # Invalid Content-Length header, let it pass and fail later
                length = 0
            if length > self.max_size:
                logger.warning(
                    f"Request body too large: {length} bytes (max: {self.max_size})",
                    extra={
                        "path": request.url.path,
                        "content_length": length,
                        "max_size": self.max_size,
                    },
                )
                return JSONResponse(
                    status_code=413,
                    content=create_error_response(
                        error=ErrorType.PAYLOAD_TOO_LARGE,
                        message=f"Request body too large. Maximum size is {self.max_size // 1024}KB.",
                        request_id=getattr(request.state, "request_id", None),
                        path=str(request.url.path),
                    ),
                )

        return await call_next(request)
