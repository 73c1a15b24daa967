from middleware.request_context import RequestContextMiddleware
from middleware.request_size import RequestSizeLimitMiddleware

__all__ = ["RequestContextMiddleware", "RequestSizeLimitMiddleware"]
