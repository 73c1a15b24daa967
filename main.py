"""FastAPI application for the listing assistant.

Wires the listing router behind request-context, size-limit, CORS and GZip
middleware, and maps every error onto the shared ErrorResponse body.
"""

import platform
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings
from middleware import RequestContextMiddleware, RequestSizeLimitMiddleware
from models.errors import ErrorType, create_error_response, create_validation_error_response
from routers import listing_ai
from utils.logging import configure_logging, get_logger

APP_VERSION = "0.1.0"
APP_NAME = "Listing Assistant API"

logger = get_logger(__name__)

STATUS_ERROR_TYPES = {
    400: ErrorType.BAD_REQUEST,
    404: ErrorType.NOT_FOUND,
    405: ErrorType.BAD_REQUEST,
    413: ErrorType.PAYLOAD_TOO_LARGE,
    503: ErrorType.SERVICE_UNAVAILABLE,
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _flatten_errors(exc: RequestValidationError | ValidationError) -> list[dict]:
    """One entry per failing location, dotted (e.g. body.userInput)."""
    return [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "value_error"),
        }
        for error in exc.errors()
    ]


def _validation_response(
    request: Request, exc: RequestValidationError | ValidationError, message: str
) -> JSONResponse:
    errors = _flatten_errors(exc)
    logger.warning(
        f"Rejected {request.method} {request.url.path}: {len(errors)} invalid field(s)",
        extra={"fields": [e["field"] for e in errors]},
    )
    return JSONResponse(
        status_code=422,
        content=create_validation_error_response(
            message=message,
            errors=errors,
            request_id=_request_id(request),
            path=request.url.path,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _validation_response(request, exc, "Request validation failed")

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return _validation_response(request, exc, "Data validation failed")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=create_error_response(
                error=STATUS_ERROR_TYPES.get(exc.status_code, ErrorType.INTERNAL_ERROR),
                message=str(exc.detail),
                request_id=_request_id(request),
                path=request.url.path,
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # The message is not logged: it can carry the user's utterance
        logger.exception(
            f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}"
        )
        return JSONResponse(
            status_code=500,
            content=create_error_response(
                error=ErrorType.INTERNAL_ERROR,
                message="An unexpected error occurred. Please try again later.",
                request_id=_request_id(request),
                path=request.url.path,
            ),
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(level=settings.log_level)
    logger.info(
        f"{APP_NAME} v{APP_VERSION} ready",
        extra={
            "event": "startup",
            "environment": "development" if settings.debug else "production",
            "python_version": platform.python_version(),
            "llm_provider": settings.llm_provider,
            "llm_model": settings.llm_model,
            "llm_fallback_model": settings.llm_fallback_model or None,
            "max_concurrent_field_calls": settings.max_concurrent_field_calls,
        },
    )
    yield
    logger.info(f"{APP_NAME} stopped", extra={"event": "shutdown"})


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title=APP_NAME,
        description="Natural-language assistant for filling auction listing forms",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    register_exception_handlers(app)

    # Last added runs first: request context wraps everything else
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
        max_age=3600,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(listing_ai.router, prefix="/api/ai", tags=["Listing AI"])

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "name": APP_NAME,
            "version": APP_VERSION,
            "model": get_settings().llm_model,
        }

    @app.get("/health/live")
    async def liveness_check():
        """Process is up. Never calls the completion service."""
        return {"alive": True}

    @app.get("/")
    async def root():
        return {"name": APP_NAME, "version": APP_VERSION, "docs": "/docs"}

    return app


app = create_app()
