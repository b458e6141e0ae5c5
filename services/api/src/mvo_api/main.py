"""FastAPI application factory and main entry point."""

import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mvo_shared.config import get_settings
from mvo_shared.db.connection import get_db
from mvo_shared.errors import (
    CreditContention,
    IdeaNotFound,
    InsufficientCredits,
    InvalidPlan,
    StorageUnavailable,
    VoteConflict,
)
from mvo_shared.logging.config import configure_logging, get_logger

from .middleware import CORRELATION_ID_HEADER, CorrelationIdMiddleware, get_request_correlation_id
from .models.base import ErrorResponse
from .routes import admin_credits, credits, health, votes

DB_INIT_ATTEMPTS = 30
DB_INIT_RETRY_SECONDS = 2
STORAGE_RETRY_AFTER_SECONDS = 5


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger = get_logger(__name__)
    settings = get_settings()

    logger.info(
        "Starting application",
        service=settings.service_name,
        version=settings.service_version,
        environment=settings.environment,
    )

    app.state.db_initialized = False
    db = get_db()
    for attempt in range(1, DB_INIT_ATTEMPTS + 1):
        try:
            await db.connect()
            if settings.is_development:
                await db.create_tables()
            app.state.db_initialized = True
            logger.info("Database connection established")
            break
        except Exception as e:
            if attempt == DB_INIT_ATTEMPTS:
                # Requests will fail with StorageUnavailable until the database is back
                logger.error("Database initialization failed", attempts=attempt, error=str(e))
                break
            logger.warning(
                "Database initialization failed, retrying",
                attempt=attempt,
                max_attempts=DB_INIT_ATTEMPTS,
                retry_in=DB_INIT_RETRY_SECONDS,
                error=str(e),
            )
            await asyncio.sleep(DB_INIT_RETRY_SECONDS)

    yield

    logger.info("Shutting down application")
    await db.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    configure_logging(
        level=settings.logging.level,
        json_format=settings.logging.json_format,
        service_name=settings.service_name,
        service_version=settings.service_version,
    )

    app = FastAPI(
        title="MVO Credits API",
        description="Credit ledger, plan entitlements and idea votes",
        version=settings.service_version,
        docs_url="/docs" if settings.api.debug else None,
        redoc_url="/redoc" if settings.api.debug else None,
        openapi_url="/openapi.json" if settings.api.debug else None,
        lifespan=lifespan,
    )

    # First added = last executed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_ID_HEADER],
    )
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(credits.router)
    app.include_router(admin_credits.router)
    app.include_router(votes.router)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(InsufficientCredits, insufficient_credits_handler)
    app.add_exception_handler(InvalidPlan, invalid_plan_handler)
    app.add_exception_handler(IdeaNotFound, idea_not_found_handler)
    app.add_exception_handler(VoteConflict, vote_conflict_handler)
    app.add_exception_handler(CreditContention, credit_contention_handler)
    app.add_exception_handler(StorageUnavailable, storage_unavailable_handler)
    app.add_exception_handler(Exception, general_exception_handler)


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
    **extra,
) -> JSONResponse:
    correlation_id = get_request_correlation_id(request)
    response_headers = {CORRELATION_ID_HEADER: correlation_id} if correlation_id else {}
    response_headers.update(headers or {})
    body = ErrorResponse.create(status_code, message, correlation_id, **extra)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers=response_headers,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions."""
    return _error_response(request, exc.status_code, exc.detail, headers=exc.headers)


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request validation errors."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return _error_response(request, 422, "Validation Error", details=errors)


async def insufficient_credits_handler(
    request: Request,
    exc: InsufficientCredits,
) -> JSONResponse:
    """402 with the shortfall so the client can offer an upgrade."""
    return _error_response(request, 402, "Insufficient credits", **exc.to_dict())


async def invalid_plan_handler(request: Request, exc: InvalidPlan) -> JSONResponse:
    return _error_response(request, 400, str(exc))


async def idea_not_found_handler(request: Request, exc: IdeaNotFound) -> JSONResponse:
    return _error_response(request, 404, str(exc))


async def vote_conflict_handler(request: Request, exc: VoteConflict) -> JSONResponse:
    return _error_response(request, 409, "Vote changed concurrently, please retry")


async def credit_contention_handler(
    request: Request,
    exc: CreditContention,
) -> JSONResponse:
    return _error_response(request, 409, "Credits changed concurrently, please retry")


async def storage_unavailable_handler(
    request: Request,
    exc: StorageUnavailable,
) -> JSONResponse:
    logger = get_logger(__name__)
    logger.error(
        "Storage unavailable",
        operation=exc.operation,
        error=str(exc.cause) if exc.cause else None,
        path=request.url.path,
    )
    return _error_response(
        request,
        503,
        "Service temporarily unavailable",
        headers={"Retry-After": str(STORAGE_RETRY_AFTER_SECONDS)},
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = get_logger(__name__)
    logger.exception(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
    )
    extra = {}
    if get_settings().api.debug:
        extra["detail"] = f"{type(exc).__name__}: {exc}"
    return _error_response(request, 500, "Internal Server Error", **extra)


app = create_app()


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "mvo_api.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.debug,
        log_config=None,
    )


if __name__ == "__main__":
    run()
