import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from propcat.api.routes import admin, furniture, health, submissions
from propcat.config import settings
from propcat.database import build_session_factory, create_engine, init_models
from propcat.errors import CatalogError, StoreError
from propcat.logging import configure_logging
from propcat.models.contracts import ErrorResponse

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the engine once per process; tests install their own factory first."""
    if getattr(app.state, "session_factory", None) is None:
        app.state.engine = create_engine()
        app.state.session_factory = build_session_factory(app.state.engine)
        if settings.auto_create_schema:
            await init_models(app.state.engine)
            logger.info("schema_created")
    yield
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()


app = FastAPI(
    title="Prop Catalog API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)


def _error_response(request: Request, status: int, code: str, message: str, retryable: bool) -> JSONResponse:
    response = JSONResponse(
        status_code=status,
        content=ErrorResponse(error=code, message=message, retryable=retryable).model_dump(),
    )
    response.headers["X-Request-ID"] = getattr(
        request.state, "request_id", request.headers.get("X-Request-ID", "")
    )
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a request ID to every request for log correlation.

    Bound into structlog context vars so every log line for the request
    carries it, and echoed in the X-Request-ID response header.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(CatalogError)
async def catalog_exception_handler(request: Request, exc: CatalogError) -> JSONResponse:
    """Render the catalog error taxonomy as ErrorResponse JSON.

    StoreError details were logged where they happened; the caller only
    ever sees the generic message.
    """
    if isinstance(exc, StoreError):
        logger.error("store_error_response", path=request.url.path, method=request.method)
    else:
        logger.info(
            "request_rejected",
            path=request.url.path,
            method=request.method,
            error=exc.code,
            message=exc.message,
        )
    return _error_response(request, exc.status_code, exc.code, exc.message, exc.retryable)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return ErrorResponse JSON for request-shape errors instead of FastAPI's {"detail": [...]}."""
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    return _error_response(request, 422, "validation_error", "; ".join(messages), False)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Consistent JSON for anything unexpected, logged with the traceback."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(request, 500, "internal_error", "An unexpected error occurred", True)


app.include_router(health.router)
app.include_router(furniture.router, prefix="/api/v1")
app.include_router(submissions.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
