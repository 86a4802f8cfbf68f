import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from matchbuffer.api import (
    assets_router,
    groups_router,
    health_router,
    sessions_router,
)
from matchbuffer.config import settings
from matchbuffer.db.database import async_session_factory, init_db
from matchbuffer.models.failure import (
    FailureKind,
    KnownError,
    create_known_failure,
    create_unknown_failure,
)
from matchbuffer.services.container import build_services, close_services, start_services
from matchbuffer.store.sql import SqlItemStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()

    store = SqlItemStore(async_session_factory)
    services = build_services(settings, item_store=store, group_store=store)
    app.state.services = services
    await start_services(services, settings, store)

    try:
        yield
    finally:
        app.state.services = None
        await close_services(services)


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("matchbuffer"),
    lifespan=lifespan,
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Convert known errors raised by endpoints into the failure envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed requests as invalid input."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=create_known_failure(FailureKind.INVALID_INPUT, problems).model_dump(mode="json"),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Classify any other error as an unknown failure."""
    logger.exception("unhandled_error", extra={"error_type": type(exc).__name__})
    return JSONResponse(
        status_code=500,
        content=create_unknown_failure(exc).model_dump(mode="json"),
    )


app.include_router(assets_router)
app.include_router(groups_router)
app.include_router(health_router)
app.include_router(sessions_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
