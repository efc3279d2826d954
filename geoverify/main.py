import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from geoverify.config import Settings, settings as default_settings, validate_config
from geoverify.core.async_tasks import BackgroundTasks
from geoverify.database import (
    create_engine,
    create_session_factory,
    dispose_engine,
    init_db,
)
from geoverify.services.photo_service import PhotoBackends
from geoverify.services.verification_store import collect_orphaned_photos

APP_VERSION = "1.0.0"
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405:
        return _error(405, "Method not allowed")
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error(exc.status_code, detail)


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"Invalid request: {field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    else:
        message = "Invalid request"
    return _error(400, message)


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


async def _orphan_sweep_loop(app: FastAPI) -> None:
    cfg: Settings = app.state.settings
    await asyncio.sleep(60)
    while True:
        try:
            async with app.state.session_factory() as db:
                await collect_orphaned_photos(
                    db,
                    app.state.photo_backends.disk,
                    grace_seconds=cfg.orphan_grace_seconds,
                )
        except Exception:
            logger.exception("Background task error")
        await asyncio.sleep(cfg.orphan_sweep_interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    cfg: Settings = app.state.settings

    # Startup: create tables
    await init_db(app.state.engine)
    app.state.photo_backends.disk.ensure_root()
    logger.info("Database initialized (%s)", cfg.environment)
    logger.info("Photo backend: %s", app.state.photo_backends.default.name)

    sweep_task = None
    if cfg.orphan_sweep_enabled:
        sweep_task = asyncio.create_task(_orphan_sweep_loop(app))

    yield

    # Shutdown: stop the sweep, let webhooks finish, dispose connection pool
    if sweep_task is not None:
        sweep_task.cancel()
    await app.state.background_tasks.drain(timeout_seconds=cfg.webhook_timeout_seconds)
    await dispose_engine(app.state.engine)


def create_app(cfg: Settings | None = None) -> FastAPI:
    cfg = cfg or default_settings
    validate_config(cfg)
    logging.basicConfig(level=cfg.log_level.upper())

    app = FastAPI(
        title="GeoVerify",
        description="Location and photo verification ingestion service",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    engine = create_engine(cfg.database_url)
    app.state.settings = cfg
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.photo_backends = PhotoBackends.from_settings(cfg)
    app.state.background_tasks = BackgroundTasks()

    allowed_origins = [o.strip() for o in cfg.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=allowed_origins != ["*"],
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    from geoverify.api import API_PREFIX, API_ROUTERS

    for router in API_ROUTERS:
        app.include_router(router, prefix=API_PREFIX)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
