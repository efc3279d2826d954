"""Request-scoped dependencies shared by the route modules."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from geoverify.config import Settings
from geoverify.core.async_tasks import BackgroundTasks
from geoverify.database import get_db
from geoverify.services.photo_service import PhotoBackends, get_photo_backends
from geoverify.services.verification_store import VerificationStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_background_tasks(request: Request) -> BackgroundTasks:
    return request.app.state.background_tasks


def get_store(
    db: AsyncSession = Depends(get_db),
    backends: PhotoBackends = Depends(get_photo_backends),
    cfg: Settings = Depends(get_settings),
) -> VerificationStore:
    """Store writing with the configured default photo backend."""
    return VerificationStore(
        db,
        backends.default,
        disk=backends.disk,
        timeout_seconds=cfg.store_timeout_seconds,
        max_list_limit=cfg.max_list_limit,
    )


def get_inline_store(
    db: AsyncSession = Depends(get_db),
    backends: PhotoBackends = Depends(get_photo_backends),
    cfg: Settings = Depends(get_settings),
) -> VerificationStore:
    """Store for the simplified entry path: photos always go inline."""
    return VerificationStore(
        db,
        backends.inline,
        disk=backends.disk,
        timeout_seconds=cfg.store_timeout_seconds,
        max_list_limit=cfg.max_list_limit,
    )
