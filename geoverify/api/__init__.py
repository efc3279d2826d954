"""API router registry used by the app factory.

Keeps route module imports and inclusion order in one place so
`geoverify.main` stays focused on startup wiring.
"""

from __future__ import annotations

from fastapi import APIRouter

from . import health, verification

API_PREFIX = "/api"

API_ROUTERS: tuple[APIRouter, ...] = (
    health.router,
    verification.router,
)

__all__ = ["API_PREFIX", "API_ROUTERS"]
