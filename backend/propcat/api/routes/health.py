"""Health check endpoint with a real database probe.

The probe has a short timeout. A database reporting "disconnected" does not
change the overall status ("ok"): the endpoint always returns 200 so load
balancers keep routing while the pool recovers.
"""

from __future__ import annotations

import asyncio

import structlog
from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from propcat.config import settings
from propcat.database import get_session_factory

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

_CHECK_TIMEOUT = 3.0  # seconds


async def _check_database(factory: async_sessionmaker[AsyncSession]) -> str:
    """Run SELECT 1 through the app's own pool."""

    async def _ping() -> None:
        async with factory() as session:
            await session.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(_ping(), timeout=_CHECK_TIMEOUT)
        return "connected"
    except Exception as exc:
        logger.debug("health_database_failed", error=str(exc))
        return "disconnected"


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Confirms the API process is alive and reports database reachability."""
    database = await _check_database(get_session_factory(request))
    return {
        "status": "ok",
        "version": "0.1.0",
        "environment": settings.environment,
        "database": database,
    }
