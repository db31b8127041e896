"""
Health Check Endpoint

DB疎通を確認する。レート制限の対象外。
"""

import asyncio

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from lib.config import get_settings
from lib.logging import get_logger
from app.deps.db import get_session_factory_dep
from app.limiter import limiter

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


def _ping(factory: sessionmaker) -> None:
    with factory() as session:
        session.execute(text("SELECT 1"))


@router.get("/health")
@limiter.exempt
async def health_check(factory: sessionmaker = Depends(get_session_factory_dep)):
    """
    Returns:
        status: healthy（DB不通なら degraded）
        db: healthy / unhealthy: <例外名>
        version: アプリのバージョン
    """
    try:
        await asyncio.to_thread(_ping, factory)
        db_status = "healthy"
    except Exception as e:
        logger.warning("Health check: database unreachable", error=type(e).__name__)
        db_status = f"unhealthy: {type(e).__name__}"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "db": db_status,
        "version": get_settings().APP_VERSION,
    }
