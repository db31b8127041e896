"""
API v1 Routes

認証・目標・アクション・AIアドバイス
"""

from fastapi import APIRouter
from app.api.v1 import actions, ai, auth, goals, health

router = APIRouter(prefix="/v1")
router.include_router(health.router)
router.include_router(auth.router)
router.include_router(goals.router)
router.include_router(actions.router)
router.include_router(ai.router)
