"""api/app/deps/db.py - DBセッションファクトリ・サービス依存モジュール

テストでは app.dependency_overrides[get_session_factory_dep] を差し替えて
インメモリDBを使う。
"""

from fastapi import Depends
from sqlalchemy.orm import sessionmaker

from lib.ai_advisor import AdvisorConfig, AIAdvisoryClient
from lib.config import get_settings
from lib.db import get_session_factory
from app.services import (
    ActionService,
    GoalService,
    ProgressUpdateRecorder,
    UserService,
)


def get_session_factory_dep() -> sessionmaker:
    """アプリ共通のセッションファクトリ"""
    return get_session_factory()


def get_user_service(
    factory: sessionmaker = Depends(get_session_factory_dep),
) -> UserService:
    return UserService(factory)


def get_goal_service(
    factory: sessionmaker = Depends(get_session_factory_dep),
) -> GoalService:
    return GoalService(factory)


def get_action_service(
    factory: sessionmaker = Depends(get_session_factory_dep),
) -> ActionService:
    return ActionService(factory)


def get_progress_recorder(
    factory: sessionmaker = Depends(get_session_factory_dep),
) -> ProgressUpdateRecorder:
    return ProgressUpdateRecorder(factory)


def get_ai_advisor() -> AIAdvisoryClient:
    """設定から組み立てたAIアドバイスクライアント"""
    return AIAdvisoryClient(AdvisorConfig.from_settings(get_settings()))
