"""
pytest 共通フィクスチャ

テスト全体で共有するフィクスチャを定義します。
API・サービスのテストはインメモリ SQLite（StaticPool）で実行する。
"""

import os
import sys
from datetime import date, timedelta

import pytest

# プロジェクトルートをパスに追加
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)
# api/app のインポート用にapiディレクトリも追加
sys.path.insert(0, os.path.join(project_root, "api"))

# テスト用JWT秘密鍵
TEST_JWT_SECRET = "test-secret-key-for-unit-tests-only"

# 設定はインポート時に読まれるため、アプリのモジュールより先に設定する
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = TEST_JWT_SECRET
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ["DB_AUTO_CREATE"] = "false"

from lib.config import get_settings  # noqa: E402

get_settings.cache_clear()

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.models import Base  # noqa: E402


# ================================================================
# 日付ヘルパー
# ================================================================

def days_from_today(days: int) -> date:
    return date.today() + timedelta(days=days)


# ================================================================
# データベース
# ================================================================

@pytest.fixture
def engine():
    """インメモリ SQLite エンジン（全スレッドで同じ接続を共有）"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    """テスト用セッションファクトリ"""
    return sessionmaker(bind=engine, expire_on_commit=False)


# ================================================================
# ユーザー・トークン
# ================================================================

def create_user(session_factory, email="alice@example.com", name="Alice", password="password123"):
    """ユーザーを登録して返す"""
    from app.services.user_service import UserService

    return UserService(session_factory).register(name=name, email=email, password=password)


def auth_header_for(user) -> dict:
    from app.deps.auth import create_access_token

    token = create_access_token(user.id, user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(session_factory):
    return create_user(session_factory)


@pytest.fixture
def other_user(session_factory):
    return create_user(session_factory, email="bob@example.com", name="Bob")


@pytest.fixture
def auth_headers(user):
    return auth_header_for(user)


# ================================================================
# アプリ・クライアント
# ================================================================

@pytest.fixture
def app(session_factory):
    """セッションファクトリを差し替えたテスト用アプリ"""
    from api.main import create_app
    from app.deps.db import get_session_factory_dep
    from app.limiter import limiter

    limiter.enabled = False
    application = create_app()
    application.dependency_overrides[get_session_factory_dep] = lambda: session_factory
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


# ================================================================
# 目標データ
# ================================================================

@pytest.fixture
def make_goal(session_factory, user):
    """目標を作成するファクトリ"""
    from app.services.goal_service import GoalService

    service = GoalService(session_factory)

    def _make(
        title="Run 100 km",
        target_value=100,
        due_date=None,
        owner=None,
        description=None,
        unit="km",
    ) -> str:
        owner = owner or user
        return service.create_goal(
            owner.id,
            title=title,
            target_value=target_value,
            due_date=due_date if due_date is not None else days_from_today(30),
            description=description,
            unit=unit,
        )

    return _make
