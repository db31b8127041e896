"""
tests/test_db.py - lib.db のテスト

DATABASE_URL は conftest で sqlite:// に設定済み。
"""

import pytest
from sqlalchemy import text

from lib.db import close_db_pool, get_db_pool, get_db_session, get_session_factory


@pytest.fixture(autouse=True)
def _reset_pool():
    close_db_pool()
    yield
    close_db_pool()


class TestDbPool:
    """エンジン・セッションファクトリのシングルトン"""

    def test_pool_is_shared(self):
        assert get_db_pool() is get_db_pool()

    def test_session_factory_is_bound_to_pool(self):
        factory = get_session_factory()

        assert factory is get_session_factory()
        assert factory.kw["bind"] is get_db_pool()

    def test_close_resets_singletons(self):
        pool = get_db_pool()
        factory = get_session_factory()

        close_db_pool()

        assert get_db_pool() is not pool
        assert get_session_factory() is not factory

    def test_get_db_session(self):
        with get_db_session() as session:
            assert session.execute(text("SELECT 1")).scalar_one() == 1
