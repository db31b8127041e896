"""
データベース接続モジュール

SQLAlchemy のエンジン（コネクションプール）とセッションファクトリを提供。

使用例:
    from lib.db import get_db_pool, get_session_factory

    # コネクションプール
    pool = get_db_pool()
    with pool.connect() as conn:
        result = conn.execute(text("SELECT 1"))

    # ユニットオブワーク（成功時 commit / 例外時 rollback）
    factory = get_session_factory()
    with factory.begin() as session:
        session.add(obj)
"""

import threading
from contextlib import contextmanager
from typing import Optional

import sqlalchemy
from sqlalchemy import event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from lib.config import get_settings

# グローバル変数（スレッドセーフ）
_sync_pool: Optional[sqlalchemy.Engine] = None
_sync_pool_lock = threading.Lock()

_session_factory: Optional[sessionmaker] = None
_session_factory_lock = threading.Lock()


def use_immediate_transactions(engine: sqlalchemy.Engine) -> sqlalchemy.Engine:
    """
    SQLite のトランザクションを BEGIN IMMEDIATE で開始する

    SQLite は SELECT ... FOR UPDATE を無視するため、書き込みロックを
    トランザクション開始時に取って同じ目標への同時チェックインを直列化する。
    pysqlite 自身の BEGIN は無効にし、SQLAlchemy の begin イベントで発行する。
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def get_db_pool() -> sqlalchemy.Engine:
    """
    SQLAlchemy コネクションプールを取得

    アプリケーション全体で1つのプールを共有。
    DATABASE_URL が sqlite の場合はプール設定を適用しない。

    Returns:
        sqlalchemy.Engine: コネクションプール
    """
    global _sync_pool

    if _sync_pool is None:
        with _sync_pool_lock:
            if _sync_pool is None:
                settings = get_settings()

                if settings.DATABASE_URL.startswith("sqlite"):
                    _sync_pool = sqlalchemy.create_engine(
                        settings.DATABASE_URL,
                        connect_args={"check_same_thread": False},
                    )
                    use_immediate_transactions(_sync_pool)
                else:
                    _sync_pool = sqlalchemy.create_engine(
                        settings.DATABASE_URL,
                        poolclass=QueuePool,
                        pool_size=settings.DB_POOL_SIZE,
                        max_overflow=settings.DB_MAX_OVERFLOW,
                        pool_timeout=settings.DB_POOL_TIMEOUT,
                        pool_recycle=settings.DB_POOL_RECYCLE,
                        pool_pre_ping=True,
                    )

    return _sync_pool


def get_session_factory() -> sessionmaker:
    """
    セッションファクトリを取得（シングルトン）

    expire_on_commit=False: コミット後もレスポンス組み立てで属性を読めるようにする。
    """
    global _session_factory

    if _session_factory is None:
        with _session_factory_lock:
            if _session_factory is None:
                _session_factory = sessionmaker(
                    bind=get_db_pool(),
                    expire_on_commit=False,
                )

    return _session_factory


@contextmanager
def get_db_session():
    """
    DBセッションをコンテキストマネージャーで取得

    使用例:
        with get_db_session() as session:
            session.execute(text("SELECT 1"))
        # 自動的にクローズ
    """
    session: Session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def close_db_pool():
    """プールを破棄（シャットダウン時・テスト用）"""
    global _sync_pool, _session_factory

    with _sync_pool_lock:
        if _sync_pool is not None:
            _sync_pool.dispose()
        _sync_pool = None
    with _session_factory_lock:
        _session_factory = None
