"""
SQLAlchemy Base Model

共通のベースモデルを定義
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """タイムゾーン付きの現在時刻（UTC）"""
    return datetime.now(timezone.utc)


class TimestampMixin:
    """タイムスタンプ共通カラム"""

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utcnow,
        nullable=True,
    )


def generate_uuid():
    """UUID生成"""
    return str(uuid4())
