"""
Action Model

目標に紐づく具体的なアクション
"""

from sqlalchemy import (
    Column,
    String,
    Text,
    Date,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from lib.goal import ActionStatus
from app.models.base import Base, TimestampMixin, generate_uuid


class Action(Base, TimestampMixin):
    """アクションテーブル

    ステータス:
        - todo: 未着手（デフォルト）
        - in_progress: 進行中
        - done: 完了

    作業量（effort）:
        - S / M / L（任意）
    """

    __tablename__ = "actions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    goal_id = Column(
        String(36),
        ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        String(20),
        nullable=False,
        default=ActionStatus.TODO.value,
    )
    effort = Column(String(1), nullable=True)
    due_date = Column(Date, nullable=True)

    # Relationships
    goal = relationship("Goal", back_populates="actions")

    __table_args__ = (
        Index("idx_actions_user_status", "user_id", "status"),
        Index("idx_actions_goal_status", "goal_id", "status"),
        CheckConstraint(
            "status IN ('todo', 'in_progress', 'done')",
            name="check_action_status",
        ),
        CheckConstraint(
            "effort IS NULL OR effort IN ('S', 'M', 'L')",
            name="check_action_effort",
        ),
    )

    def __repr__(self):
        return f"<Action(id={self.id}, title={self.title}, status={self.status})>"
