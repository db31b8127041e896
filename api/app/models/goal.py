"""
Goal Models

目標と進捗履歴のモデル定義

    - goals:        数値目標（目標値・現在値・期限・導出ステータス）
    - goal_updates: 進捗チェックインの履歴（追記のみ）
"""

from sqlalchemy import (
    Column,
    String,
    Text,
    Date,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.types import DECIMAL
from sqlalchemy.orm import relationship

from lib.goal import GoalStatus, progress_percentage
from app.models.base import Base, TimestampMixin, generate_uuid, utcnow


class Goal(Base, TimestampMixin):
    """目標管理テーブル

    status は lib.goal.compute_goal_status の結果を保存したもの。
    読み出し・書き込みのたびに再計算される。
    """

    __tablename__ = "goals"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    target_value = Column(DECIMAL(10, 2), nullable=False)
    current_value = Column(DECIMAL(10, 2), nullable=False, default=0)
    unit = Column(String(50), nullable=True)  # 'km', 'books', '円'

    due_date = Column(Date, nullable=True)

    status = Column(
        String(20),
        nullable=False,
        default=GoalStatus.ON_TRACK.value,
    )

    # Relationships
    user = relationship("User", back_populates="goals")
    actions = relationship(
        "Action",
        back_populates="goal",
        cascade="all, delete-orphan",
        order_by="Action.created_at.desc()",
    )
    goal_updates = relationship(
        "GoalUpdate",
        back_populates="goal",
        cascade="all, delete-orphan",
        order_by="GoalUpdate.created_at.desc()",
    )

    __table_args__ = (
        Index("idx_goals_user_status", "user_id", "status"),
        CheckConstraint("target_value > 0", name="check_goal_target_positive"),
        CheckConstraint("current_value >= 0", name="check_goal_current_non_negative"),
        CheckConstraint(
            "status IN ('on_track', 'at_risk', 'off_track')",
            name="check_goal_status",
        ),
    )

    def __repr__(self):
        return f"<Goal(id={self.id}, title={self.title}, user_id={self.user_id})>"

    @property
    def progress_percentage(self) -> int:
        """進捗率（%）"""
        if not self.target_value:
            return 0
        return progress_percentage(self.current_value or 0, self.target_value)


class GoalUpdate(Base):
    """進捗チェックイン履歴

    previous_value -> new_value の遷移を1行ずつ記録する。
    更新されないため updated_at は持たない。
    """

    __tablename__ = "goal_updates"

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

    previous_value = Column(DECIMAL(10, 2), nullable=False)
    new_value = Column(DECIMAL(10, 2), nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Relationships
    goal = relationship("Goal", back_populates="goal_updates")

    __table_args__ = (
        Index("idx_goal_updates_goal_created", "goal_id", "created_at"),
        CheckConstraint("new_value >= 0", name="check_goal_update_new_value"),
    )

    def __repr__(self):
        return (
            f"<GoalUpdate(id={self.id}, goal_id={self.goal_id}, "
            f"{self.previous_value} -> {self.new_value})>"
        )
