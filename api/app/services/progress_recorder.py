"""
Progress Update Recorder

進捗チェックインを1トランザクションで記録する。

    1. 目標行を所有者つきで検索し、行ロックを取得（SELECT ... FOR UPDATE）
    2. 更新前の値を控え、current_value を新しい値に置き換える
    3. ステータスを再計算して目標を flush
    4. goal_updates に previous_value -> new_value の履歴を追加

同じ目標への同時チェックインは行ロックで直列化されるため、
履歴は 20 -> 30, 30 -> 40 のように連鎖する。
"""

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import Select

from lib.exceptions import GoalTrackerError, NotFoundError, PersistenceError, ValidationError
from lib.goal import Number, compute_goal_status, to_decimal
from lib.logging import get_logger, log_audit_event
from app.models import Goal, GoalUpdate

logger = get_logger(__name__)

NOTES_MAX_LENGTH = 1000


def locked_goal_query(goal_id: str, owner_id: str) -> Select:
    """所有者で絞り込んだ目標の行ロック付きクエリ"""
    return (
        select(Goal)
        .where(Goal.id == goal_id, Goal.user_id == owner_id)
        .with_for_update()
    )


class ProgressUpdateRecorder:
    """進捗チェックイン記録サービス"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def record_update(
        self,
        goal_id: str,
        owner_id: str,
        new_value: Number,
        notes: Optional[str] = None,
        today: Optional[date] = None,
    ) -> str:
        """
        進捗を記録し、作成した履歴のIDを返す

        Args:
            goal_id: 目標ID
            owner_id: 呼び出し元ユーザーID（目標の所有者であること）
            new_value: 新しい現在値（0以上）
            notes: メモ（任意）
            today: ステータス判定の基準日（省略時は UTC の今日）

        Returns:
            str: goal_updates.id

        Raises:
            ValidationError: new_value が負、またはメモが長すぎる
            NotFoundError: 目標が存在しない、または他人の目標
            PersistenceError: 書き込みに失敗した（目標・履歴ともにロールバック済み）
        """
        value = to_decimal(new_value, "value")
        if value < 0:
            raise ValidationError("Value must be non-negative", field="value")
        if notes is not None and len(notes) > NOTES_MAX_LENGTH:
            raise ValidationError("Note too long", field="note")

        try:
            with self._session_factory.begin() as session:
                goal = session.execute(
                    locked_goal_query(goal_id, owner_id)
                ).scalar_one_or_none()

                if goal is None:
                    raise NotFoundError(
                        "Goal not found",
                        resource_type="goal",
                        resource_id=goal_id,
                    )

                previous_value = goal.current_value
                goal.current_value = value
                goal.status = compute_goal_status(
                    value, goal.target_value, goal.due_date, today
                ).value
                session.flush()

                update = GoalUpdate(
                    goal_id=goal.id,
                    user_id=owner_id,
                    previous_value=previous_value,
                    new_value=value,
                    notes=notes,
                )
                session.add(update)
                session.flush()

                update_id = update.id
                new_status = goal.status

        except GoalTrackerError:
            raise

        except SQLAlchemyError as e:
            logger.error(
                "Failed to record progress update",
                goal_id=goal_id,
                user_id=owner_id,
                error=str(e),
            )
            raise PersistenceError(
                "Failed to record progress update",
                operation="record_update",
            ) from e

        log_audit_event(
            logger=logger,
            action="record_progress",
            resource_type="goal",
            resource_id=goal_id,
            user_id=owner_id,
            details={
                "update_id": update_id,
                "previous_value": str(previous_value),
                "new_value": str(value),
                "status": new_status,
            },
        )

        return update_id
