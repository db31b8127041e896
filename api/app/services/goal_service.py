"""
Goal Service

目標のCRUD・進捗履歴・ダッシュボード集計・AI用コンテキスト組み立て

全ての読み出しは所有者（user_id）で絞り込む。他人の目標は存在しないものとして
NotFoundError を返し、存在の有無を漏らさない。
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from lib.ai_advisor import ActionSnapshot, GoalSnapshot, UpdateSnapshot
from lib.exceptions import NotFoundError, PersistenceError
from lib.goal import (
    ActionStatus,
    EffortLevel,
    compute_goal_status,
    to_decimal,
)
from lib.logging import get_logger
from app.models import Action, Goal, GoalUpdate
from app.services.progress_recorder import locked_goal_query

logger = get_logger(__name__)

# 更新可能なフィールド（current_value は進捗チェックイン経由でのみ変更）
UPDATABLE_FIELDS = ("title", "description", "target_value", "unit", "due_date")

# null を指定されても無視するフィールド
NON_NULLABLE_FIELDS = ("title", "target_value")


def refresh_goal_status(goal: Goal, today: Optional[date] = None) -> bool:
    """
    目標のステータスを再計算して設定する

    Returns:
        bool: ステータスが変化した場合 True
    """
    status = compute_goal_status(
        goal.current_value or 0,
        goal.target_value,
        goal.due_date,
        today,
    ).value
    if goal.status != status:
        goal.status = status
        return True
    return False


class GoalService:
    """目標サービス"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ------------------------------------------------------------
    # 内部ヘルパー
    # ------------------------------------------------------------

    @staticmethod
    def _owned_goal_query(
        goal_id: str,
        user_id: str,
        with_relations: bool = False,
        lock: bool = False,
    ):
        if lock:
            # 進捗チェックインと同じ行ロック
            return locked_goal_query(goal_id, user_id)
        query = select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id)
        if with_relations:
            query = query.options(
                selectinload(Goal.actions),
                selectinload(Goal.goal_updates),
            )
        return query

    def _get_owned_goal(
        self,
        session: Session,
        goal_id: str,
        user_id: str,
        with_relations: bool = False,
        lock: bool = False,
    ) -> Goal:
        goal = session.execute(
            self._owned_goal_query(goal_id, user_id, with_relations, lock)
        ).scalar_one_or_none()
        if goal is None:
            raise NotFoundError(
                "Goal not found",
                resource_type="goal",
                resource_id=goal_id,
            )
        return goal

    # ------------------------------------------------------------
    # 読み出し
    # ------------------------------------------------------------

    def list_goals(
        self,
        user_id: str,
        page: int = 1,
        per_page: int = 10,
        fetch_all: bool = False,
        today: Optional[date] = None,
    ) -> Tuple[List[Goal], int]:
        """
        目標一覧（新しい順、アクション・履歴つき）

        ステータスは返却用に再計算する。一覧取得では書き戻さない。

        Returns:
            (目標リスト, 総件数)
        """
        query = (
            select(Goal)
            .where(Goal.user_id == user_id)
            .options(
                selectinload(Goal.actions),
                selectinload(Goal.goal_updates),
            )
            .order_by(Goal.created_at.desc(), Goal.id)
        )

        with self._session_factory() as session:
            total = session.execute(
                select(func.count()).select_from(Goal).where(Goal.user_id == user_id)
            ).scalar_one()

            if not fetch_all:
                query = query.offset((page - 1) * per_page).limit(per_page)

            goals = list(session.execute(query).scalars().all())
            for goal in goals:
                refresh_goal_status(goal, today)

            # 再計算した値は返却用。コミットせずにセッションから切り離す
            session.expunge_all()

        return goals, total

    def get_goal(
        self,
        goal_id: str,
        user_id: str,
        today: Optional[date] = None,
    ) -> Goal:
        """目標詳細（再計算したステータスを書き戻す）"""
        try:
            with self._session_factory.begin() as session:
                goal = self._get_owned_goal(session, goal_id, user_id, with_relations=True)
                if refresh_goal_status(goal, today):
                    logger.info(
                        "Goal status refreshed on read",
                        goal_id=goal_id,
                        status=goal.status,
                    )
        except SQLAlchemyError as e:
            logger.error("Failed to load goal", goal_id=goal_id, error=str(e))
            raise PersistenceError("Failed to load goal", operation="get_goal") from e

        return goal

    def list_updates(
        self,
        goal_id: str,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[GoalUpdate]:
        """進捗履歴（新しい順）"""
        with self._session_factory() as session:
            self._get_owned_goal(session, goal_id, user_id)

            query = (
                select(GoalUpdate)
                .where(GoalUpdate.goal_id == goal_id)
                .order_by(GoalUpdate.created_at.desc())
            )
            if limit:
                query = query.limit(limit)

            return list(session.execute(query).scalars().all())

    def dashboard_stats(
        self,
        user_id: str,
        today: Optional[date] = None,
    ) -> Dict[str, int]:
        """
        ダッシュボード集計

        目標の件数は保存値ではなく再計算したステータスで数える。
        """
        stats = {
            "total_goals": 0,
            "on_track_goals": 0,
            "at_risk_goals": 0,
            "off_track_goals": 0,
            "total_actions": 0,
            "todo_actions": 0,
            "in_progress_actions": 0,
            "done_actions": 0,
        }

        with self._session_factory() as session:
            rows = session.execute(
                select(Goal.current_value, Goal.target_value, Goal.due_date)
                .where(Goal.user_id == user_id)
            ).all()

            for current_value, target_value, due_date in rows:
                status = compute_goal_status(current_value or 0, target_value, due_date, today)
                stats["total_goals"] += 1
                stats[f"{status.value}_goals"] += 1

            action_rows = session.execute(
                select(Action.status, func.count())
                .join(Goal, Action.goal_id == Goal.id)
                .where(Goal.user_id == user_id)
                .group_by(Action.status)
            ).all()

            for status, count in action_rows:
                stats["total_actions"] += count
                key = f"{status}_actions"
                if key in stats:
                    stats[key] += count

        return stats

    def get_advisory_context(
        self,
        goal_id: str,
        user_id: str,
        update_limit: int = 6,
    ) -> Tuple[GoalSnapshot, List[UpdateSnapshot], List[ActionSnapshot]]:
        """
        AIアドバイス用のスナップショットを組み立てる

        Returns:
            (目標, 進捗履歴（新しい順）, アクション（新しい順）)
        """
        with self._session_factory() as session:
            goal = self._get_owned_goal(session, goal_id, user_id)

            updates = session.execute(
                select(GoalUpdate)
                .where(GoalUpdate.goal_id == goal_id)
                .order_by(GoalUpdate.created_at.desc())
                .limit(update_limit)
            ).scalars().all()

            actions = session.execute(
                select(Action)
                .where(Action.goal_id == goal_id)
                .order_by(Action.created_at.desc())
            ).scalars().all()

            goal_snapshot = GoalSnapshot(
                title=goal.title,
                description=goal.description,
                target_value=goal.target_value,
                current_value=goal.current_value or 0,
                unit=goal.unit,
                due_date=goal.due_date,
            )
            update_snapshots = [
                UpdateSnapshot(
                    previous_value=u.previous_value,
                    new_value=u.new_value,
                    created_at=u.created_at,
                    notes=u.notes,
                )
                for u in updates
            ]
            action_snapshots = [
                ActionSnapshot(
                    title=a.title,
                    status=ActionStatus(a.status),
                    effort=EffortLevel(a.effort) if a.effort else None,
                    due_date=a.due_date,
                    description=a.description,
                )
                for a in actions
            ]

        return goal_snapshot, update_snapshots, action_snapshots

    # ------------------------------------------------------------
    # 書き込み
    # ------------------------------------------------------------

    def create_goal(
        self,
        user_id: str,
        title: str,
        target_value: Any,
        due_date: Optional[date],
        description: Optional[str] = None,
        unit: Optional[str] = None,
        today: Optional[date] = None,
    ) -> str:
        """目標を作成（current_value=0、ステータスは計算値）"""
        target = to_decimal(target_value, "target_value")
        status = compute_goal_status(0, target, due_date, today)

        try:
            with self._session_factory.begin() as session:
                goal = Goal(
                    user_id=user_id,
                    title=title,
                    description=description,
                    target_value=target,
                    current_value=to_decimal(0),
                    unit=unit,
                    due_date=due_date,
                    status=status.value,
                )
                session.add(goal)
                session.flush()
                goal_id = goal.id
        except SQLAlchemyError as e:
            logger.error("Failed to create goal", user_id=user_id, error=str(e))
            raise PersistenceError("Failed to create goal", operation="create_goal") from e

        return goal_id

    def update_goal(
        self,
        goal_id: str,
        user_id: str,
        changes: Dict[str, Any],
        today: Optional[date] = None,
    ) -> str:
        """
        目標を部分更新し、ステータスを再計算する

        current_value は変更しない。
        """
        fields = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        if "target_value" in fields and fields["target_value"] is not None:
            fields["target_value"] = to_decimal(fields["target_value"], "target_value")

        try:
            with self._session_factory.begin() as session:
                goal = self._get_owned_goal(session, goal_id, user_id, lock=True)
                for key, value in fields.items():
                    if value is None and key in NON_NULLABLE_FIELDS:
                        continue
                    setattr(goal, key, value)
                refresh_goal_status(goal, today)
        except SQLAlchemyError as e:
            logger.error("Failed to update goal", goal_id=goal_id, error=str(e))
            raise PersistenceError("Failed to update goal", operation="update_goal") from e

        return goal_id

    def delete_goal(self, goal_id: str, user_id: str) -> None:
        """目標を削除（アクション・履歴も削除）"""
        try:
            with self._session_factory.begin() as session:
                goal = self._get_owned_goal(session, goal_id, user_id)
                session.delete(goal)
        except SQLAlchemyError as e:
            logger.error("Failed to delete goal", goal_id=goal_id, error=str(e))
            raise PersistenceError("Failed to delete goal", operation="delete_goal") from e

