"""
Action Service

目標に紐づくアクションのCRUD
"""

import re
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from lib.exceptions import NotFoundError, PersistenceError
from lib.goal import ActionStatus, today_utc
from lib.logging import get_logger
from app.models import Action, Goal

logger = get_logger(__name__)

# この日数以内（期限超過を含む）の期限を「due soon」とみなす
DUE_SOON_DAYS = 3

UPDATABLE_FIELDS = ("title", "description", "status", "effort", "due_date")


def _escape_like(value: str) -> str:
    """ILIKE/LIKEメタ文字をエスケープする。"""
    return re.sub(r"([%_\\])", r"\\\1", value)


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


class ActionService:
    """アクションサービス"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _ensure_goal_owned(session: Session, goal_id: str, user_id: str) -> None:
        found = session.execute(
            select(Goal.id).where(Goal.id == goal_id, Goal.user_id == user_id)
        ).scalar_one_or_none()
        if found is None:
            raise NotFoundError(
                "Goal not found",
                resource_type="goal",
                resource_id=goal_id,
            )

    @staticmethod
    def _get_owned_action(
        session: Session,
        action_id: str,
        goal_id: str,
        user_id: str,
    ) -> Action:
        action = session.execute(
            select(Action).where(
                Action.id == action_id,
                Action.goal_id == goal_id,
                Action.user_id == user_id,
            )
        ).scalar_one_or_none()
        if action is None:
            raise NotFoundError(
                "Action not found",
                resource_type="action",
                resource_id=action_id,
            )
        return action

    def list_actions(
        self,
        goal_id: str,
        user_id: str,
        status: Optional[ActionStatus] = None,
        search: Optional[str] = None,
        due_soon: bool = False,
        page: int = 1,
        per_page: int = 10,
        fetch_all: bool = False,
        today: Optional[date] = None,
    ) -> Tuple[List[Action], int]:
        """
        アクション一覧（期限の早い順 → 新しい順）

        Args:
            status: ステータスで絞り込み
            search: タイトルの部分一致（大文字小文字を区別しない）
            due_soon: 期限が DUE_SOON_DAYS 日以内（超過を含む）のものに限定

        Returns:
            (アクションリスト, 総件数)
        """
        today = today or today_utc()

        conditions = [Action.goal_id == goal_id, Action.user_id == user_id]
        if status is not None:
            conditions.append(Action.status == _enum_value(status))
        if search:
            conditions.append(
                Action.title.ilike(f"%{_escape_like(search)}%", escape="\\")
            )
        if due_soon:
            conditions.append(Action.due_date.is_not(None))
            conditions.append(Action.due_date <= today + timedelta(days=DUE_SOON_DAYS))

        query = (
            select(Action)
            .where(*conditions)
            .order_by(
                Action.due_date.asc().nulls_last(),
                Action.created_at.desc(),
            )
        )

        with self._session_factory() as session:
            self._ensure_goal_owned(session, goal_id, user_id)

            total = session.execute(
                select(func.count()).select_from(Action).where(*conditions)
            ).scalar_one()

            if not fetch_all:
                query = query.offset((page - 1) * per_page).limit(per_page)

            actions = list(session.execute(query).scalars().all())

        return actions, total

    def get_action(self, action_id: str, goal_id: str, user_id: str) -> Action:
        with self._session_factory() as session:
            return self._get_owned_action(session, action_id, goal_id, user_id)

    def create_action(
        self,
        goal_id: str,
        user_id: str,
        title: str,
        description: Optional[str] = None,
        effort: Any = None,
        due_date: Optional[date] = None,
    ) -> str:
        """アクションを作成（ステータスは todo）"""
        try:
            with self._session_factory.begin() as session:
                self._ensure_goal_owned(session, goal_id, user_id)
                action = Action(
                    goal_id=goal_id,
                    user_id=user_id,
                    title=title,
                    description=description,
                    status=ActionStatus.TODO.value,
                    effort=_enum_value(effort),
                    due_date=due_date,
                )
                session.add(action)
                session.flush()
                action_id = action.id
        except SQLAlchemyError as e:
            logger.error("Failed to create action", goal_id=goal_id, error=str(e))
            raise PersistenceError("Failed to create action", operation="create_action") from e

        return action_id

    def update_action(
        self,
        action_id: str,
        goal_id: str,
        user_id: str,
        changes: Dict[str, Any],
    ) -> str:
        """アクションを部分更新"""
        fields = {k: _enum_value(v) for k, v in changes.items() if k in UPDATABLE_FIELDS}

        try:
            with self._session_factory.begin() as session:
                action = self._get_owned_action(session, action_id, goal_id, user_id)
                for key, value in fields.items():
                    # title / status は null にできない
                    if value is None and key in ("title", "status"):
                        continue
                    setattr(action, key, value)
        except SQLAlchemyError as e:
            logger.error("Failed to update action", action_id=action_id, error=str(e))
            raise PersistenceError("Failed to update action", operation="update_action") from e

        return action_id

    def delete_action(self, action_id: str, goal_id: str, user_id: str) -> None:
        try:
            with self._session_factory.begin() as session:
                action = self._get_owned_action(session, action_id, goal_id, user_id)
                session.delete(action)
        except SQLAlchemyError as e:
            logger.error("Failed to delete action", action_id=action_id, error=str(e))
            raise PersistenceError("Failed to delete action", operation="delete_action") from e
