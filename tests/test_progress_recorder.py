"""
tests/test_progress_recorder.py - 進捗チェックイン記録のテスト

- 履歴が previous_value -> new_value で連鎖する
- 所有者以外・存在しない目標は NotFoundError
- 負の値は ValidationError（書き込みなし）
- 履歴の書き込みに失敗した場合は目標の更新もロールバック
- 目標行の取得は SELECT ... FOR UPDATE
- SQLite でも同時チェックインの履歴が連鎖する（BEGIN IMMEDIATE）
"""

import threading
import time
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from lib.db import use_immediate_transactions
from lib.exceptions import NotFoundError, PersistenceError, ValidationError
from app.models import Base, Goal, GoalUpdate
from app.services.progress_recorder import ProgressUpdateRecorder, locked_goal_query
from conftest import create_user

TODAY = date(2026, 6, 15)


def _load_goal(session_factory, goal_id) -> Goal:
    with session_factory() as session:
        return session.get(Goal, goal_id)


def _load_updates(session_factory, goal_id):
    with session_factory() as session:
        return list(
            session.execute(
                select(GoalUpdate).where(GoalUpdate.goal_id == goal_id)
            ).scalars().all()
        )


@pytest.fixture
def recorder(session_factory):
    return ProgressUpdateRecorder(session_factory)


# ================================================================
# 正常系
# ================================================================


class TestRecordUpdate:
    """進捗の記録"""

    def test_records_update_and_sets_current_value(self, recorder, session_factory, make_goal, user):
        goal_id = make_goal(target_value=100, due_date=TODAY + timedelta(days=30))

        update_id = recorder.record_update(goal_id, user.id, Decimal("85"), notes="Good week", today=TODAY)

        goal = _load_goal(session_factory, goal_id)
        assert goal.current_value == Decimal("85")
        assert goal.status == "on_track"

        updates = _load_updates(session_factory, goal_id)
        assert len(updates) == 1
        assert updates[0].id == update_id
        assert updates[0].previous_value == Decimal("0")
        assert updates[0].new_value == Decimal("85")
        assert updates[0].notes == "Good week"
        assert updates[0].user_id == user.id

    def test_sequential_updates_chain(self, recorder, session_factory, make_goal, user):
        """20 -> 30 -> 40 のように前の値が次の previous_value になる"""
        goal_id = make_goal(target_value=100)

        recorder.record_update(goal_id, user.id, 20, today=TODAY)
        recorder.record_update(goal_id, user.id, 30, today=TODAY)
        recorder.record_update(goal_id, user.id, 40, today=TODAY)

        transitions = sorted(
            (u.previous_value, u.new_value) for u in _load_updates(session_factory, goal_id)
        )
        assert transitions == [
            (Decimal("0"), Decimal("20")),
            (Decimal("20"), Decimal("30")),
            (Decimal("30"), Decimal("40")),
        ]
        assert _load_goal(session_factory, goal_id).current_value == Decimal("40")

    def test_status_recomputed_from_new_value(self, recorder, session_factory, make_goal, user):
        goal_id = make_goal(target_value=100, due_date=TODAY + timedelta(days=10))

        recorder.record_update(goal_id, user.id, 65, today=TODAY)
        assert _load_goal(session_factory, goal_id).status == "at_risk"

        recorder.record_update(goal_id, user.id, 10, today=TODAY)
        assert _load_goal(session_factory, goal_id).status == "off_track"

    def test_overdue_goal_stays_off_track(self, recorder, session_factory, make_goal, user):
        goal_id = make_goal(target_value=100, due_date=TODAY - timedelta(days=1))

        recorder.record_update(goal_id, user.id, 100, today=TODAY)

        goal = _load_goal(session_factory, goal_id)
        assert goal.current_value == Decimal("100")
        assert goal.status == "off_track"

    def test_only_progress_fields_change(self, recorder, session_factory, make_goal, user):
        goal_id = make_goal(title="Read 12 books", target_value=12, unit="books")
        before = _load_goal(session_factory, goal_id)

        recorder.record_update(goal_id, user.id, 3, today=TODAY)

        after = _load_goal(session_factory, goal_id)
        assert after.title == before.title
        assert after.target_value == before.target_value
        assert after.unit == before.unit
        assert after.due_date == before.due_date
        assert after.current_value == Decimal("3")

    def test_zero_value_is_allowed(self, recorder, session_factory, make_goal, user):
        goal_id = make_goal()
        recorder.record_update(goal_id, user.id, 0, today=TODAY)
        assert len(_load_updates(session_factory, goal_id)) == 1


# ================================================================
# 異常系
# ================================================================


class TestRecordUpdateErrors:
    """検証・所有者・永続化エラー"""

    def test_negative_value_rejected(self, recorder, session_factory, make_goal, user):
        goal_id = make_goal()

        with pytest.raises(ValidationError):
            recorder.record_update(goal_id, user.id, -1)

        assert _load_updates(session_factory, goal_id) == []
        assert _load_goal(session_factory, goal_id).current_value == Decimal("0")

    def test_too_long_note_rejected(self, recorder, make_goal, user):
        goal_id = make_goal()
        with pytest.raises(ValidationError):
            recorder.record_update(goal_id, user.id, 5, notes="x" * 1001)

    def test_other_users_goal_is_not_found(self, recorder, session_factory, make_goal, other_user):
        goal_id = make_goal()

        with pytest.raises(NotFoundError):
            recorder.record_update(goal_id, other_user.id, 50)

        assert _load_updates(session_factory, goal_id) == []

    def test_unknown_goal_is_not_found(self, recorder, user):
        with pytest.raises(NotFoundError) as exc_info:
            recorder.record_update("00000000-0000-0000-0000-000000000000", user.id, 50)
        assert exc_info.value.message == "Goal not found"

    def test_history_failure_rolls_back_goal(self, recorder, session_factory, make_goal, user):
        """履歴の挿入に失敗したら current_value も元に戻る"""
        goal_id = make_goal(target_value=100)
        recorder.record_update(goal_id, user.id, 20, today=TODAY)

        with patch(
            "app.services.progress_recorder.GoalUpdate",
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
        ):
            with pytest.raises(PersistenceError):
                recorder.record_update(goal_id, user.id, 90, today=TODAY)

        goal = _load_goal(session_factory, goal_id)
        assert goal.current_value == Decimal("20")
        assert goal.status == "off_track"
        assert len(_load_updates(session_factory, goal_id)) == 1


# ================================================================
# 行ロック
# ================================================================


class TestRowLock:
    """目標行は FOR UPDATE で取得する"""

    def test_query_uses_for_update(self):
        stmt = locked_goal_query("goal-1", "user-1")
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql

    def test_query_filters_by_owner(self):
        stmt = locked_goal_query("goal-1", "user-1")
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "goals.id" in sql
        assert "goals.user_id" in sql

    def test_update_goal_locks_the_row(self, session_factory, make_goal, user):
        """目標の編集もチェックインと同じ行ロックで読む"""
        from app.services import goal_service
        from app.services.goal_service import GoalService

        goal_id = make_goal(target_value=100)

        with patch.object(
            goal_service, "locked_goal_query", wraps=goal_service.locked_goal_query
        ) as locked:
            GoalService(session_factory).update_goal(goal_id, user.id, {"target_value": 50}, today=TODAY)

        locked.assert_called_once_with(goal_id, user.id)
        assert _load_goal(session_factory, goal_id).target_value == Decimal("50")


# ================================================================
# 同時チェックイン
# ================================================================


@pytest.fixture
def file_session_factory(tmp_path):
    """ファイル上の SQLite（スレッドごとに別接続）"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'goals.db'}",
        connect_args={"check_same_thread": False},
    )
    use_immediate_transactions(engine)
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


class TestConcurrentCheckins:
    """同じ目標への同時チェックインは直列化される"""

    def test_concurrent_updates_chain(self, file_session_factory):
        from app.services.goal_service import GoalService
        from app.services import progress_recorder

        owner = create_user(file_session_factory)
        goal_id = GoalService(file_session_factory).create_goal(
            owner.id, title="Run 100 km", target_value=100, due_date=TODAY + timedelta(days=30)
        )
        recorder = ProgressUpdateRecorder(file_session_factory)
        recorder.record_update(goal_id, owner.id, 20, today=TODAY)

        original = progress_recorder.compute_goal_status

        def slow_status(*args, **kwargs):
            # ロックを持ったまま待ち、もう一方のチェックインと重ねる
            time.sleep(0.3)
            return original(*args, **kwargs)

        barrier = threading.Barrier(2)
        errors = []

        def check_in(value):
            barrier.wait()
            try:
                recorder.record_update(goal_id, owner.id, value, today=TODAY)
            except Exception as e:
                errors.append(e)

        with patch.object(progress_recorder, "compute_goal_status", side_effect=slow_status):
            threads = [threading.Thread(target=check_in, args=(v,)) for v in (30, 40)]
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=10)

        assert errors == []
        transitions = {
            (u.previous_value, u.new_value)
            for u in _load_updates(file_session_factory, goal_id)
            if u.previous_value != 0
        }
        assert transitions in (
            {(Decimal("20"), Decimal("30")), (Decimal("30"), Decimal("40"))},
            {(Decimal("20"), Decimal("40")), (Decimal("40"), Decimal("30"))},
        )

        last_value = ({Decimal("30"), Decimal("40")} - {prev for prev, _ in transitions}).pop()
        assert _load_goal(file_session_factory, goal_id).current_value == last_value
