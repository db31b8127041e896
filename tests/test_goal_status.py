"""
tests/test_goal_status.py - 目標ステータス判定のテスト

- 進捗率の閾値（0.8 / 0.5）
- 期限超過は進捗率に関係なく off_track
- 期限当日は超過扱いしない
- target_value が 0 以下は ValidationError
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from lib.exceptions import ValidationError
from lib.goal import (
    GoalStatus,
    compute_goal_status,
    progress_percentage,
    progress_ratio,
    to_decimal,
)

TODAY = date(2026, 6, 15)
FUTURE = date(2026, 12, 31)
PAST = date(2026, 6, 1)


# ================================================================
# 進捗率による判定
# ================================================================


class TestRatioThresholds:
    """期限内の目標は進捗率で判定される"""

    @pytest.mark.parametrize(
        "current, expected",
        [
            (Decimal("100"), GoalStatus.ON_TRACK),
            (Decimal("85"), GoalStatus.ON_TRACK),
            (Decimal("80"), GoalStatus.ON_TRACK),
            (Decimal("79.99"), GoalStatus.AT_RISK),
            (Decimal("65"), GoalStatus.AT_RISK),
            (Decimal("50"), GoalStatus.AT_RISK),
            (Decimal("49.99"), GoalStatus.OFF_TRACK),
            (Decimal("0"), GoalStatus.OFF_TRACK),
        ],
    )
    def test_thresholds(self, current, expected):
        assert compute_goal_status(current, Decimal("100"), FUTURE, today=TODAY) == expected

    def test_over_achievement_is_on_track(self):
        """目標超過も on_track"""
        assert compute_goal_status(150, 100, FUTURE, today=TODAY) == GoalStatus.ON_TRACK

    def test_non_round_target(self):
        """12 / 15 = 0.8 ちょうどは on_track"""
        assert compute_goal_status(12, 15, FUTURE, today=TODAY) == GoalStatus.ON_TRACK

    def test_accepts_int_float_and_str(self):
        assert compute_goal_status(80, 100, FUTURE, today=TODAY) == GoalStatus.ON_TRACK
        assert compute_goal_status(0.5, 1, FUTURE, today=TODAY) == GoalStatus.AT_RISK
        assert compute_goal_status("49", "100", FUTURE, today=TODAY) == GoalStatus.OFF_TRACK

    def test_no_due_date_uses_ratio_only(self):
        """期限なしは進捗率のみで判定"""
        assert compute_goal_status(90, 100, None, today=TODAY) == GoalStatus.ON_TRACK
        assert compute_goal_status(10, 100, None, today=TODAY) == GoalStatus.OFF_TRACK


# ================================================================
# 期限による判定
# ================================================================


class TestOverdue:
    """期限超過の判定"""

    def test_overdue_is_off_track_even_when_complete(self):
        """達成済みでも期限超過なら off_track"""
        assert compute_goal_status(100, 100, PAST, today=TODAY) == GoalStatus.OFF_TRACK

    def test_due_today_is_not_overdue(self):
        """期限当日は超過扱いしない"""
        assert compute_goal_status(90, 100, TODAY, today=TODAY) == GoalStatus.ON_TRACK

    def test_one_day_after_due_is_overdue(self):
        assert compute_goal_status(90, 100, date(2026, 6, 14), today=TODAY) == GoalStatus.OFF_TRACK

    def test_datetime_due_date_is_compared_by_date(self):
        due = datetime(2026, 6, 15, 0, 0, 1)
        assert compute_goal_status(90, 100, due, today=TODAY) == GoalStatus.ON_TRACK

    def test_defaults_to_utc_today(self):
        """today 省略時も判定できる（遠い未来・過去の期限）"""
        assert compute_goal_status(90, 100, date(2999, 1, 1)) == GoalStatus.ON_TRACK
        assert compute_goal_status(90, 100, date(2000, 1, 1)) == GoalStatus.OFF_TRACK

    def test_idempotent(self):
        first = compute_goal_status(65, 100, FUTURE, today=TODAY)
        second = compute_goal_status(65, 100, FUTURE, today=TODAY)
        assert first == second == GoalStatus.AT_RISK


# ================================================================
# 入力検証
# ================================================================


class TestValidation:
    """不正な入力"""

    @pytest.mark.parametrize("target", [0, -1, Decimal("-0.01")])
    def test_non_positive_target_raises(self, target):
        with pytest.raises(ValidationError) as exc_info:
            compute_goal_status(10, target, FUTURE, today=TODAY)
        assert exc_info.value.field == "target_value"

    def test_overdue_check_runs_before_target_check(self):
        """期限超過は進捗率を計算せずに off_track"""
        assert compute_goal_status(10, 0, PAST, today=TODAY) == GoalStatus.OFF_TRACK

    @pytest.mark.parametrize("value", ["abc", None, True, float("nan"), float("inf")])
    def test_to_decimal_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError):
            to_decimal(value)

    def test_to_decimal_avoids_float_artifacts(self):
        assert to_decimal(0.1) == Decimal("0.1")


class TestProgressPercentage:
    """進捗率（%）"""

    def test_ratio(self):
        assert progress_ratio(30, 120) == Decimal("0.25")

    def test_rounds_half_up(self):
        assert progress_percentage(1, 8) == 13  # 12.5 -> 13
        assert progress_percentage(2, 3) == 67

    def test_over_100_percent(self):
        assert progress_percentage(150, 100) == 150
