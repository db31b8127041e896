"""
Goal Status Engine

目標の進捗率と期限からステータス（on_track / at_risk / off_track）を判定する。

判定ルール:
    1. 今日が期限日より後 → off_track（進捗率に関係なく）
    2. それ以外は 進捗率 = current_value / target_value
       - 0.8 以上       → on_track
       - 0.5 以上 0.8 未満 → at_risk
       - 0.5 未満       → off_track

使用例:
    from lib.goal import compute_goal_status

    status = compute_goal_status(
        current_value=Decimal("65"),
        target_value=Decimal("100"),
        due_date=date(2026, 12, 31),
    )
    # GoalStatus.AT_RISK
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from lib.exceptions import ValidationError

Number = Union[Decimal, int, float, str]


# =============================================================================
# 定数定義
# =============================================================================

ON_TRACK_THRESHOLD = Decimal("0.8")
AT_RISK_THRESHOLD = Decimal("0.5")


class GoalStatus(str, Enum):
    """目標ステータス（導出値）"""
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    OFF_TRACK = "off_track"


class ActionStatus(str, Enum):
    """アクションステータス"""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class EffortLevel(str, Enum):
    """作業量"""
    SMALL = "S"
    MEDIUM = "M"
    LARGE = "L"


# =============================================================================
# ヘルパー
# =============================================================================

def to_decimal(value: Number, field_name: str = "value") -> Decimal:
    """
    数値を Decimal に変換

    float は str 経由で変換し、2進誤差を持ち込まない。

    Raises:
        ValidationError: 数値として解釈できない場合
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"{field_name} must be a number", field=field_name)
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number", field=field_name)
    return result


def today_utc() -> date:
    """UTC 基準の今日"""
    return datetime.now(timezone.utc).date()


def progress_ratio(current_value: Number, target_value: Number) -> Decimal:
    """進捗率（current / target）"""
    target = to_decimal(target_value, "target_value")
    if target <= 0:
        raise ValidationError("Target value must be positive", field="target_value")
    return to_decimal(current_value, "current_value") / target


def progress_percentage(current_value: Number, target_value: Number) -> int:
    """進捗率（%、四捨五入）"""
    ratio = progress_ratio(current_value, target_value)
    return int((ratio * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# ステータス判定
# =============================================================================

def compute_goal_status(
    current_value: Number,
    target_value: Number,
    due_date: Optional[date],
    today: Optional[date] = None,
) -> GoalStatus:
    """
    目標ステータスを判定する（純粋関数）

    Args:
        current_value: 現在値（0以上）
        target_value: 目標値（正の数。呼び出し側で検証済みであること）
        due_date: 期限日。None の場合は期限超過判定を行わず進捗率のみで判定
        today: 判定基準日（省略時は UTC の今日）

    Returns:
        GoalStatus

    Raises:
        ValidationError: target_value が 0 以下の場合
    """
    if today is None:
        today = today_utc()

    if isinstance(due_date, datetime):
        due_date = due_date.date()

    # 期限超過は進捗率に関係なく off_track
    if due_date is not None and today > due_date:
        return GoalStatus.OFF_TRACK

    ratio = progress_ratio(current_value, target_value)

    if ratio >= ON_TRACK_THRESHOLD:
        return GoalStatus.ON_TRACK
    elif ratio >= AT_RISK_THRESHOLD:
        return GoalStatus.AT_RISK
    else:
        return GoalStatus.OFF_TRACK
