"""
Goal Schemas

目標・進捗チェックイン用のPydanticスキーマ
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from lib.goal import GoalStatus
from app.schemas.action import ActionItem
from app.schemas.common import PaginationMeta


# =============================================================================
# リクエストスキーマ
# =============================================================================


class GoalCreateRequest(BaseModel):
    """目標作成リクエスト"""

    title: str = Field(..., min_length=1, max_length=255, description="目標タイトル")
    description: Optional[str] = Field(None, max_length=1000, description="説明")
    target_value: Decimal = Field(
        ..., gt=0, max_digits=10, decimal_places=2, description="目標値（正の数）"
    )
    unit: Optional[str] = Field(None, min_length=1, max_length=50, description="単位")
    due_date: date = Field(..., description="期限日（YYYY-MM-DD）")


class GoalUpdateRequest(BaseModel):
    """目標更新リクエスト（current_value は更新不可）"""

    title: Optional[str] = Field(None, min_length=1, max_length=255, description="目標タイトル")
    description: Optional[str] = Field(None, max_length=1000, description="説明")
    target_value: Optional[Decimal] = Field(
        None, gt=0, max_digits=10, decimal_places=2, description="目標値（正の数）"
    )
    unit: Optional[str] = Field(None, min_length=1, max_length=50, description="単位")
    due_date: Optional[date] = Field(None, description="期限日（YYYY-MM-DD）")


class ProgressCheckinRequest(BaseModel):
    """進捗チェックインリクエスト"""

    value: Decimal = Field(
        ..., ge=0, max_digits=10, decimal_places=2, description="新しい現在値（0以上）"
    )
    note: Optional[str] = Field(None, max_length=1000, description="メモ")


# =============================================================================
# レスポンススキーマ
# =============================================================================


class GoalUpdateItem(BaseModel):
    """進捗履歴1件"""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="履歴ID")
    goal_id: str = Field(..., description="目標ID")
    previous_value: Decimal = Field(..., description="更新前の値")
    new_value: Decimal = Field(..., description="更新後の値")
    notes: Optional[str] = Field(None, description="メモ")
    created_at: datetime = Field(..., description="記録日時")


class GoalItem(BaseModel):
    """目標（アクション・履歴つき）"""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="目標ID")
    title: str = Field(..., description="目標タイトル")
    description: Optional[str] = Field(None, description="説明")
    target_value: Decimal = Field(..., description="目標値")
    current_value: Decimal = Field(..., description="現在値")
    unit: Optional[str] = Field(None, description="単位")
    due_date: Optional[date] = Field(None, description="期限日")
    status: GoalStatus = Field(..., description="ステータス（on_track/at_risk/off_track）")
    progress_percentage: int = Field(..., description="進捗率（%）")
    created_at: datetime = Field(..., description="作成日時")
    updated_at: Optional[datetime] = Field(None, description="更新日時")
    actions: List[ActionItem] = Field(default_factory=list, description="アクション")
    goal_updates: List[GoalUpdateItem] = Field(default_factory=list, description="進捗履歴（新しい順）")


class GoalListResponse(BaseModel):
    """目標一覧レスポンス"""

    status: str = Field("success", description="ステータス")
    goals: List[GoalItem] = Field(default_factory=list, description="目標一覧")
    pagination: Optional[PaginationMeta] = Field(None, description="ページネーション（all=true の場合は null）")


class GoalDetailResponse(BaseModel):
    """目標詳細レスポンス"""

    status: str = Field("success", description="ステータス")
    goal: GoalItem


class GoalHistoryResponse(BaseModel):
    """進捗履歴レスポンス"""

    status: str = Field("success", description="ステータス")
    goal_id: str = Field(..., description="目標ID")
    updates: List[GoalUpdateItem] = Field(default_factory=list, description="進捗履歴（新しい順）")


class DashboardStats(BaseModel):
    """ダッシュボード集計"""

    total_goals: int = 0
    on_track_goals: int = 0
    at_risk_goals: int = 0
    off_track_goals: int = 0
    total_actions: int = 0
    todo_actions: int = 0
    in_progress_actions: int = 0
    done_actions: int = 0


class DashboardStatsResponse(BaseModel):
    """ダッシュボード集計レスポンス"""

    status: str = Field("success", description="ステータス")
    stats: DashboardStats
