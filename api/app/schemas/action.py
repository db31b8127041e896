"""
Action Schemas

アクション管理用のPydanticスキーマ
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from lib.goal import ActionStatus, EffortLevel
from app.schemas.common import PaginationMeta


# =============================================================================
# リクエストスキーマ
# =============================================================================


class ActionCreateRequest(BaseModel):
    """アクション作成リクエスト"""

    title: str = Field(..., min_length=1, max_length=255, description="タイトル")
    description: Optional[str] = Field(None, max_length=1000, description="説明")
    effort: Optional[EffortLevel] = Field(None, description="作業量（S/M/L）")
    due_date: Optional[date] = Field(None, description="期限日（YYYY-MM-DD）")


class ActionUpdateRequest(BaseModel):
    """アクション部分更新リクエスト"""

    title: Optional[str] = Field(None, min_length=1, max_length=255, description="タイトル")
    description: Optional[str] = Field(None, max_length=1000, description="説明")
    status: Optional[ActionStatus] = Field(None, description="ステータス（todo/in_progress/done）")
    effort: Optional[EffortLevel] = Field(None, description="作業量（S/M/L）")
    due_date: Optional[date] = Field(None, description="期限日（YYYY-MM-DD）")


# =============================================================================
# レスポンススキーマ
# =============================================================================


class ActionItem(BaseModel):
    """アクション1件"""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="アクションID")
    goal_id: str = Field(..., description="目標ID")
    title: str = Field(..., description="タイトル")
    description: Optional[str] = Field(None, description="説明")
    status: ActionStatus = Field(..., description="ステータス")
    effort: Optional[EffortLevel] = Field(None, description="作業量")
    due_date: Optional[date] = Field(None, description="期限日")
    created_at: datetime = Field(..., description="作成日時")
    updated_at: Optional[datetime] = Field(None, description="更新日時")


class ActionListResponse(BaseModel):
    """アクション一覧レスポンス"""

    status: str = Field("success", description="ステータス")
    actions: List[ActionItem] = Field(default_factory=list, description="アクション一覧")
    pagination: Optional[PaginationMeta] = Field(None, description="ページネーション（all=true の場合は null）")


class ActionDetailResponse(BaseModel):
    """アクション詳細レスポンス"""

    status: str = Field("success", description="ステータス")
    action: ActionItem
