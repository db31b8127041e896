"""
AI Schemas

AIアドバイスAPI用のPydanticスキーマ
"""

from typing import List

from pydantic import BaseModel, Field

from lib.ai_advisor import ActionSuggestion, CheckinSummary


class AdvisoryRequest(BaseModel):
    """AIアドバイスリクエスト"""

    goal_id: str = Field(..., min_length=1, description="目標ID")


class SuggestActionsResponse(BaseModel):
    """アクション提案レスポンス"""

    status: str = Field("success", description="ステータス")
    goal_id: str = Field(..., description="目標ID")
    suggestions: List[ActionSuggestion] = Field(..., description="提案（3〜5件）")


class CheckinSummaryResponse(BaseModel):
    """チェックイン要約レスポンス"""

    status: str = Field("success", description="ステータス")
    goal_id: str = Field(..., description="目標ID")
    summary: CheckinSummary
