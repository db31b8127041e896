"""
Pydantic Schemas for Goal Tracker API
"""

from app.schemas.common import (
    ErrorResponse,
    PaginationMeta,
    IdResponse,
    MessageResponse,
)
from app.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    UserProfile,
    UserResponse,
    TokenResponse,
)
from app.schemas.action import (
    ActionCreateRequest,
    ActionUpdateRequest,
    ActionItem,
    ActionListResponse,
    ActionDetailResponse,
)
from app.schemas.goal import (
    GoalCreateRequest,
    GoalUpdateRequest,
    ProgressCheckinRequest,
    GoalUpdateItem,
    GoalItem,
    GoalListResponse,
    GoalDetailResponse,
    GoalHistoryResponse,
    DashboardStats,
    DashboardStatsResponse,
)
from app.schemas.ai import (
    AdvisoryRequest,
    SuggestActionsResponse,
    CheckinSummaryResponse,
)

__all__ = [
    "ErrorResponse",
    "PaginationMeta",
    "IdResponse",
    "MessageResponse",
    "RegisterRequest",
    "LoginRequest",
    "UserProfile",
    "UserResponse",
    "TokenResponse",
    "ActionCreateRequest",
    "ActionUpdateRequest",
    "ActionItem",
    "ActionListResponse",
    "ActionDetailResponse",
    "GoalCreateRequest",
    "GoalUpdateRequest",
    "ProgressCheckinRequest",
    "GoalUpdateItem",
    "GoalItem",
    "GoalListResponse",
    "GoalDetailResponse",
    "GoalHistoryResponse",
    "DashboardStats",
    "DashboardStatsResponse",
    "AdvisoryRequest",
    "SuggestActionsResponse",
    "CheckinSummaryResponse",
]
