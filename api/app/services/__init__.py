"""
Services for Goal Tracker API
"""

from app.services.user_service import (
    UserContext,
    UserService,
    InvalidCredentialsError,
    hash_password,
    verify_password,
)
from app.services.goal_service import GoalService, refresh_goal_status
from app.services.action_service import ActionService
from app.services.progress_recorder import ProgressUpdateRecorder, locked_goal_query

__all__ = [
    "UserContext",
    "UserService",
    "InvalidCredentialsError",
    "hash_password",
    "verify_password",
    "GoalService",
    "refresh_goal_status",
    "ActionService",
    "ProgressUpdateRecorder",
    "locked_goal_query",
]
