"""
SQLAlchemy Models for Goal Tracker API
"""

from app.models.base import Base
from app.models.user import User
from app.models.goal import Goal, GoalUpdate
from app.models.action import Action

__all__ = [
    "Base",
    "User",
    "Goal",
    "GoalUpdate",
    "Action",
]
