"""
API v1 - Shared Dependencies

全ルートファイルで共有するエラー変換・ID検証を集約。
"""

import uuid

from fastapi import HTTPException, status

from lib.exceptions import GoalTrackerError


def to_http_exception(error: GoalTrackerError) -> HTTPException:
    """ドメイン例外を HTTPException に変換する。"""
    return HTTPException(
        status_code=error.status_code,
        detail=error.to_dict(),
    )


def internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "status": "failed",
            "error_code": "INTERNAL_ERROR",
            "error_message": "Internal server error",
        },
    )


def parse_id(value: str, message: str) -> str:
    """
    パスパラメータのIDを検証し、正規化したUUID文字列を返す。

    Raises:
        HTTPException(400): UUIDとして解釈できない場合
    """
    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "status": "failed",
                "error_code": "INVALID_ID",
                "error_message": message,
            },
        )


def parse_goal_id(goal_id: str) -> str:
    return parse_id(goal_id, "Invalid goal ID")


def parse_action_id(action_id: str) -> str:
    return parse_id(action_id, "Invalid action ID")
