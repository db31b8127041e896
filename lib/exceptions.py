"""
目標管理の例外クラス

ルート層はこれらを HTTP ステータスに変換する:
    - NotFoundError      -> 404
    - ValidationError    -> 400
    - PersistenceError   -> 500
    - AdvisoryUnavailableError は AI クライアント内部で吸収され、呼び出し元には届かない
"""

from typing import Optional


# ================================================================
# 基底例外
# ================================================================

class GoalTrackerError(Exception):
    """目標管理の基底例外クラス"""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "GOAL_TRACKER_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict:
        """例外を辞書形式で返す"""
        return {
            "status": "failed",
            "error_code": self.error_code,
            "error_message": self.message,
        }


# ================================================================
# 具体的な例外クラス
# ================================================================

class NotFoundError(GoalTrackerError):
    """対象が存在しない、または呼び出し元の所有ではない"""

    status_code = 404

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id
            }
        )


class ValidationError(GoalTrackerError):
    """入力値が不正"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={"field": field} if field else {}
        )
        self.field = field


class PersistenceError(GoalTrackerError):
    """ストアへの書き込みが失敗した（操作全体がロールバック済み）"""

    status_code = 500

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="PERSISTENCE_ERROR",
            details={"operation": operation} if operation else {}
        )


class AdvisoryUnavailableError(GoalTrackerError):
    """補完APIへの到達・応答解析に失敗した"""

    status_code = 503

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="ADVISORY_UNAVAILABLE",
            details={"model": model} if model else {}
        )
