"""
Goal Tracker 共通ライブラリ

このモジュールは以下を提供します:
- config: 環境変数・設定管理
- db: データベース接続（エンジン・セッションファクトリ）
- logging: 構造化ログ
- exceptions: ドメイン例外
- goal: 目標ステータス判定
- ai_advisor: 補完API経由のAIアドバイス

使用例:
    from lib import get_settings, get_logger, compute_goal_status
"""

__version__ = "1.0.0"

# 設定
from lib.config import (
    Settings,
    get_settings,
)

# データベース
from lib.db import (
    get_db_pool,
    get_session_factory,
    get_db_session,
    close_db_pool,
)

# ログ
from lib.logging import (
    get_logger,
    log_api_request,
    log_external_api_call,
    log_audit_event,
)

# 例外
from lib.exceptions import (
    GoalTrackerError,
    NotFoundError,
    ValidationError,
    PersistenceError,
    AdvisoryUnavailableError,
)

# 目標ステータス判定
from lib.goal import (
    GoalStatus,
    ActionStatus,
    EffortLevel,
    compute_goal_status,
    progress_percentage,
)

# AIアドバイス
from lib.ai_advisor import (
    AdvisorConfig,
    AIAdvisoryClient,
    ActionSuggestion,
    CheckinSummary,
    GoalSnapshot,
    UpdateSnapshot,
    ActionSnapshot,
)

__all__ = [
    "__version__",
    # config
    "Settings",
    "get_settings",
    # db
    "get_db_pool",
    "get_session_factory",
    "get_db_session",
    "close_db_pool",
    # logging
    "get_logger",
    "log_api_request",
    "log_external_api_call",
    "log_audit_event",
    # exceptions
    "GoalTrackerError",
    "NotFoundError",
    "ValidationError",
    "PersistenceError",
    "AdvisoryUnavailableError",
    # goal
    "GoalStatus",
    "ActionStatus",
    "EffortLevel",
    "compute_goal_status",
    "progress_percentage",
    # ai_advisor
    "AdvisorConfig",
    "AIAdvisoryClient",
    "ActionSuggestion",
    "CheckinSummary",
    "GoalSnapshot",
    "UpdateSnapshot",
    "ActionSnapshot",
]
