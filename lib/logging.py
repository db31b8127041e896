"""
構造化ログモジュール

本番（ENVIRONMENT=production または LOG_FORMAT=json）では1行1レコードのJSON、
それ以外では読みやすいテキストを標準出力に書く。

使用例:
    from lib.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Progress recorded", goal_id=goal_id, new_value="50")
    logger.exception("Create goal error", user_id=user_id)

JSON出力例:
    {"severity": "INFO", "message": "Progress recorded", "logger": "app.services...",
     "timestamp": "2026-06-15T09:00:00.123456+00:00", "goal_id": "...", "new_value": "50"}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional, cast

from lib.config import Settings, get_settings

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class StructuredFormatter(logging.Formatter):
    """JSON Lines 形式のフォーマッター"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        }
        entry.update(getattr(record, "extra_fields", None) or {})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.levelno >= logging.ERROR:
            entry["location"] = f"{record.module}.{record.funcName}:{record.lineno}"

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """ローカル開発用（追加フィールドを key=value で末尾に付ける）"""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "extra_fields", None)
        if not fields:
            return line
        return line + " | " + " ".join(f"{key}={value}" for key, value in fields.items())


class StructuredLogger(logging.Logger):
    """
    キーワード引数をそのままログフィールドにするロガー

    標準の extra= も受け付け、キーワード引数とまとめて extra_fields に入れる。
    """

    def _log(  # type: ignore[override]
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: Optional[Dict[str, Any]] = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **fields: Any
    ) -> None:
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra={"extra_fields": {**(extra or {}), **fields}},
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def _build_handler(settings: Settings, level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if settings.use_json_logs() else TextFormatter())
    return handler


@lru_cache(maxsize=64)
def get_logger(name: str) -> StructuredLogger:
    """
    モジュール用のロガーを取得（名前ごとに1つ）

    Args:
        name: 通常は __name__
    """
    settings = get_settings()
    logger = logging.getLogger(name)

    # setLoggerClass より前に作られたロガーも差し替える
    if not isinstance(logger, StructuredLogger):
        logger.__class__ = StructuredLogger

    if not logger.handlers:
        level = logging.DEBUG if settings.DEBUG else logging.INFO
        logger.setLevel(level)
        logger.addHandler(_build_handler(settings, level))
        logger.propagate = False

    return cast(StructuredLogger, logger)


# =============================================================================
# 定型ログ
# =============================================================================

def log_api_request(
    logger: StructuredLogger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **extra
):
    """1リクエスト1行のアクセスログ"""
    level = logging.WARNING if status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"{method} {path} {status_code} ({duration_ms}ms)",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        **extra
    )


def log_external_api_call(
    logger: StructuredLogger,
    service: str,
    method: str,
    endpoint: str,
    status_code: Optional[int],
    duration_ms: float,
    **extra
):
    """
    外部API呼び出しの結果

    status_code は応答が得られなかった場合（タイムアウト等）None。
    """
    outcome = status_code if status_code is not None else "no response"
    logger.info(
        f"External call {service}: {method} {endpoint} -> {outcome}",
        service=service,
        method=method,
        endpoint=endpoint,
        status_code=status_code,
        duration_ms=duration_ms,
        **extra
    )


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    resource_type: str,
    resource_id: str,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    """
    データを変更した操作の監査ログ

    使用例:
        log_audit_event(
            logger,
            action="record_progress",
            resource_type="goal",
            resource_id=goal_id,
            user_id=user_id,
            details={"new_value": "50"},
        )
    """
    logger.info(
        f"Audit: {action} {resource_type}/{resource_id}",
        audit=True,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=user_id,
        details=details or {},
    )
