"""
Goals API

目標のCRUD・進捗チェックイン・進捗履歴・ダッシュボード集計
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from lib.exceptions import GoalTrackerError
from lib.logging import get_logger, log_audit_event
from app.deps.auth import get_current_user
from app.deps.db import get_goal_service, get_progress_recorder
from app.schemas.common import ErrorResponse, IdResponse, MessageResponse, PaginationMeta
from app.schemas.goal import (
    DashboardStats,
    DashboardStatsResponse,
    GoalCreateRequest,
    GoalDetailResponse,
    GoalHistoryResponse,
    GoalItem,
    GoalListResponse,
    GoalUpdateItem,
    GoalUpdateRequest,
    ProgressCheckinRequest,
)
from app.services.goal_service import GoalService
from app.services.progress_recorder import ProgressUpdateRecorder
from app.services.user_service import UserContext
from .deps import internal_error, parse_goal_id, to_http_exception

router = APIRouter(prefix="/goals", tags=["goals"])
logger = get_logger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "入力エラー"},
    401: {"model": ErrorResponse, "description": "認証エラー"},
    404: {"model": ErrorResponse, "description": "目標が見つからない"},
}


@router.get("", response_model=GoalListResponse, summary="目標一覧")
async def list_goals(
    page: int = Query(1, ge=1, description="ページ番号"),
    per_page: int = Query(10, ge=1, le=100, description="1ページあたりの件数"),
    fetch_all: bool = Query(False, alias="all", description="true で全件（ページネーションなし）"),
    user: UserContext = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    """
    目標一覧を新しい順に返す

    各目標にはアクションと進捗履歴を含み、ステータスは再計算済み。
    """
    try:
        goals, total = await asyncio.to_thread(
            service.list_goals, user.user_id, page, per_page, fetch_all
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("List goals error", user_id=user.user_id)
        raise internal_error()

    return GoalListResponse(
        goals=[GoalItem.model_validate(g) for g in goals],
        pagination=None if fetch_all else PaginationMeta.build(page, per_page, total),
    )


@router.get("/stats/dashboard", response_model=DashboardStatsResponse, summary="ダッシュボード集計")
async def dashboard_stats(
    user: UserContext = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    """目標のステータス別件数とアクションのステータス別件数"""
    try:
        stats = await asyncio.to_thread(service.dashboard_stats, user.user_id)
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Dashboard stats error", user_id=user.user_id)
        raise internal_error()

    return DashboardStatsResponse(stats=DashboardStats(**stats))


@router.get("/{goal_id}", response_model=GoalDetailResponse, responses=ERROR_RESPONSES, summary="目標詳細")
async def get_goal(
    goal_id: str,
    user: UserContext = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    goal_id = parse_goal_id(goal_id)
    try:
        goal = await asyncio.to_thread(service.get_goal, goal_id, user.user_id)
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Get goal error", goal_id=goal_id)
        raise internal_error()

    return GoalDetailResponse(goal=GoalItem.model_validate(goal))


@router.post(
    "",
    response_model=IdResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="目標作成",
)
async def create_goal(
    body: GoalCreateRequest,
    user: UserContext = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    """目標を作成（現在値 0 から開始）"""
    try:
        goal_id = await asyncio.to_thread(
            service.create_goal,
            user.user_id,
            body.title,
            body.target_value,
            body.due_date,
            body.description,
            body.unit,
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Create goal error", user_id=user.user_id)
        raise internal_error()

    log_audit_event(
        logger=logger,
        action="create_goal",
        resource_type="goal",
        resource_id=goal_id,
        user_id=user.user_id,
        details={"target_value": str(body.target_value)},
    )

    return IdResponse(id=goal_id)


@router.put("/{goal_id}", response_model=IdResponse, responses=ERROR_RESPONSES, summary="目標更新")
async def update_goal(
    goal_id: str,
    body: GoalUpdateRequest,
    user: UserContext = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    """タイトル・説明・目標値・単位・期限を更新（現在値は変更しない）"""
    goal_id = parse_goal_id(goal_id)
    changes = body.model_dump(exclude_unset=True)
    try:
        await asyncio.to_thread(service.update_goal, goal_id, user.user_id, changes)
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Update goal error", goal_id=goal_id)
        raise internal_error()

    log_audit_event(
        logger=logger,
        action="update_goal",
        resource_type="goal",
        resource_id=goal_id,
        user_id=user.user_id,
        details={"fields": sorted(changes.keys())},
    )

    return IdResponse(id=goal_id)


@router.delete("/{goal_id}", response_model=MessageResponse, responses=ERROR_RESPONSES, summary="目標削除")
async def delete_goal(
    goal_id: str,
    user: UserContext = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    """目標を削除（アクション・進捗履歴も削除）"""
    goal_id = parse_goal_id(goal_id)
    try:
        await asyncio.to_thread(service.delete_goal, goal_id, user.user_id)
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Delete goal error", goal_id=goal_id)
        raise internal_error()

    log_audit_event(
        logger=logger,
        action="delete_goal",
        resource_type="goal",
        resource_id=goal_id,
        user_id=user.user_id,
    )

    return MessageResponse(message="Goal deleted successfully")


@router.post(
    "/{goal_id}/updates",
    response_model=IdResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="進捗チェックイン",
)
async def record_progress(
    goal_id: str,
    body: ProgressCheckinRequest,
    user: UserContext = Depends(get_current_user),
    recorder: ProgressUpdateRecorder = Depends(get_progress_recorder),
):
    """現在値を更新し、進捗履歴を1件追加する"""
    goal_id = parse_goal_id(goal_id)
    try:
        update_id = await asyncio.to_thread(
            recorder.record_update, goal_id, user.user_id, body.value, body.note
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Record progress error", goal_id=goal_id)
        raise internal_error()

    return IdResponse(id=update_id)


@router.get(
    "/{goal_id}/updates",
    response_model=GoalHistoryResponse,
    responses=ERROR_RESPONSES,
    summary="進捗履歴",
)
async def list_updates(
    goal_id: str,
    limit: Optional[int] = Query(None, ge=1, le=100, description="取得件数"),
    user: UserContext = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    """進捗履歴を新しい順に返す"""
    goal_id = parse_goal_id(goal_id)
    try:
        updates = await asyncio.to_thread(service.list_updates, goal_id, user.user_id, limit)
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("List goal updates error", goal_id=goal_id)
        raise internal_error()

    return GoalHistoryResponse(
        goal_id=goal_id,
        updates=[GoalUpdateItem.model_validate(u) for u in updates],
    )
