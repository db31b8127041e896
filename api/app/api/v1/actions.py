"""
Actions API

目標に紐づくアクションのCRUD（/goals/{goal_id}/actions）
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from lib.exceptions import GoalTrackerError
from lib.goal import ActionStatus
from lib.logging import get_logger, log_audit_event
from app.deps.auth import get_current_user
from app.deps.db import get_action_service
from app.schemas.action import (
    ActionCreateRequest,
    ActionDetailResponse,
    ActionItem,
    ActionListResponse,
    ActionUpdateRequest,
)
from app.schemas.common import ErrorResponse, IdResponse, MessageResponse, PaginationMeta
from app.services.action_service import ActionService
from app.services.user_service import UserContext
from .deps import internal_error, parse_action_id, parse_goal_id, to_http_exception

router = APIRouter(prefix="/goals/{goal_id}/actions", tags=["actions"])
logger = get_logger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "入力エラー"},
    401: {"model": ErrorResponse, "description": "認証エラー"},
    404: {"model": ErrorResponse, "description": "目標・アクションが見つからない"},
}


@router.get("", response_model=ActionListResponse, responses=ERROR_RESPONSES, summary="アクション一覧")
async def list_actions(
    goal_id: str,
    action_status: Optional[ActionStatus] = Query(None, alias="status", description="ステータスで絞り込み"),
    search: Optional[str] = Query(None, max_length=255, description="タイトルの部分一致"),
    due_soon: bool = Query(False, description="true で3日以内に期限を迎えるもの（超過含む）"),
    page: int = Query(1, ge=1, description="ページ番号"),
    per_page: int = Query(10, ge=1, le=100, description="1ページあたりの件数"),
    fetch_all: bool = Query(False, alias="all", description="true で全件（ページネーションなし）"),
    user: UserContext = Depends(get_current_user),
    service: ActionService = Depends(get_action_service),
):
    """アクション一覧を期限の早い順に返す"""
    goal_id = parse_goal_id(goal_id)
    try:
        actions, total = await asyncio.to_thread(
            service.list_actions,
            goal_id,
            user.user_id,
            action_status,
            search,
            due_soon,
            page,
            per_page,
            fetch_all,
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("List actions error", goal_id=goal_id)
        raise internal_error()

    return ActionListResponse(
        actions=[ActionItem.model_validate(a) for a in actions],
        pagination=None if fetch_all else PaginationMeta.build(page, per_page, total),
    )


@router.post(
    "",
    response_model=IdResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="アクション作成",
)
async def create_action(
    goal_id: str,
    body: ActionCreateRequest,
    user: UserContext = Depends(get_current_user),
    service: ActionService = Depends(get_action_service),
):
    """アクションを作成（ステータスは todo）"""
    goal_id = parse_goal_id(goal_id)
    try:
        action_id = await asyncio.to_thread(
            service.create_action,
            goal_id,
            user.user_id,
            body.title,
            body.description,
            body.effort,
            body.due_date,
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Create action error", goal_id=goal_id)
        raise internal_error()

    log_audit_event(
        logger=logger,
        action="create_action",
        resource_type="action",
        resource_id=action_id,
        user_id=user.user_id,
        details={"goal_id": goal_id},
    )

    return IdResponse(id=action_id)


@router.get("/{action_id}", response_model=ActionDetailResponse, responses=ERROR_RESPONSES, summary="アクション詳細")
async def get_action(
    goal_id: str,
    action_id: str,
    user: UserContext = Depends(get_current_user),
    service: ActionService = Depends(get_action_service),
):
    goal_id = parse_goal_id(goal_id)
    action_id = parse_action_id(action_id)
    try:
        action = await asyncio.to_thread(service.get_action, action_id, goal_id, user.user_id)
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Get action error", action_id=action_id)
        raise internal_error()

    return ActionDetailResponse(action=ActionItem.model_validate(action))


@router.patch("/{action_id}", response_model=IdResponse, responses=ERROR_RESPONSES, summary="アクション更新")
async def update_action(
    goal_id: str,
    action_id: str,
    body: ActionUpdateRequest,
    user: UserContext = Depends(get_current_user),
    service: ActionService = Depends(get_action_service),
):
    """タイトル・説明・期限・ステータス・作業量を部分更新"""
    goal_id = parse_goal_id(goal_id)
    action_id = parse_action_id(action_id)
    changes = body.model_dump(exclude_unset=True)
    try:
        await asyncio.to_thread(
            service.update_action, action_id, goal_id, user.user_id, changes
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Update action error", action_id=action_id)
        raise internal_error()

    log_audit_event(
        logger=logger,
        action="update_action",
        resource_type="action",
        resource_id=action_id,
        user_id=user.user_id,
        details={"fields": sorted(changes.keys())},
    )

    return IdResponse(id=action_id)


@router.delete("/{action_id}", response_model=MessageResponse, responses=ERROR_RESPONSES, summary="アクション削除")
async def delete_action(
    goal_id: str,
    action_id: str,
    user: UserContext = Depends(get_current_user),
    service: ActionService = Depends(get_action_service),
):
    goal_id = parse_goal_id(goal_id)
    action_id = parse_action_id(action_id)
    try:
        await asyncio.to_thread(service.delete_action, action_id, goal_id, user.user_id)
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Delete action error", action_id=action_id)
        raise internal_error()

    log_audit_event(
        logger=logger,
        action="delete_action",
        resource_type="action",
        resource_id=action_id,
        user_id=user.user_id,
    )

    return MessageResponse(message="Action deleted successfully")
