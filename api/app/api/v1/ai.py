"""
AI Advisory API

目標に対するアクション提案・チェックイン要約。
AIクライアントは失敗時に固定のフォールバックを返すため、
ここでエラーになるのは入力不正・目標不在のみ。
"""

import asyncio

from fastapi import APIRouter, Depends

from lib.ai_advisor import SUGGEST_MAX_UPDATES, AIAdvisoryClient
from lib.exceptions import GoalTrackerError
from lib.logging import get_logger
from app.deps.auth import get_current_user
from app.deps.db import get_ai_advisor, get_goal_service
from app.schemas.ai import AdvisoryRequest, CheckinSummaryResponse, SuggestActionsResponse
from app.schemas.common import ErrorResponse
from app.services.goal_service import GoalService
from app.services.user_service import UserContext
from .deps import internal_error, parse_goal_id, to_http_exception

router = APIRouter(prefix="/ai", tags=["ai"])
logger = get_logger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "入力エラー"},
    401: {"model": ErrorResponse, "description": "認証エラー"},
    404: {"model": ErrorResponse, "description": "目標が見つからない"},
}

# チェックイン要約に渡す履歴件数（最新1件 + 過去5件）
CHECKIN_UPDATE_LIMIT = 6


@router.post(
    "/suggest-actions",
    response_model=SuggestActionsResponse,
    responses=ERROR_RESPONSES,
    summary="次のアクションを提案",
)
async def suggest_actions(
    body: AdvisoryRequest,
    user: UserContext = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
    advisor: AIAdvisoryClient = Depends(get_ai_advisor),
):
    """直近の進捗と未完了アクションから3〜5件の提案を返す"""
    goal_id = parse_goal_id(body.goal_id)
    try:
        goal, updates, actions = await asyncio.to_thread(
            service.get_advisory_context,
            goal_id,
            user.user_id,
            SUGGEST_MAX_UPDATES,
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Load advisory context error", goal_id=goal_id)
        raise internal_error()

    suggestions = await advisor.suggest_actions(goal, updates, actions)

    logger.info(
        "Action suggestions returned",
        goal_id=goal_id,
        user_id=user.user_id,
        count=len(suggestions),
    )

    return SuggestActionsResponse(goal_id=goal_id, suggestions=suggestions)


@router.post(
    "/summarize-checkin",
    response_model=CheckinSummaryResponse,
    responses=ERROR_RESPONSES,
    summary="チェックインを要約",
)
async def summarize_checkin(
    body: AdvisoryRequest,
    user: UserContext = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
    advisor: AIAdvisoryClient = Depends(get_ai_advisor),
):
    """最新のチェックインを要約し、自信度とリスク判定を返す"""
    goal_id = parse_goal_id(body.goal_id)
    try:
        goal, updates, actions = await asyncio.to_thread(
            service.get_advisory_context,
            goal_id,
            user.user_id,
            CHECKIN_UPDATE_LIMIT,
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Load advisory context error", goal_id=goal_id)
        raise internal_error()

    summary = await advisor.summarize_checkin(goal, updates, actions)

    logger.info(
        "Check-in summary returned",
        goal_id=goal_id,
        user_id=user.user_id,
        risk_tag=summary.risk_tag.value,
    )

    return CheckinSummaryResponse(goal_id=goal_id, summary=summary)
