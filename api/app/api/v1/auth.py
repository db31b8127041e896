"""
Authentication Endpoints

ユーザー登録・ログイン・ユーザー情報取得。
登録とログインは 10回/分 に制限する。
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, status

from lib.exceptions import GoalTrackerError
from lib.logging import get_logger, log_audit_event
from app.deps.auth import create_access_token, get_current_user
from app.deps.db import get_user_service
from app.limiter import AUTH_RATE_LIMIT, limiter
from app.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserProfile,
    UserResponse,
)
from app.schemas.common import ErrorResponse
from app.services.user_service import UserContext, UserService
from .deps import internal_error, to_http_exception

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "登録済みのメールアドレス・入力エラー"},
    },
    summary="ユーザー登録",
)
@limiter.limit(AUTH_RATE_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    user_service: UserService = Depends(get_user_service),
):
    """ユーザーを登録してJWTを発行"""
    try:
        user = await asyncio.to_thread(
            user_service.register, body.name, body.email, body.password
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Register error")
        raise internal_error()

    log_audit_event(
        logger=logger,
        action="register",
        resource_type="user",
        resource_id=user.id,
        user_id=user.id,
    )

    return TokenResponse(
        user=UserProfile.model_validate(user),
        token=create_access_token(user.id, user.email),
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"model": ErrorResponse, "description": "認証失敗"},
    },
    summary="ログイン",
)
@limiter.limit(AUTH_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    user_service: UserService = Depends(get_user_service),
):
    """メールアドレスとパスワードを検証してJWTを発行"""
    try:
        user = await asyncio.to_thread(
            user_service.authenticate, body.email, body.password
        )
    except GoalTrackerError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Login error")
        raise internal_error()

    log_audit_event(
        logger=logger,
        action="login",
        resource_type="user",
        resource_id=user.id,
        user_id=user.id,
    )

    return TokenResponse(
        user=UserProfile.model_validate(user),
        token=create_access_token(user.id, user.email),
    )


@router.get(
    "/me",
    response_model=UserResponse,
    responses={
        401: {"model": ErrorResponse, "description": "認証エラー"},
    },
    summary="ログイン中のユーザー情報",
)
async def me(
    user: UserContext = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """パスワードハッシュを除いたユーザー情報を返す"""
    try:
        record = await asyncio.to_thread(user_service.get_user, user.user_id)
    except Exception:
        logger.exception("Get current user error", user_id=user.user_id)
        raise internal_error()

    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "status": "failed",
                "error_code": "NOT_FOUND",
                "error_message": "User not found",
            },
        )

    return UserResponse(user=UserProfile.model_validate(record))
