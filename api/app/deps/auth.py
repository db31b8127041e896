"""api/app/deps/auth.py - JWT認証依存モジュール

Bearer tokenからユーザーコンテキストを取得する。
目標・アクション・AIの全エンドポイントは認証必須。
"""

import asyncio
import datetime
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from lib.config import get_settings
from lib.logging import get_logger
from app.deps.db import get_user_service
from app.services.user_service import UserContext, UserService

logger = get_logger(__name__)

# 開発用の固定秘密鍵（本番では起動時に JWT_SECRET 未設定を検出して停止する）
DEV_JWT_SECRET = "dev-only-insecure-secret"

_bearer_scheme = HTTPBearer(auto_error=False)


def _get_jwt_secret() -> str:
    """JWT秘密鍵を取得。未設定の場合は開発用の値を使う。"""
    return get_settings().JWT_SECRET or DEV_JWT_SECRET


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "status": "failed",
            "error_code": "UNAUTHORIZED",
            "error_message": message,
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_jwt(token: str) -> dict:
    """JWTトークンをデコード・検証する。

    Args:
        token: Bearer token文字列

    Returns:
        dict: JWT claims (sub, email, iat, exp)

    Raises:
        HTTPException: トークンが無効・期限切れの場合
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, _get_jwt_secret(), algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid or expired token")

    # 必須claimsの検証
    if not payload.get("sub"):
        raise _unauthorized("Token missing required claim: sub")

    return payload


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    user_service: UserService = Depends(get_user_service),
) -> UserContext:
    """JWT Bearer tokenからユーザーコンテキストを取得する。

    トークンの sub が既存ユーザーを指していることまで確認する。

    Returns:
        UserContext: 認証済みユーザーコンテキスト

    Raises:
        HTTPException(401): トークンなし/無効/期限切れ/ユーザー不在
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    payload = decode_jwt(credentials.credentials)

    user = await asyncio.to_thread(user_service.get_user, payload["sub"])
    if user is None:
        logger.warning("Token subject does not match any user", user_id=payload["sub"])
        raise _unauthorized("User not found")

    return UserContext(
        user_id=user.id,
        email=user.email,
        name=user.name,
    )


def create_access_token(
    user_id: str,
    email: str,
    expires_minutes: Optional[int] = None,
) -> str:
    """JWTアクセストークンを生成する。

    Args:
        user_id: ユーザーID（sub）
        email: メールアドレス
        expires_minutes: 有効期限（分）。省略時は JWT_EXPIRES_MINUTES

    Returns:
        str: JWT token
    """
    settings = get_settings()
    if expires_minutes is None:
        expires_minutes = settings.JWT_EXPIRES_MINUTES

    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + datetime.timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=settings.JWT_ALGORITHM)
