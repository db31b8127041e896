"""
Auth Schemas

登録・ログイン用のPydanticスキーマ
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# =============================================================================
# リクエストスキーマ
# =============================================================================


class RegisterRequest(BaseModel):
    """ユーザー登録リクエスト"""

    name: str = Field(..., min_length=1, max_length=255, description="表示名")
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN, description="メールアドレス")
    password: str = Field(..., min_length=8, max_length=72, description="パスワード（8文字以上）")


class LoginRequest(BaseModel):
    """ログインリクエスト"""

    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN, description="メールアドレス")
    password: str = Field(..., min_length=1, description="パスワード")


# =============================================================================
# レスポンススキーマ
# =============================================================================


class UserProfile(BaseModel):
    """ユーザー情報（パスワードハッシュは含めない）"""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="ユーザーID")
    name: str = Field(..., description="表示名")
    email: str = Field(..., description="メールアドレス")
    created_at: Optional[datetime] = Field(None, description="作成日時")


class UserResponse(BaseModel):
    """ユーザー情報レスポンス"""

    status: str = Field("success", description="ステータス")
    user: UserProfile


class TokenResponse(BaseModel):
    """ログイン・登録レスポンス"""

    status: str = Field("success", description="ステータス")
    user: UserProfile
    token: str = Field(..., description="JWTアクセストークン")
    token_type: str = Field("bearer", description="トークン種別")
