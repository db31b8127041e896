"""
Common Schemas

エラーレスポンス・ページネーション等の共通スキーマ
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """エラーレスポンス"""

    status: str = Field("failed", description="ステータス")
    error_code: str = Field(..., description="エラーコード")
    error_message: str = Field(..., description="エラーメッセージ")


class PaginationMeta(BaseModel):
    """ページネーション情報"""

    page: int = Field(..., ge=1, description="現在のページ")
    per_page: int = Field(..., ge=1, description="1ページあたりの件数")
    total: int = Field(..., ge=0, description="総件数")
    total_pages: int = Field(..., ge=0, description="総ページ数")
    has_next: bool = Field(..., description="次ページの有無")
    has_prev: bool = Field(..., description="前ページの有無")

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "PaginationMeta":
        total_pages = (total + per_page - 1) // per_page
        return cls(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class IdResponse(BaseModel):
    """作成・更新系の共通レスポンス"""

    status: str = Field("success", description="ステータス")
    id: str = Field(..., description="対象ID")


class MessageResponse(BaseModel):
    """削除系の共通レスポンス"""

    status: str = Field("success", description="ステータス")
    message: str = Field(..., description="メッセージ")
