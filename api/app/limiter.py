"""
Rate Limiter Singleton

slowapi Limiter を一箇所で定義し、main.py と各ルートファイルが import して使う。
循環インポート防止のため、このモジュールはアプリ依存なし。

- default_limits: 全エンドポイントに RATE_LIMIT_DEFAULT（既定 100回/分、SlowAPIMiddleware 経由）
- 認証エンドポイントは auth.py で @limiter.limit(AUTH_RATE_LIMIT) を追加
- ヘルスチェックは @limiter.exempt で除外
- RATE_LIMIT_ENABLED=false で無効化（テスト用）

リバースプロキシ配下では実クライアント IP が X-Forwarded-For の末尾に追記されるため、
slowapi 標準の get_remote_address（= プロキシの IP）ではなく末尾のエントリを使う。
"""
from fastapi import Request
from slowapi import Limiter

from lib.config import get_settings

AUTH_RATE_LIMIT = "10/minute"


def get_client_ip(request: Request) -> str:
    """
    X-Forwarded-For 対応の IP 抽出。
    末尾のエントリを使用し、ヘッダーがなければ request.client.host にフォールバック。
    """
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[-1].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


_settings = get_settings()

limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[_settings.RATE_LIMIT_DEFAULT],
    enabled=_settings.RATE_LIMIT_ENABLED,
)
