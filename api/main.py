"""
Goal Tracker API - FastAPI Entry Point

目標・進捗チェックイン・アクション管理と AI アドバイスの REST API

使用方法（ローカル開発）:
    uvicorn main:app --reload --port 8080 --app-dir api

使用方法（本番）:
    gunicorn main:app -k uvicorn.workers.UvicornWorker --chdir api
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from lib.config import get_settings
from lib.db import close_db_pool, get_db_pool
from lib.logging import get_logger, log_api_request
from app.api.v1 import router as v1_router
from app.limiter import limiter
from app.models import Base

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """アプリケーションのライフサイクル管理"""
    settings = get_settings()

    if settings.is_production() and not settings.JWT_SECRET:
        logger.critical("JWT_SECRET is not set in production, refusing to start")
        raise RuntimeError("JWT_SECRET must be set in production")

    if settings.DB_AUTO_CREATE:
        logger.info("Creating database tables (DB_AUTO_CREATE=true)")
        Base.metadata.create_all(get_db_pool())

    logger.info(
        "Goal Tracker API starting up...",
        environment=settings.ENVIRONMENT,
        version=settings.APP_VERSION,
    )
    yield
    close_db_pool()
    logger.info("Goal Tracker API shutting down...")


def _validation_message(exc: RequestValidationError) -> str:
    """最初のエラーを「field: message」形式にする"""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    message = first.get("msg", "Invalid value")
    if location:
        return f"{'.'.join(location)}: {message}"
    return message


def create_app() -> FastAPI:
    """FastAPI アプリケーションを構築する"""
    settings = get_settings()

    app = FastAPI(
        title="Goal Tracker API",
        description="目標トラッキングと AI アドバイス API",
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # レート制限（slowapi）
    # SlowAPIMiddleware が全ルートに RATE_LIMIT_DEFAULT を適用
    # 認証系エンドポイントは auth.py で @limiter.limit(AUTH_RATE_LIMIT) を追加
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # CORS設定
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """リクエストログ"""
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        log_api_request(
            logger,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """リクエストの入力エラーは 400 で返す"""
        logger.info(
            "Request validation failed",
            path=request.url.path,
            error_count=len(exc.errors()),
        )
        return JSONResponse(
            status_code=400,
            content={
                "status": "failed",
                "error_code": "VALIDATION_ERROR",
                "error_message": _validation_message(exc),
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """グローバル例外ハンドラー"""
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={
                "status": "failed",
                "error_code": "INTERNAL_ERROR",
                "error_message": "Internal server error",
            },
        )

    # API v1 ルーターを登録
    app.include_router(v1_router, prefix="/api")

    @app.get("/")
    @limiter.exempt
    async def root():
        """ルートエンドポイント"""
        return {
            "name": "Goal Tracker API",
            "version": settings.APP_VERSION,
            "status": "running",
        }

    return app


app = create_app()
