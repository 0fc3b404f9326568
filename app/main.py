"""
FastAPI メインアプリケーション
Trial Notification Engine - 臨床試験タスク・シグナル通知
"""

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from sqlalchemy import text
from contextlib import asynccontextmanager
import logging
from datetime import datetime
from dotenv import load_dotenv

load_dotenv()

from app.config import settings
from app.database import get_db, engine
from app.routers.notification import router as notification_router
from app.routers.notification_settings import router as notification_settings_router
from app.routers.events import router as events_router
from app.services.cache_service import protocol_cache

# ログ設定
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ============================================
# ライフサイクル管理
# ============================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """アプリケーションの起動・終了処理"""
    logger.info(f"🚀 {settings.PROJECT_NAME} starting...")
    logger.info(f"Database engine: {engine.url.render_as_string(hide_password=True)}")

    # DB接続テスト
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            logger.info("✅ Database connection test successful")
    except Exception as e:
        logger.error(f"❌ Database connection test failed: {e}")

    if not settings.RESEND_API_KEY or not settings.EMAIL_NOTIFICATIONS_ENABLED:
        logger.warning("⚠️ メール通知は無効です")

    yield

    logger.info(f"👋 {settings.PROJECT_NAME} shutting down...")
    protocol_cache.clear()
    engine.dispose()


# ============================================
# FastAPI アプリケーション
# ============================================
app = FastAPI(
    title="Trial Notification Engine API",
    description="臨床試験のタスク・シグナル通知と既読管理",
    version=settings.VERSION,
    lifespan=lifespan,
)

# CORS設定
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600,
)

# ルータ登録
app.include_router(notification_router)
app.include_router(notification_settings_router)
app.include_router(events_router)


# ============================================
# 基本エンドポイント
# ============================================
@app.get("/")
async def root():
    """ルートエンドポイント"""
    return {
        "message": "Trial Notification Engine API",
        "version": settings.VERSION,
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "health": "/api/health",
            "db_health": "/api/db/health",
            "notifications": "/api/notifications",
            "notification_settings": "/api/notification-settings",
        },
    }


@app.get("/api/health")
async def health_check():
    """ヘルスチェックエンドポイント"""
    return {
        "status": "ok",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.now().isoformat(),
    }


@app.get("/api/db/health")
def db_health_check(db: Session = Depends(get_db)):
    """データベース接続確認エンドポイント"""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "connected", "dialect": engine.dialect.name}
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return {"status": "error", "message": str(e)}


@app.get("/api/cache/stats")
async def cache_stats():
    """プロトコルIDキャッシュの統計"""
    return protocol_cache.get_stats()
