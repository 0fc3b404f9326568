import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from app.config import settings
from app.models.base import Base

DATABASE_URL = settings.DATABASE_URL


def _build_engine(url: str):
    """接続先に合わせてエンジンを生成"""
    if url.startswith("sqlite"):
        # テスト・ローカル用（インメモリの場合は接続を共有）
        kwargs = {}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=settings.DB_ECHO,
            **kwargs,
        )

    connect_args = {}

    # Azure MySQL っぽいホストなら SSL を有効化
    if "mysql.database.azure.com" in url:
        ssl_ca_path = settings.SSL_CA_PATH
        if not ssl_ca_path:
            # デフォルトのCA証明書パス（DigiCert Global Root CA）
            default_cert_path = os.path.join(
                os.path.dirname(os.path.dirname(__file__)), "DigiCertGlobalRootCA.crt.pem"
            )
            if os.path.exists(default_cert_path):
                ssl_ca_path = default_cert_path

        if not ssl_ca_path or not os.path.exists(ssl_ca_path):
            # Azure MySQLはSSL必須のため、システムのCA証明書を使用
            import certifi

            ssl_ca_path = certifi.where()

        connect_args = {"ssl": {"ca": ssl_ca_path}}

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_pre_ping=True,
        echo=settings.DB_ECHO,
        connect_args=connect_args,
    )


engine = _build_engine(DATABASE_URL)

# セッションファクトリー
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# 依存性注入用のジェネレータ
def get_db():
    """
    FastAPIの依存性注入で使用するDBセッション

    使用例:
        from sqlalchemy.orm import Session
        from app.database import get_db

        @router.get("/notifications")
        def list_notifications(db: Session = Depends(get_db)):
            ...
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = ["Base", "engine", "SessionLocal", "get_db"]
