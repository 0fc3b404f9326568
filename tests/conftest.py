"""
テスト用の共通設定・フィクスチャ
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# テスト用の環境変数を設定（app.mainをインポートする前に設定）
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")

from app.main import app
from app.auth import create_access_token
from app.database import get_db, Base
from app.models.user import User
from app.models.trial import Trial
from app.services.cache_service import protocol_cache
from app.services.email_service import EmailService, get_email_service


# テスト用のインメモリSQLiteデータベース
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """テスト用のDBセッションを提供"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


class RecordingEmailService(EmailService):
    """送信せずに記録だけするメールサービス"""

    def __init__(self, delivered: bool = True):
        super().__init__(api_key="test-resend-api-key", from_email="test@example.com")
        self.delivered = delivered
        self.sent = []

    def send_email(self, notification):
        self.sent.append(notification)
        return self.delivered


@pytest.fixture(autouse=True)
def clear_protocol_cache():
    """インメモリDBはIDを使い回すため、テストごとにキャッシュを消す"""
    protocol_cache.clear()
    yield
    protocol_cache.clear()


@pytest.fixture(scope="function")
def db_session():
    """各テスト用のDBセッション"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_email():
    """記録用メールサービス"""
    return RecordingEmailService()


@pytest.fixture(scope="function")
def client(db_session, fake_email):
    """テスト用のAPIクライアント"""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: fake_email

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    """テスト用ユーザーを作成するファクトリ"""
    counter = {"n": 0}

    def _make_user(role="Data Manager", study_access=None, name=None):
        counter["n"] += 1
        n = counter["n"]
        username = name or f"user{n}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            full_name=f"Test {username}",
            role=role,
            study_access=study_access,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_trial(db_session):
    """テスト用の臨床試験を作成するファクトリ"""

    def _make_trial(protocol_id="PRO001", title="Test Trial"):
        trial = Trial(protocol_id=protocol_id, title=title)
        db_session.add(trial)
        db_session.commit()
        db_session.refresh(trial)
        return trial

    return _make_trial


@pytest.fixture
def auth_headers_for():
    """ユーザーの認証ヘッダーを生成"""

    def _auth_headers_for(user):
        token = create_access_token({"sub": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers_for
