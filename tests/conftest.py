"""
Общие фикстуры тестов: временная SQLite БД, пользователи, HTTP клиент.
"""
import os
import tempfile

# Настройки читаются при импорте app.core.config, поэтому окружение задается до импорта приложения
_TEST_DIR = tempfile.mkdtemp(prefix="docshare-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["POSTMARK_SERVER_TOKEN"] = ""
os.environ["PUBLIC_BASE_URL"] = "http://docs.test"

import pytest
from httpx import ASGITransport, AsyncClient

from app.db import models  # noqa: F401
from app.core.db import Base, SessionLocal, engine
from app.core.errors import DeliveryFailure
from app.core.locks import document_locks
from app.domains.identity.schemas import UserCreate
from app.domains.identity.services import IdentityService
from app.infrastructure.email import get_email_sender
from app.main import app

PASSWORD = "Secret123"


class FakeEmailSender:
    """Отправитель писем для тестов: запоминает письма или падает по требованию"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    @property
    def is_configured(self) -> bool:
        return True

    def send(self, to, subject, text_body, html_body=None, tag="invitation"):
        if self.fail:
            raise DeliveryFailure("Mailbox unavailable")
        self.sent.append({"to": to, "subject": subject, "text_body": text_body})
        return f"message-{len(self.sent)}"


@pytest.fixture(autouse=True)
async def database():
    """Чистая схема для каждого теста"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    document_locks.clear()
    yield
    await engine.dispose()


@pytest.fixture
async def session():
    async with SessionLocal() as db:
        yield db


@pytest.fixture
def make_subject(session):
    """Регистрирует пользователя и возвращает его как субъекта"""
    async def _make(name: str):
        user = await IdentityService(session).register_user(
            UserCreate(email=f"{name}@example.com", username=name, password=PASSWORD)
        )
        return user.to_subject()
    return _make


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
async def client(email_sender):
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def register_and_login(client):
    """Регистрация через API; возвращает заголовки авторизации и UUID пользователя"""
    async def _register(name: str):
        response = await client.post("/auth/register", json={
            "email": f"{name}@example.com",
            "username": name,
            "password": PASSWORD
        })
        assert response.status_code == 201, response.text
        user_id = response.json()["uuid"]

        response = await client.post("/auth/login", json={
            "email": f"{name}@example.com",
            "password": PASSWORD
        })
        assert response.status_code == 200, response.text
        token = response.json()["access_token"]
        return {"Authorization": f"Bearer {token}"}, user_id
    return _register
