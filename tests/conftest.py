"""
Общие фикстуры: in-memory хранилище вместо PostgreSQL, каталог файлов
во временной папке, фиксированные коды подтверждения.
"""

import os

os.environ["APP_ENV"] = "test"
os.environ["NATS_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""
os.environ["APP_URL"] = "http://shop.test"

import pytest
from fastapi.testclient import TestClient

from shopemx import memory_store
from shopemx.config import get_settings
from shopemx.models.enums import UserRole
from shopemx.services import verification_service

memory_store.activate_memory_store()

from shopemx.main import app  # noqa: E402

CODE = "123456"
PASSWORD = "Secret1!"


@pytest.fixture(autouse=True)
def _isolated_store(tmp_path, monkeypatch):
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("STORAGE_PUBLIC_URL", "https://files.shop.test")
    monkeypatch.setenv("CONTRACT_FONT_PATH", str(tmp_path / "missing.ttf"))
    get_settings.cache_clear()
    memory_store.reset()
    monkeypatch.setattr(verification_service, "generate_code", lambda length=None: CODE)
    yield
    memory_store.reset()
    get_settings.cache_clear()


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "storage"


def registration(phone: str, email: str, first_name: str = "Иван", last_name: str = "Иванов") -> dict:
    return {
        "phone": phone,
        "email": email,
        "firstName": first_name,
        "lastName": last_name,
        "password": PASSWORD,
        "confirmPassword": PASSWORD,
        "agreeToTerms": True,
    }


def user_id_by_phone(phone: str):
    for user in memory_store._users.values():
        if user["phone"] == phone:
            return user["user_id"]
    raise LookupError(phone)


@pytest.fixture
def client():
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def make_client():
    """Новый клиент со своей cookie-сессией."""
    def _make() -> TestClient:
        return TestClient(app, follow_redirects=False)
    return _make


@pytest.fixture
def registered(make_client):
    """Зарегистрированный пользователь без пройденной 2FA."""
    def _register(phone: str, email: str, **names):
        c = make_client()
        resp = c.post("/api/auth/register", json=registration(phone, email, **names))
        assert resp.status_code == 303, resp.text
        return c, user_id_by_phone(phone)
    return _register


@pytest.fixture
def verified(registered):
    """Пользователь, прошедший двухфакторную проверку."""
    def _verify(phone: str, email: str, **names):
        c, user_id = registered(phone, email, **names)
        resp = c.post("/api/auth/verify", json={"smsCode": CODE, "emailCode": CODE})
        assert resp.status_code == 200, resp.text
        return c, user_id
    return _verify


@pytest.fixture
def admin(verified):
    c, user_id = verified("+79990000001", "admin@shop.test", first_name="Анна", last_name="Петрова")
    memory_store._users[user_id]["role"] = UserRole.ADMIN.value
    return c, user_id
