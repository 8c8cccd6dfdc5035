"""SMS-шлюз, SMTP, файловое хранилище, аудит и настройки."""

import httpx
import pytest

from shopemx import events
from shopemx.adapters import file_storage, mail_client, sms_client
from shopemx.config import ShopSettings, get_settings
from shopemx.db import migrate
from shopemx.db.repositories import audit_repo
from shopemx.services.audit_logger import AuditAction, AuditLogger


@pytest.fixture
def production(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("JWT_SECRET_KEY", "0f4c2a9e51d7b8e36a0c")
    monkeypatch.setenv("SMS_AERO_EMAIL", "ops@shop.test")
    monkeypatch.setenv("SMS_AERO_API_KEY", "key")
    get_settings.cache_clear()


@pytest.fixture
def gateway(monkeypatch):
    """Подменяет HTTP-транспорт шлюза; возвращает список запросов."""
    requests: list[httpx.Request] = []
    responses: list[httpx.Response] = []
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.pop(0)

    def client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client)
    return requests, responses


@pytest.mark.parametrize(
    "phone, expected",
    [
        ("+7 (999) 123-45-67", "79991234567"),
        ("89991234567", "79991234567"),
        ("+380501234567", "380501234567"),
        ("12345", None),
    ],
)
def test_normalize_number(phone, expected):
    assert sms_client.normalize_number(phone) == expected


async def test_sms_logged_outside_production(gateway):
    requests, _ = gateway

    assert await sms_client.send_sms("+79991234567", "код 123456") is True
    assert requests == []


async def test_sms_sent_through_gateway(production, gateway):
    requests, responses = gateway
    responses.append(httpx.Response(200, json={"success": True, "data": {"id": 1}}))

    assert await sms_client.send_sms("+79991234567", "код 123456") is True

    [request] = requests
    assert request.url.path == "/v2/sms/send"
    assert request.url.params["number"] == "79991234567"
    assert request.url.params["sign"] == "ShopEMX"
    assert request.headers["authorization"].startswith("Basic ")


async def test_sms_gateway_rejection(production, gateway):
    _, responses = gateway
    responses.append(httpx.Response(200, json={"success": False, "message": "no money"}))

    assert await sms_client.send_sms("+79991234567", "код") is False


async def test_sms_gateway_http_error(production, gateway):
    _, responses = gateway
    responses.append(httpx.Response(502))

    assert await sms_client.send_sms("+79991234567", "код") is False


async def test_sms_invalid_number(gateway):
    assert await sms_client.send_sms("123", "код") is False


async def test_email_smtp_failure_reported(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.shop.test")
    get_settings.cache_clear()

    def refused(*args):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(mail_client, "_send_blocking", refused)

    assert await mail_client.send_verification_code("ivan@shop.test", "123456", 15) is False


async def test_email_sent_via_smtp(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.shop.test")
    get_settings.cache_clear()
    sent = []
    monkeypatch.setattr(mail_client, "_send_blocking", lambda *args: sent.append(args))

    assert await mail_client.send_verification_code("ivan@shop.test", "123456", 15) is True

    [(to, subject, text, html)] = sent
    assert to == "ivan@shop.test"
    assert "123456" in text
    assert "123456" in html


def test_storage_round_trip(storage_root):
    url = file_storage.save("artworks/u/a.png", b"png")

    assert url == "https://files.shop.test/artworks/u/a.png"
    assert file_storage.key_from_url(url) == "artworks/u/a.png"
    assert file_storage.delete("artworks/u/a.png") is True
    assert file_storage.delete("artworks/u/a.png") is False


async def test_audit_falls_back_to_buffer(monkeypatch):
    audit = AuditLogger()

    async def db_down(record):
        raise ConnectionError("database is down")

    saved = audit_repo.insert_audit_record
    monkeypatch.setattr(audit_repo, "insert_audit_record", db_down)
    await audit.log(AuditAction.OFFER_CREATE, "sell_offer", "o-1", "u-1")
    assert audit.buffer_size == 1

    monkeypatch.setattr(audit_repo, "insert_audit_record", saved)
    assert await audit.flush_buffer() == 1
    assert audit.buffer_size == 0


def test_production_requires_real_jwt_secret(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("JWT_SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")

    with pytest.raises(ValueError):
        ShopSettings()


async def test_events_skipped_when_nats_disabled():
    assert await events.publish("offer.activated", {"offer_id": "o-1"}) is False


def test_migration_files_in_name_order(tmp_path):
    for name in ("002_offers.sql", "001_users.sql", "notes.txt"):
        (tmp_path / name).write_text("SELECT 1;", encoding="utf-8")

    assert [p.name for p in migrate.migration_files(tmp_path)] == ["001_users.sql", "002_offers.sql"]
    assert migrate.migration_files(tmp_path / "missing") == []
    assert migrate.migration_files()[0].name == "001_initial_schema.sql"
