"""Регистрация, вход, двухфакторная проверка и выход через HTTP API."""

import re

from shopemx import memory_store
from shopemx.adapters import mail_client

from conftest import CODE, PASSWORD, registration, user_id_by_phone


def test_register_redirects_to_verify_and_sets_session(client):
    resp = client.post("/api/auth/register", json=registration("+7 999 123-45-67", "ivan@shop.test"))

    assert resp.status_code == 303
    assert resp.headers["location"] == "http://shop.test/verify"
    assert "shopemx_auth=" in resp.headers["set-cookie"]
    assert "httponly" in resp.headers["set-cookie"].lower()

    user = memory_store._users[user_id_by_phone("+79991234567")]
    assert user["is_verified"] is False
    assert user["password_hash"] != PASSWORD


def test_register_sends_sms_and_email_codes(client):
    client.post("/api/auth/register", json=registration("+79991234567", "ivan@shop.test"))

    user_id = user_id_by_phone("+79991234567")
    types = sorted(c["type"] for c in memory_store._codes.values() if c["user_id"] == user_id)
    assert types == ["EMAIL", "SMS"]


def test_register_duplicate_phone_conflict(client, make_client):
    client.post("/api/auth/register", json=registration("+79991234567", "ivan@shop.test"))

    resp = make_client().post(
        "/api/auth/register", json=registration("89991234567", "other@shop.test")
    )

    assert resp.status_code == 409
    assert resp.json()["field"] == "phone"


def test_register_duplicate_email_conflict(client, make_client):
    client.post("/api/auth/register", json=registration("+79991234567", "ivan@shop.test"))

    resp = make_client().post(
        "/api/auth/register", json=registration("+79997654321", "ivan@shop.test")
    )

    assert resp.status_code == 409
    assert resp.json()["field"] == "email"


def test_register_rejects_latin_name_and_weak_password(client):
    body = registration("+79991234567", "ivan@shop.test", first_name="Ivan")
    body["password"] = body["confirmPassword"] = "password"

    resp = client.post("/api/auth/register", json=body)

    assert resp.status_code == 400
    fields = {e["field"] for e in resp.json()["errors"]}
    assert {"firstName", "password"} <= fields
    assert memory_store._users == {}


def test_check_phone(client, registered):
    registered("+79991234567", "ivan@shop.test")

    assert client.post("/api/auth/check-phone", json={"phone": "89991234567"}).status_code == 200
    assert client.post("/api/auth/check-phone", json={"phone": "+79990000000"}).status_code == 404


def test_scenario_register_then_two_factor(client):
    resp = client.post("/api/auth/register", json=registration("+79991234567", "ivan@shop.test"))
    assert resp.status_code == 303

    resp = client.post(
        "/api/auth/verify",
        json={"smsCode": CODE, "emailCode": CODE},
        headers={"X-Forwarded-For": "10.1.2.3, 10.0.0.1", "User-Agent": "pytest"},
    )

    assert resp.status_code == 200
    me = client.get("/api/user").json()
    assert me["isVerified"] is True
    user = memory_store._users[user_id_by_phone("+79991234567")]
    assert user["last_login_ip"] == "10.1.2.3"
    assert user["last_login_user_agent"] == "pytest"


def test_two_factor_sends_login_notification(registered, monkeypatch):
    c, _ = registered("+79991234567", "ivan@shop.test")
    sent = []

    async def capture(*args):
        sent.append(args)
        return True

    monkeypatch.setattr(mail_client, "send_login_notification", capture)

    resp = c.post(
        "/api/auth/verify",
        json={"smsCode": CODE, "emailCode": CODE},
        headers={"X-Forwarded-For": "10.1.2.3", "User-Agent": "pytest"},
    )

    assert resp.status_code == 200
    [(to, first_name, last_name, ip, user_agent, moment)] = sent
    assert (to, first_name, last_name, ip, user_agent) == (
        "ivan@shop.test", "Иван", "Иванов", "10.1.2.3", "pytest",
    )
    assert re.fullmatch(r"\d{2}\.\d{2}\.\d{4} \d{2}:\d{2}:\d{2}", moment)


def test_undelivered_login_notification_does_not_block_verify(registered, monkeypatch):
    c, user_id = registered("+79991234567", "ivan@shop.test")

    async def smtp_down(*args, **kwargs):
        return False

    monkeypatch.setattr(mail_client, "send_email", smtp_down)

    resp = c.post("/api/auth/verify", json={"smsCode": CODE, "emailCode": CODE})

    assert resp.status_code == 200
    assert memory_store._users[user_id]["is_verified"] is True


def test_register_survives_login_notification_error(client, monkeypatch):
    async def broken(*args):
        raise RuntimeError("template error")

    monkeypatch.setattr(mail_client, "send_login_notification", broken)

    resp = client.post("/api/auth/register", json=registration("+79991234567", "ivan@shop.test"))

    assert resp.status_code == 303
    assert "shopemx_auth=" in resp.headers["set-cookie"]


def test_two_factor_wrong_sms_code(client, registered):
    c, user_id = registered("+79991234567", "ivan@shop.test")

    resp = c.post("/api/auth/verify", json={"smsCode": "000000", "emailCode": CODE})

    assert resp.status_code == 400
    assert resp.json()["field"] == "smsCode"
    assert memory_store._users[user_id]["is_verified"] is False


def test_two_factor_wrong_email_code(registered):
    c, _ = registered("+79991234567", "ivan@shop.test")

    resp = c.post("/api/auth/verify", json={"smsCode": CODE, "emailCode": "000000"})

    assert resp.status_code == 400
    assert resp.json()["field"] == "emailCode"


def test_verify_requires_session(client):
    resp = client.post("/api/auth/verify", json={"smsCode": CODE, "emailCode": CODE})

    assert resp.status_code == 401
    assert resp.json()["message"] == "Not authenticated"


def test_login_unknown_phone_not_found(client):
    resp = client.post("/api/auth/login", json={"phone": "+79990000000", "password": PASSWORD})

    assert resp.status_code == 404


def test_login_wrong_password_unauthorized(client, registered):
    registered("+79991234567", "ivan@shop.test")

    resp = client.post("/api/auth/login", json={"phone": "+79991234567", "password": "Wrong1!x"})

    assert resp.status_code == 401


def test_login_resets_verification(verified, make_client):
    _, user_id = verified("+79991234567", "ivan@shop.test")
    assert memory_store._users[user_id]["is_verified"] is True

    c = make_client()
    resp = c.post("/api/auth/login", json={"phone": "+79991234567", "password": PASSWORD})

    assert resp.status_code == 303
    assert resp.headers["location"] == "http://shop.test/verify"
    assert memory_store._users[user_id]["is_verified"] is False
    assert c.get("/api/buy/offers").status_code == 403


def test_logout_clears_session_and_verification(verified):
    c, user_id = verified("+79991234567", "ivan@shop.test")

    resp = c.post("/api/auth/logout")

    assert resp.status_code == 303
    assert resp.headers["location"] == "http://shop.test/"
    assert memory_store._users[user_id]["is_verified"] is False
    assert c.get("/api/user").status_code == 401


def test_logout_without_session_still_redirects(client):
    resp = client.get("/api/auth/logout")

    assert resp.status_code == 303


def test_bearer_token_accepted(registered, client):
    from shopemx.services.auth_service import create_session_token

    _, user_id = registered("+79991234567", "ivan@shop.test")
    token = create_session_token(user_id)

    resp = client.get("/api/user", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 200
    assert resp.json()["userId"] == str(user_id)


def test_resend_code_rate_limited(registered):
    c, _ = registered("+79991234567", "ivan@shop.test")

    resp = c.post("/api/auth/send-verification-code", json={"type": "SMS"})

    assert resp.status_code == 429


def test_verify_single_code(registered):
    c, _ = registered("+79991234567", "ivan@shop.test")

    assert c.post("/api/auth/verify-code", json={"code": CODE, "type": "EMAIL"}).status_code == 200
    resp = c.post("/api/auth/verify-code", json={"code": CODE, "type": "EMAIL"})
    assert resp.status_code == 400
    assert resp.json()["field"] == "code"


def test_verify_password(registered):
    c, _ = registered("+79991234567", "ivan@shop.test")

    assert c.post("/api/auth/verify-password", json={"password": PASSWORD}).status_code == 200
    resp = c.post("/api/auth/verify-password", json={"password": "nope"})
    assert resp.status_code == 400
    assert resp.json()["field"] == "password"


def test_audit_trail_for_login_flow(verified):
    verified("+79991234567", "ivan@shop.test")

    actions = [r["action"] for r in memory_store.audit_records()]
    assert actions == ["user.register", "user.verify"]
