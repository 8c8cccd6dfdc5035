"""Фото документа и заявка на подтверждение личности."""

import pytest

from shopemx import memory_store

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def session(registered):
    return registered("+79991234567", "ivan@shop.test")


def _upload(c, data=PNG, content_type="image/png", name="passport.png"):
    return c.post("/api/upload-document", files={"file": (name, data, content_type)})


def test_upload_document_stores_file(session, storage_root):
    c, user_id = session

    resp = _upload(c)

    assert resp.status_code == 200
    url = resp.json()["url"]
    assert url.startswith(f"https://files.shop.test/uploads/{user_id}/{user_id}_passport_")
    assert url.endswith(".png")
    key = url.removeprefix("https://files.shop.test/")
    assert (storage_root / key).read_bytes() == PNG
    assert memory_store._users[user_id]["passport_document_url"] == url
    assert c.get("/api/get-document").json() == {"url": url}


def test_upload_rejects_non_image(session):
    c, _ = session

    resp = _upload(c, data=b"%PDF-1.4", content_type="application/pdf", name="passport.pdf")

    assert resp.status_code == 400
    assert resp.json()["field"] == "file"


def test_upload_rejects_oversized_file(session, monkeypatch):
    from shopemx.config import get_settings

    monkeypatch.setenv("DOCUMENT_MAX_BYTES", "16")
    get_settings.cache_clear()
    c, _ = session

    assert _upload(c).status_code == 400


def test_delete_document(session, storage_root):
    c, user_id = session
    url = _upload(c).json()["url"]

    assert c.delete("/api/delete-document").status_code == 200
    assert memory_store._users[user_id]["passport_document_url"] is None
    assert not (storage_root / url.removeprefix("https://files.shop.test/")).exists()
    assert c.get("/api/get-document").json() == {"url": None}
    assert c.delete("/api/delete-document").status_code == 404


def test_legacy_upload_directory_is_found(session, storage_root):
    c, user_id = session
    legacy = storage_root / "uploads" / str(user_id)
    legacy.mkdir(parents=True)
    (legacy / f"{user_id}_passport_old.jpg").write_bytes(b"jpeg")

    resp = c.get("/api/get-document")

    assert resp.json()["url"] == (
        f"https://files.shop.test/uploads/{user_id}/{user_id}_passport_old.jpg"
    )


def test_verification_request_requires_document(session):
    c, _ = session

    resp = c.post("/api/profile/verification-request")

    assert resp.status_code == 400
    assert resp.json()["field"] == "document"


def test_verification_request_created(session):
    c, user_id = session
    _upload(c)

    resp = c.post("/api/profile/verification-request")

    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "PENDING"
    assert data["userId"] == str(user_id)
    assert [r["requestId"] for r in c.get("/api/profile/verification-request").json()] == [
        data["requestId"]
    ]


def test_second_pending_request_conflicts(session):
    c, _ = session
    _upload(c)
    c.post("/api/profile/verification-request")

    resp = c.post("/api/profile/verification-request")

    assert resp.status_code == 409
    assert len(memory_store._requests) == 1


def test_verified_user_cannot_request(verified):
    c, _ = verified("+79991234567", "ivan@shop.test")
    _upload(c)

    resp = c.post("/api/profile/verification-request")

    assert resp.status_code == 400
