"""Жизненный цикл предложения: создание, договор, покупка, подтверждение кодом."""

from uuid import UUID

import pytest

from shopemx import memory_store
from shopemx.adapters import sms_client
from shopemx.db.repositories import offer_repo

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
FILES_URL = "https://files.shop.test/"


def _form(**overrides) -> dict:
    form = {
        "title": "Рассвет над Невой",
        "description": "Цифровая иллюстрация, 4000x3000",
        "isFree": "false",
        "price": "1500,00",
        "contractType": "EXCLUSIVE_RIGHTS",
    }
    form.update(overrides)
    return {k: v for k, v in form.items() if v is not None}


def _create(c, with_file=True, **overrides):
    files = {"file": ("art.png", PNG, "image/png")} if with_file else None
    return c.post("/api/sell/create-offer", data=_form(**overrides), files=files)


@pytest.fixture
def seller(verified):
    return verified("+79991234567", "seller@shop.test", first_name="Иван", last_name="Иванов")


@pytest.fixture
def buyer(verified):
    return verified("+79997654321", "buyer@shop.test", first_name="Пётр", last_name="Петров")


@pytest.fixture
def active_offer(seller):
    c, _ = seller
    offer_id = _create(c).json()["offerId"]
    assert c.post(f"/api/sell/confirm-offer/{offer_id}").status_code == 200
    return offer_id


def _purchase(c, offer_id, buyer_id):
    return c.post("/api/buy", json={"sellOfferId": offer_id, "buyerId": str(buyer_id)})


def _stored(offer_id: str) -> dict:
    return memory_store._offers[UUID(offer_id)]


# ═══════════════════════════════════════════════════════════════════════════
# Создание
# ═══════════════════════════════════════════════════════════════════════════


def test_create_offer(seller, storage_root):
    c, seller_id = seller

    resp = _create(c)

    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "PENDING"
    assert data["price"] == 1500.0
    assert data["contractType"] == "EXCLUSIVE_RIGHTS"
    assert data["sellerId"] == str(seller_id)
    assert data["artwork"]["title"] == "Рассвет над Невой"
    path = data["artwork"]["filePath"]
    assert path.startswith(f"{FILES_URL}artworks/{seller_id}/artwork_")
    assert (storage_root / path.removeprefix(FILES_URL)).read_bytes() == PNG


@pytest.mark.parametrize(
    "overrides, with_file, field",
    [
        ({"title": None}, False, "file"),
        ({"title": ""}, True, "title"),
        ({"description": ""}, True, "description"),
        ({"contractType": None}, True, "contractType"),
        ({"contractType": "GIFT"}, True, "contractType"),
        ({"price": "1500.00"}, True, "price"),
        ({"price": "123456789"}, True, "price"),
        ({"price": "10,123"}, True, "price"),
        ({"contractType": "LICENSE"}, True, "licenseDuration"),
        ({"contractType": "LICENSE", "licenseDuration": "100"}, True, "licenseDuration"),
        ({"contractType": "LICENSE", "licenseDuration": "0"}, True, "licenseDuration"),
    ],
)
def test_create_offer_validation(seller, overrides, with_file, field):
    c, _ = seller

    resp = _create(c, with_file=with_file, **overrides)

    assert resp.status_code == 400
    assert resp.json()["field"] == field
    assert memory_store._offers == {}


def test_free_perpetual_license(seller):
    c, _ = seller

    resp = _create(
        c,
        contractType="LICENSE",
        isFree="true",
        price=None,
        isExclusiveLicense="true",
        isPerpetualLicense="true",
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["licenseType"] == "EXCLUSIVE"
    assert data["isPerpetual"] is True
    assert data["licenseDuration"] is None
    assert data["price"] is None


def test_timed_non_exclusive_license(seller):
    c, _ = seller

    data = _create(c, contractType="LICENSE", licenseDuration="3").json()

    assert data["licenseType"] == "NON_EXCLUSIVE"
    assert data["licenseDuration"] == 3


def test_unverified_user_cannot_sell(registered):
    c, _ = registered("+79991234567", "seller@shop.test")

    assert _create(c).status_code == 403


# ═══════════════════════════════════════════════════════════════════════════
# Подтверждение продавцом
# ═══════════════════════════════════════════════════════════════════════════


def test_confirm_offer_generates_contract(seller, storage_root):
    c, seller_id = seller
    offer_id = _create(c).json()["offerId"]

    resp = c.post(f"/api/sell/confirm-offer/{offer_id}")

    assert resp.status_code == 200
    url = resp.json()["contractUrl"]
    assert url.startswith(f"{FILES_URL}contracts/{seller_id}/contract_")
    assert (storage_root / url.removeprefix(FILES_URL)).read_bytes().startswith(b"%PDF")
    assert _stored(offer_id)["status"] == "ACTIVE"
    assert _stored(offer_id)["contract_path"] == url


def test_confirm_offer_twice_conflicts(seller, active_offer):
    c, _ = seller

    resp = c.post(f"/api/sell/confirm-offer/{active_offer}")

    assert resp.status_code == 409


def test_concurrent_confirm_removes_unused_contract(seller, storage_root, monkeypatch):
    c, seller_id = seller
    offer_id = _create(c).json()["offerId"]

    async def confirmed_elsewhere(offer_uuid, contract_path):
        memory_store._offers[offer_uuid]["status"] = "ACTIVE"
        return None

    monkeypatch.setattr(offer_repo, "activate_offer", confirmed_elsewhere)

    resp = c.post(f"/api/sell/confirm-offer/{offer_id}")

    assert resp.status_code == 409
    assert resp.json()["code"] == "SHOP_INVALID_STATE"
    assert list((storage_root / "contracts" / str(seller_id)).glob("*.pdf")) == []


def test_only_seller_confirms(seller, buyer):
    offer_id = _create(seller[0]).json()["offerId"]

    resp = buyer[0].post(f"/api/sell/confirm-offer/{offer_id}")

    assert resp.status_code == 403
    assert _stored(offer_id)["status"] == "PENDING"


def test_confirm_unknown_offer(seller):
    resp = seller[0].post("/api/sell/confirm-offer/00000000-0000-0000-0000-000000000000")

    assert resp.status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
# Покупка
# ═══════════════════════════════════════════════════════════════════════════


def test_scenario_sell_and_buy(seller, buyer, active_offer):
    seller_client, seller_id = seller
    buyer_client, buyer_id = buyer

    resp = _purchase(buyer_client, active_offer, buyer_id)

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ACCEPTED"
    assert data["buyerId"] == str(buyer_id)
    assert data["confirmationCode"] is None
    code = _stored(active_offer)["confirmation_code"]
    assert len(code) == 6 and code.isdigit()

    seller_view = seller_client.get(f"/api/buy/offers/{active_offer}").json()
    assert seller_view["confirmationCode"] == code
    assert seller_view["buyer"]["phone"] == "+79997654321"

    resp = buyer_client.post(
        f"/api/buy/confirm-purchase/{active_offer}", json={"confirmationCode": code}
    )

    assert resp.status_code == 200
    assert resp.json()["purchaseConfirmedAt"]
    assert resp.json()["status"] == "ACCEPTED"
    assert resp.json()["sellerId"] == str(seller_id)


def test_seller_cannot_buy_own_offer(seller, active_offer):
    c, seller_id = seller

    resp = _purchase(c, active_offer, seller_id)

    assert resp.status_code == 403
    assert _stored(active_offer)["buyer_id"] is None


def test_buyer_id_must_match_session(buyer, seller, active_offer):
    _, seller_id = seller

    resp = _purchase(buyer[0], active_offer, seller_id)

    assert resp.status_code == 403


def test_pending_offer_cannot_be_bought(seller, buyer):
    offer_id = _create(seller[0]).json()["offerId"]

    resp = _purchase(buyer[0], offer_id, buyer[1])

    assert resp.status_code == 409


def test_second_buyer_conflicts(verified, buyer, active_offer):
    _purchase(buyer[0], active_offer, buyer[1])
    other, other_id = verified("+79995550000", "third@shop.test")

    resp = _purchase(other, active_offer, other_id)

    assert resp.status_code == 409
    assert _stored(active_offer)["buyer_id"] == buyer[1]


def test_sms_failure_does_not_abort_purchase(monkeypatch, buyer, active_offer):
    async def failing_sms(phone, message):
        return False

    monkeypatch.setattr(sms_client, "send_sms", failing_sms)

    resp = _purchase(buyer[0], active_offer, buyer[1])

    assert resp.status_code == 200
    assert _stored(active_offer)["status"] == "ACCEPTED"


def test_wrong_code_leaves_offer_unchanged(buyer, active_offer):
    c, buyer_id = buyer
    _purchase(c, active_offer, buyer_id)
    code = _stored(active_offer)["confirmation_code"]
    wrong = "100000" if code != "100000" else "100001"

    resp = c.post(f"/api/buy/confirm-purchase/{active_offer}", json={"confirmationCode": wrong})

    assert resp.status_code == 400
    assert resp.json()["field"] == "confirmationCode"
    stored = _stored(active_offer)
    assert stored["status"] == "ACCEPTED"
    assert stored["buyer_id"] == buyer_id
    assert stored["purchase_confirmed_at"] is None


def test_expired_code_rejected(buyer, active_offer):
    from datetime import datetime, timedelta, timezone

    c, buyer_id = buyer
    _purchase(c, active_offer, buyer_id)
    stored = memory_store._offers[UUID(active_offer)]
    stored["confirmation_expires"] = datetime.now(timezone.utc) - timedelta(minutes=1)

    resp = c.post(
        f"/api/buy/confirm-purchase/{active_offer}",
        json={"confirmationCode": stored["confirmation_code"]},
    )

    assert resp.status_code == 400
    assert stored["purchase_confirmed_at"] is None


def test_purchase_confirmed_only_once(buyer, active_offer):
    c, buyer_id = buyer
    _purchase(c, active_offer, buyer_id)
    code = _stored(active_offer)["confirmation_code"]
    c.post(f"/api/buy/confirm-purchase/{active_offer}", json={"confirmationCode": code})

    resp = c.post(f"/api/buy/confirm-purchase/{active_offer}", json={"confirmationCode": code})

    assert resp.status_code == 409


def test_only_buyer_confirms_purchase(seller, buyer, active_offer):
    _purchase(buyer[0], active_offer, buyer[1])
    code = _stored(active_offer)["confirmation_code"]

    resp = seller[0].post(
        f"/api/buy/confirm-purchase/{active_offer}", json={"confirmationCode": code}
    )

    assert resp.status_code == 403


# ═══════════════════════════════════════════════════════════════════════════
# Договор купли-продажи и списки
# ═══════════════════════════════════════════════════════════════════════════


def test_purchase_contract_for_parties_only(verified, seller, buyer, active_offer, storage_root):
    _purchase(buyer[0], active_offer, buyer[1])

    resp = buyer[0].get(f"/api/buy/generate-contract/{active_offer}")

    assert resp.status_code == 200
    url = resp.json()["contractUrl"]
    assert f"contracts/{buyer[1]}/purchase_contract_" in url
    assert (storage_root / url.removeprefix(FILES_URL)).read_bytes().startswith(b"%PDF")
    assert _stored(active_offer)["purchase_contract_path"] == url

    stranger, _ = verified("+79995550000", "third@shop.test")
    assert stranger.get(f"/api/buy/generate-contract/{active_offer}").status_code == 403


def test_contract_requires_buyer(seller, active_offer):
    resp = seller[0].get(f"/api/buy/generate-contract/{active_offer}")

    assert resp.status_code == 409


def test_listings(verified, seller, buyer, active_offer):
    seller_client, _ = seller
    buyer_client, buyer_id = buyer

    available = buyer_client.get("/api/buy/offers").json()
    assert [o["offerId"] for o in available] == [active_offer]
    assert available[0]["seller"]["phone"] is None
    assert seller_client.get("/api/buy/offers").json() == []

    _purchase(buyer_client, active_offer, buyer_id)

    assert buyer_client.get("/api/buy/offers").json() == []
    assert [o["offerId"] for o in seller_client.get("/api/transactions/sales").json()] == [
        active_offer
    ]
    assert [o["offerId"] for o in buyer_client.get("/api/transactions/purchases").json()] == [
        active_offer
    ]
    assert len(buyer_client.get("/api/transactions/bought").json()) == 1

    stranger, _ = verified("+79995550000", "third@shop.test")
    assert stranger.get(f"/api/buy/offers/{active_offer}").status_code == 403


def test_audit_trail_for_deal(buyer, active_offer):
    _purchase(buyer[0], active_offer, buyer[1])

    actions = [r["action"] for r in memory_store.audit_records() if r["entity_type"] == "sell_offer"]
    assert actions == ["offer.create", "offer.activate", "offer.purchase"]
