"""
═══════════════════════════════════════════════════════════════════════════════
ShopEMX — In-Memory хранилище (замена PostgreSQL для локальной разработки)
═══════════════════════════════════════════════════════════════════════════════

Содержит in-memory реализации user_repo, code_repo, kyc_repo, offer_repo и
audit_repo + функцию ``activate_memory_store()`` для monkey-patching.

Условные переходы статусов выполняются синхронно (между проверкой и
записью нет ``await``), поэтому в рамках одного event loop они атомарны
так же, как условный UPDATE в PostgreSQL.
"""

from __future__ import annotations

import itertools
import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Хранилища данных
# ═══════════════════════════════════════════════════════════════════════════════
_users: dict[UUID, dict] = {}
_codes: dict[UUID, dict] = {}
_requests: dict[UUID, dict] = {}
_artworks: dict[UUID, dict] = {}
_offers: dict[UUID, dict] = {}
_audit: list[dict] = []

# Порядок вставки: разрешает равенство created_at при сортировке
_seq = itertools.count()
_active = False

_now = lambda: datetime.now(timezone.utc)  # noqa: E731


def is_active() -> bool:
    return _active


def reset() -> None:
    """Очистить все хранилища (используется в тестах)."""
    _users.clear()
    _codes.clear()
    _requests.clear()
    _artworks.clear()
    _offers.clear()
    _audit.clear()


def audit_records() -> list[dict]:
    return list(_audit)


def _stamp(row: dict) -> dict:
    row["_seq"] = next(_seq)
    return row


def _public(row: dict | None) -> dict | None:
    if row is None:
        return None
    return {k: v for k, v in row.items() if k != "_seq"}


def _newest_first(rows, key: str = "created_at") -> list[dict]:
    ordered = sorted(rows, key=lambda r: (r[key], r["_seq"]), reverse=True)
    return [_public(r) for r in ordered]


# ═══════════════════════════════════════════════════════════════════════════════
# user_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def create_user(
    phone: str,
    email: str,
    first_name: str,
    last_name: str,
    middle_name: str | None,
    password_hash: str,
    role: str = "USER",
) -> dict:
    """Создаёт нового пользователя в памяти."""
    uid = uuid4()
    now = _now()
    user = _stamp({
        "user_id": uid, "phone": phone, "email": email,
        "first_name": first_name, "last_name": last_name, "middle_name": middle_name,
        "password_hash": password_hash, "role": role, "is_verified": False,
        "birth_date": None, "passport_series": None, "passport_number": None,
        "passport_code": None, "passport_issue_date": None, "passport_issued_by": None,
        "use_alternative_document": False, "alternative_document": None,
        "bank_name": None, "bank_bik": None, "bank_account": None, "bank_cor_account": None,
        "passport_document_url": None,
        "last_login_ip": None, "last_login_user_agent": None, "last_login_attempt": None,
        "created_at": now, "updated_at": now,
    })
    _users[uid] = user
    logger.info("Memory store: created user %s", phone)
    return _public(user)


async def get_user_by_id(user_id: UUID) -> dict | None:
    return _public(_users.get(user_id))


async def get_user_by_phone(phone: str) -> dict | None:
    for u in _users.values():
        if u["phone"] == phone:
            return _public(u)
    return None


async def get_user_by_email(email: str) -> dict | None:
    for u in _users.values():
        if u["email"] == email:
            return _public(u)
    return None


async def list_users() -> list[dict]:
    return _newest_first(_users.values())


async def set_verified(user_id: UUID, is_verified: bool) -> None:
    if user_id in _users:
        _users[user_id]["is_verified"] = is_verified
        _users[user_id]["updated_at"] = _now()


async def record_login(user_id: UUID, ip: str, user_agent: str) -> None:
    user = _users.get(user_id)
    if user is None:
        return
    now = _now()
    user.update({
        "is_verified": True, "last_login_ip": ip, "last_login_user_agent": user_agent,
        "last_login_attempt": now, "updated_at": now,
    })


def _update_columns(user_id: UUID, fields: dict, allowed: tuple[str, ...]) -> dict | None:
    user = _users.get(user_id)
    if user is None:
        return None
    for column in allowed:
        if column in fields:
            user[column] = fields[column]
    user["updated_at"] = _now()
    return _public(user)


async def update_profile(user_id: UUID, fields: dict) -> dict | None:
    from shopemx.db.repositories.user_repo import PROFILE_COLUMNS
    return _update_columns(user_id, fields, PROFILE_COLUMNS)


async def update_bank_details(user_id: UUID, fields: dict) -> dict | None:
    from shopemx.db.repositories.user_repo import BANK_COLUMNS
    return _update_columns(user_id, fields, BANK_COLUMNS)


async def set_document_url(user_id: UUID, url: str | None) -> None:
    if user_id in _users:
        _users[user_id]["passport_document_url"] = url
        _users[user_id]["updated_at"] = _now()


# ═══════════════════════════════════════════════════════════════════════════════
# code_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def create_code(user_id: UUID, type_: str, code: str, expires_at: datetime) -> dict:
    cid = uuid4()
    now = _now()
    row = _stamp({
        "code_id": cid, "user_id": user_id, "type": type_, "code": code,
        "status": "PENDING", "expires_at": expires_at, "last_sent_at": now,
        "send_attempts": 0, "created_at": now,
    })
    _codes[cid] = row
    return _public(row)


async def get_code(code_id: UUID) -> dict | None:
    return _public(_codes.get(code_id))


async def get_latest_code(user_id: UUID, type_: str) -> dict | None:
    rows = [c for c in _codes.values() if c["user_id"] == user_id and c["type"] == type_]
    ordered = _newest_first(rows)
    return ordered[0] if ordered else None


async def consume_code(user_id: UUID, code: str, type_: str, now: datetime) -> dict | None:
    candidates = [
        c for c in _codes.values()
        if c["user_id"] == user_id and c["code"] == code and c["type"] == type_
        and c["status"] == "PENDING" and c["expires_at"] > now
    ]
    if not candidates:
        return None
    row = max(candidates, key=lambda c: (c["created_at"], c["_seq"]))
    row["status"] = "VERIFIED"
    return _public(row)


async def mark_sent(code_id: UUID, sent_at: datetime) -> None:
    row = _codes.get(code_id)
    if row is not None:
        row["last_sent_at"] = sent_at
        row["send_attempts"] += 1


# ═══════════════════════════════════════════════════════════════════════════════
# kyc_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def create_request(user_id: UUID) -> dict | None:
    if any(r["user_id"] == user_id and r["status"] == "PENDING" for r in _requests.values()):
        return None
    rid = uuid4()
    row = _stamp({
        "request_id": rid, "user_id": user_id, "status": "PENDING",
        "reviewed_at": None, "reviewed_by": None, "rejection_reason": None,
        "created_at": _now(),
    })
    _requests[rid] = row
    return _public(row)


async def get_request(request_id: UUID) -> dict | None:
    return _public(_requests.get(request_id))


async def get_pending_for_user(user_id: UUID) -> dict | None:
    for r in _requests.values():
        if r["user_id"] == user_id and r["status"] == "PENDING":
            return _public(r)
    return None


async def list_requests(status: str | None = None) -> list[dict]:
    return _newest_first(
        r for r in _requests.values() if status is None or r["status"] == status
    )


async def list_for_user(user_id: UUID) -> list[dict]:
    return _newest_first(r for r in _requests.values() if r["user_id"] == user_id)


async def approve_request(request_id: UUID, admin_id: UUID, reviewed_at: datetime) -> dict | None:
    row = _requests.get(request_id)
    if row is None or row["status"] != "PENDING":
        return None
    row.update({"status": "APPROVED", "reviewed_at": reviewed_at, "reviewed_by": admin_id})
    user = _users.get(row["user_id"])
    if user is not None:
        user["is_verified"] = True
        user["updated_at"] = _now()
    return _public(row)


async def reject_request(
    request_id: UUID, admin_id: UUID, reason: str, reviewed_at: datetime
) -> dict | None:
    row = _requests.get(request_id)
    if row is None or row["status"] != "PENDING":
        return None
    row.update({
        "status": "REJECTED", "reviewed_at": reviewed_at,
        "reviewed_by": admin_id, "rejection_reason": reason,
    })
    return _public(row)


# ═══════════════════════════════════════════════════════════════════════════════
# offer_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def create_artwork_with_offer(
    title: str,
    description: str,
    file_path: str,
    author_id: UUID,
    contract_type: str,
    license_type: str | None,
    is_exclusive: bool | None,
    is_perpetual: bool | None,
    license_duration: int | None,
    is_free: bool,
    price: Decimal | None,
) -> dict:
    now = _now()
    artwork_id = uuid4()
    _artworks[artwork_id] = _stamp({
        "artwork_id": artwork_id, "title": title, "description": description,
        "file_path": file_path, "author_id": author_id, "created_at": now,
    })
    offer_id = uuid4()
    offer = _stamp({
        "offer_id": offer_id, "artwork_id": artwork_id, "seller_id": author_id,
        "buyer_id": None, "status": "PENDING", "contract_type": contract_type,
        "license_type": license_type, "is_exclusive": is_exclusive,
        "is_perpetual": is_perpetual, "license_duration": license_duration,
        "is_free": is_free, "price": price,
        "confirmation_code": None, "confirmation_expires": None,
        "purchase_confirmed_at": None, "contract_path": None,
        "purchase_contract_path": None, "created_at": now, "updated_at": now,
    })
    _offers[offer_id] = offer
    return _public(offer)


async def get_artwork(artwork_id: UUID) -> dict | None:
    return _public(_artworks.get(artwork_id))


async def get_offer(offer_id: UUID) -> dict | None:
    return _public(_offers.get(offer_id))


async def list_by_seller(seller_id: UUID) -> list[dict]:
    return _newest_first(
        (o for o in _offers.values() if o["seller_id"] == seller_id), key="updated_at"
    )


async def list_by_buyer(buyer_id: UUID, status: str | None = None) -> list[dict]:
    return _newest_first(
        (
            o for o in _offers.values()
            if o["buyer_id"] == buyer_id and (status is None or o["status"] == status)
        ),
        key="updated_at",
    )


async def list_available(exclude_seller_id: UUID) -> list[dict]:
    return _newest_first(
        o for o in _offers.values()
        if o["status"] == "ACTIVE" and o["buyer_id"] is None
        and o["seller_id"] != exclude_seller_id
    )


async def activate_offer(offer_id: UUID, contract_path: str) -> dict | None:
    offer = _offers.get(offer_id)
    if offer is None or offer["status"] != "PENDING":
        return None
    offer.update({"status": "ACTIVE", "contract_path": contract_path, "updated_at": _now()})
    return _public(offer)


async def reserve_offer(
    offer_id: UUID, buyer_id: UUID, confirmation_code: str, confirmation_expires: datetime
) -> dict | None:
    offer = _offers.get(offer_id)
    if offer is None or offer["status"] != "ACTIVE" or offer["buyer_id"] is not None:
        return None
    offer.update({
        "status": "ACCEPTED", "buyer_id": buyer_id,
        "confirmation_code": confirmation_code,
        "confirmation_expires": confirmation_expires, "updated_at": _now(),
    })
    return _public(offer)


async def confirm_purchase(offer_id: UUID, buyer_id: UUID, confirmed_at: datetime) -> dict | None:
    offer = _offers.get(offer_id)
    if (
        offer is None
        or offer["status"] != "ACCEPTED"
        or offer["buyer_id"] != buyer_id
        or offer["purchase_confirmed_at"] is not None
    ):
        return None
    offer.update({"purchase_confirmed_at": confirmed_at, "updated_at": _now()})
    return _public(offer)


async def set_purchase_contract(offer_id: UUID, path: str) -> dict | None:
    offer = _offers.get(offer_id)
    if offer is None:
        return None
    offer.update({"purchase_contract_path": path, "updated_at": _now()})
    return _public(offer)


# ═══════════════════════════════════════════════════════════════════════════════
# audit_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def insert_audit_record(record: dict) -> None:
    _audit.append(dict(record))


# ═══════════════════════════════════════════════════════════════════════════════
# Активация in-memory хранилища (monkey-patching)
# ═══════════════════════════════════════════════════════════════════════════════

def activate_memory_store() -> None:
    """
    Подменяет функции в shopemx.db.repositories.* на in-memory реализации.

    Вызывается из shopemx.main → lifespan() при недоступности PostgreSQL,
    а также из тестов.
    """
    global _active
    if _active:
        return

    from shopemx.db.repositories import audit_repo, code_repo, kyc_repo, offer_repo, user_repo

    # ── user_repo ──
    user_repo.create_user = create_user
    user_repo.get_user_by_id = get_user_by_id
    user_repo.get_user_by_phone = get_user_by_phone
    user_repo.get_user_by_email = get_user_by_email
    user_repo.list_users = list_users
    user_repo.set_verified = set_verified
    user_repo.record_login = record_login
    user_repo.update_profile = update_profile
    user_repo.update_bank_details = update_bank_details
    user_repo.set_document_url = set_document_url

    # ── code_repo ──
    code_repo.create_code = create_code
    code_repo.get_code = get_code
    code_repo.get_latest_code = get_latest_code
    code_repo.consume_code = consume_code
    code_repo.mark_sent = mark_sent

    # ── kyc_repo ──
    kyc_repo.create_request = create_request
    kyc_repo.get_request = get_request
    kyc_repo.get_pending_for_user = get_pending_for_user
    kyc_repo.list_requests = list_requests
    kyc_repo.list_for_user = list_for_user
    kyc_repo.approve_request = approve_request
    kyc_repo.reject_request = reject_request

    # ── offer_repo ──
    offer_repo.create_artwork_with_offer = create_artwork_with_offer
    offer_repo.get_artwork = get_artwork
    offer_repo.get_offer = get_offer
    offer_repo.list_by_seller = list_by_seller
    offer_repo.list_by_buyer = list_by_buyer
    offer_repo.list_available = list_available
    offer_repo.activate_offer = activate_offer
    offer_repo.reserve_offer = reserve_offer
    offer_repo.confirm_purchase = confirm_purchase
    offer_repo.set_purchase_contract = set_purchase_contract

    # ── audit_repo ──
    audit_repo.insert_audit_record = insert_audit_record

    _active = True
    logger.warning(
        "🧠 ShopEMX memory store ACTIVATED — all data is in-memory (lost on restart)."
    )
