"""
shopemx/services/offer_service.py — Жизненный цикл предложений о продаже прав.

Состояния: PENDING → ACTIVE → ACCEPTED.

    create_offer      продавец создаёт произведение и предложение (PENDING)
    confirm_offer     продавец подтверждает: договор в PDF, PENDING → ACTIVE
    purchase          покупатель выбирает: код продавцу по SMS, ACTIVE → ACCEPTED
    confirm_purchase  покупатель вводит код: фиксируется purchase_confirmed_at

Каждый переход сначала проверяет существование, владельца и статус, затем
выполняет условное обновление из ожидаемого статуса. Если условие не
выполнилось (параллельный запрос), возвращается ``InvalidStateError``.
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

from shopemx.adapters import file_storage, sms_client
from shopemx.config import get_settings
from shopemx.db.repositories import offer_repo, user_repo
from shopemx.exceptions import (
    AuthorizationError,
    InvalidCodeError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from shopemx.models.enums import ContractType, LicenseType, OfferStatus
from shopemx.models.offer import ArtworkRead, SellOfferForm, SellOfferRead
from shopemx.models.user import UserRead, user_row_to_party, user_row_to_read
from shopemx.services import contract_service
from shopemx.services.audit_logger import AuditAction, get_audit_logger

logger = logging.getLogger(__name__)

PRICE_RE = re.compile(r"^\d{1,8}(,\d{0,2})?$")
DURATION_RE = re.compile(r"^[1-9][0-9]?$")


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# ПРЕДСТАВЛЕНИЕ
# ═══════════════════════════════════════════════════════════════════════════


async def _to_read(offer: dict, viewer_id: UUID) -> SellOfferRead:
    """Собирает предложение с произведением и сторонами сделки."""
    is_party = viewer_id in (offer["seller_id"], offer["buyer_id"])
    artwork = await offer_repo.get_artwork(offer["artwork_id"])
    seller = await user_repo.get_user_by_id(offer["seller_id"])
    buyer = await user_repo.get_user_by_id(offer["buyer_id"]) if offer["buyer_id"] else None

    seller_party = user_row_to_party(seller, with_contacts=is_party) if seller else None
    data = {k: v for k, v in offer.items() if k not in ("artwork", "seller", "buyer")}
    if viewer_id != offer["seller_id"]:
        data["confirmation_code"] = None
    return SellOfferRead(
        **data,
        artwork=ArtworkRead(**artwork, author=seller_party) if artwork else None,
        seller=seller_party,
        buyer=user_row_to_party(buyer, with_contacts=is_party) if buyer else None,
    )


async def _load(offer_id: UUID) -> dict:
    offer = await offer_repo.get_offer(offer_id)
    if offer is None:
        raise NotFoundError("SellOffer", str(offer_id))
    return offer


async def _lost_race(offer_id: UUID, expected: OfferStatus) -> InvalidStateError:
    current = await offer_repo.get_offer(offer_id)
    status = current["status"] if current else "UNKNOWN"
    return InvalidStateError("SellOffer", status, expected.value)


# ═══════════════════════════════════════════════════════════════════════════
# СОЗДАНИЕ
# ═══════════════════════════════════════════════════════════════════════════


def validate_form(form: SellOfferForm, has_file: bool) -> dict:
    """
    Проверяет форму продажи и возвращает поля для записи.

    Первое нарушенное правило → ``ValidationError`` с именем поля.
    """
    if not has_file:
        raise ValidationError("Artwork file is required", field="file")
    if not form.title:
        raise ValidationError("Title is required", field="title")
    if not form.description:
        raise ValidationError("Description is required", field="description")
    if not form.contract_type:
        raise ValidationError("Contract type is required", field="contractType")
    try:
        contract_type = ContractType(form.contract_type)
    except ValueError:
        raise ValidationError(
            "Contract type must be EXCLUSIVE_RIGHTS or LICENSE", field="contractType"
        ) from None

    price: Decimal | None = None
    if not form.is_free:
        if not form.price or not PRICE_RE.match(form.price):
            raise ValidationError(
                "Price must have up to 8 digits and up to 2 decimals after a comma",
                field="price",
            )
        price = Decimal(form.price.replace(",", "."))

    fields: dict = {
        "title": form.title,
        "description": form.description,
        "contract_type": contract_type.value,
        "license_type": None,
        "is_exclusive": None,
        "is_perpetual": None,
        "license_duration": None,
        "is_free": form.is_free,
        "price": price,
    }
    if contract_type == ContractType.LICENSE:
        duration: int | None = None
        if not form.is_perpetual_license:
            if not form.license_duration or not DURATION_RE.match(form.license_duration):
                raise ValidationError(
                    "License duration must be between 1 and 99 years", field="licenseDuration"
                )
            duration = int(form.license_duration)
        fields.update(
            license_type=(
                LicenseType.EXCLUSIVE if form.is_exclusive_license else LicenseType.NON_EXCLUSIVE
            ).value,
            is_exclusive=form.is_exclusive_license,
            is_perpetual=form.is_perpetual_license,
            license_duration=duration,
        )
    return fields


async def create_offer(
    user: UserRead, form: SellOfferForm, filename: str | None, data: bytes | None
) -> SellOfferRead:
    """Создаёт произведение и предложение в статусе PENDING."""
    fields = validate_form(form, has_file=bool(data))

    ext = Path(filename or "").suffix.lstrip(".").lower() or "bin"
    file_url = file_storage.save(f"artworks/{user.user_id}/artwork_{uuid4()}.{ext}", data)

    offer = await offer_repo.create_artwork_with_offer(
        file_path=file_url, author_id=user.user_id, **fields
    )
    await get_audit_logger().log(
        AuditAction.OFFER_CREATE, "sell_offer", str(offer["offer_id"]), str(user.user_id),
        details={"contract_type": fields["contract_type"]},
    )
    logger.info("Sell offer %s created by %s", offer["offer_id"], user.user_id)
    return await _to_read(offer, user.user_id)


# ═══════════════════════════════════════════════════════════════════════════
# ПОДТВЕРЖДЕНИЕ ПРОДАВЦОМ
# ═══════════════════════════════════════════════════════════════════════════


async def confirm_offer(user: UserRead, offer_id: UUID) -> str:
    """Генерирует договор передачи прав и переводит предложение в ACTIVE."""
    offer = await _load(offer_id)
    if offer["seller_id"] != user.user_id:
        raise AuthorizationError("Only the seller can confirm this offer")
    if offer["status"] != OfferStatus.PENDING.value:
        raise InvalidStateError("SellOffer", offer["status"], OfferStatus.PENDING.value)

    artwork = await offer_repo.get_artwork(offer["artwork_id"])
    text = contract_service.build_rights_transfer_text(offer, artwork, user)
    contract_key = f"contracts/{user.user_id}/contract_{uuid4()}.pdf"
    contract_url = await contract_service.store_contract(text, contract_key)

    updated = await offer_repo.activate_offer(offer_id, contract_url)
    if updated is None:
        file_storage.delete(contract_key)
        raise await _lost_race(offer_id, OfferStatus.PENDING)

    await get_audit_logger().log(
        AuditAction.OFFER_ACTIVATE, "sell_offer", str(offer_id), str(user.user_id),
        details={"contract_url": contract_url},
    )
    try:
        from shopemx.events import emit_offer_activated
        await emit_offer_activated(str(offer_id), str(user.user_id), contract_url)
    except Exception as exc:
        logger.warning("Failed to emit offer.activated event: %s", exc)
    return contract_url


# ═══════════════════════════════════════════════════════════════════════════
# ПОКУПКА
# ═══════════════════════════════════════════════════════════════════════════


async def purchase(user: UserRead, sell_offer_id: UUID, buyer_id: UUID) -> SellOfferRead:
    """
    Покупатель выбирает предложение: ACTIVE → ACCEPTED.

    Продавцу по SMS уходит 6-значный код подтверждения (действует 24 часа).
    Ошибка SMS не отменяет покупку.
    """
    if buyer_id != user.user_id:
        raise AuthorizationError("Buyer must be the current user")
    offer = await _load(sell_offer_id)
    if offer["status"] != OfferStatus.ACTIVE.value:
        raise InvalidStateError("SellOffer", offer["status"], OfferStatus.ACTIVE.value)
    if offer["seller_id"] == user.user_id:
        raise AuthorizationError("You cannot buy your own offer")
    if offer["buyer_id"] is not None:
        raise InvalidStateError("SellOffer", offer["status"], "without buyer")

    code = str(secrets.randbelow(900000) + 100000)
    expires = _now() + timedelta(hours=get_settings().purchase_code_ttl_hours)
    updated = await offer_repo.reserve_offer(sell_offer_id, user.user_id, code, expires)
    if updated is None:
        raise await _lost_race(sell_offer_id, OfferStatus.ACTIVE)

    seller = await user_repo.get_user_by_id(offer["seller_id"])
    artwork = await offer_repo.get_artwork(offer["artwork_id"])
    if seller is not None:
        title = artwork["title"] if artwork else ""
        sent = await sms_client.send_sms(
            seller["phone"], f"ShopEMX: код подтверждения покупки «{title}»: {code}"
        )
        if not sent:
            logger.warning("Purchase code SMS to seller of offer %s failed", sell_offer_id)

    await get_audit_logger().log(
        AuditAction.OFFER_PURCHASE, "sell_offer", str(sell_offer_id), str(user.user_id),
    )
    try:
        from shopemx.events import emit_offer_purchased
        await emit_offer_purchased(str(sell_offer_id), str(offer["seller_id"]), str(user.user_id))
    except Exception as exc:
        logger.warning("Failed to emit offer.purchased event: %s", exc)
    return await _to_read(updated, user.user_id)


async def confirm_purchase(user: UserRead, offer_id: UUID, code: str) -> SellOfferRead:
    """Покупатель подтверждает покупку кодом, полученным от продавца."""
    offer = await _load(offer_id)
    if offer["buyer_id"] != user.user_id:
        raise AuthorizationError("Only the buyer can confirm this purchase")
    if offer["status"] != OfferStatus.ACCEPTED.value:
        raise InvalidStateError("SellOffer", offer["status"], OfferStatus.ACCEPTED.value)
    if offer["purchase_confirmed_at"] is not None:
        raise InvalidStateError("SellOffer", "CONFIRMED", OfferStatus.ACCEPTED.value)
    if not secrets.compare_digest((code or "").strip(), offer["confirmation_code"] or ""):
        raise InvalidCodeError("Invalid confirmation code", field="confirmationCode")
    expires = offer["confirmation_expires"]
    if expires is not None and expires <= _now():
        raise InvalidCodeError("Confirmation code has expired", field="confirmationCode")

    updated = await offer_repo.confirm_purchase(offer_id, user.user_id, _now())
    if updated is None:
        raise await _lost_race(offer_id, OfferStatus.ACCEPTED)

    await get_audit_logger().log(
        AuditAction.OFFER_CONFIRM_PURCHASE, "sell_offer", str(offer_id), str(user.user_id),
    )
    return await _to_read(updated, user.user_id)


async def generate_purchase_contract(user: UserRead, offer_id: UUID) -> str:
    """Договор купли-продажи для продавца или покупателя."""
    offer = await _load(offer_id)
    if user.user_id not in (offer["seller_id"], offer["buyer_id"]):
        raise AuthorizationError("Only the seller or the buyer can view this contract")
    if offer["buyer_id"] is None:
        raise InvalidStateError("SellOffer", offer["status"], OfferStatus.ACCEPTED.value)

    seller = await user_repo.get_user_by_id(offer["seller_id"])
    buyer = await user_repo.get_user_by_id(offer["buyer_id"])
    if seller is None or buyer is None:
        raise NotFoundError("User", str(offer["seller_id"] if seller is None else offer["buyer_id"]))
    artwork = await offer_repo.get_artwork(offer["artwork_id"])

    text = contract_service.build_purchase_text(
        offer, artwork, user_row_to_read(seller), user_row_to_read(buyer)
    )
    url = await contract_service.store_contract(
        text, f"contracts/{user.user_id}/purchase_contract_{uuid4()}.pdf"
    )
    await offer_repo.set_purchase_contract(offer_id, url)
    return url


# ═══════════════════════════════════════════════════════════════════════════
# СПИСКИ
# ═══════════════════════════════════════════════════════════════════════════


async def get_offer(user: UserRead, offer_id: UUID) -> SellOfferRead:
    """Предложение видно продавцу, покупателю и всем, пока оно ACTIVE."""
    offer = await _load(offer_id)
    visible = (
        offer["status"] == OfferStatus.ACTIVE.value
        or user.user_id in (offer["seller_id"], offer["buyer_id"])
    )
    if not visible:
        raise AuthorizationError("You do not have access to this offer")
    return await _to_read(offer, user.user_id)


async def list_available(user: UserRead) -> list[SellOfferRead]:
    rows = await offer_repo.list_available(user.user_id)
    return [await _to_read(r, user.user_id) for r in rows]


async def list_sales(user: UserRead) -> list[SellOfferRead]:
    rows = await offer_repo.list_by_seller(user.user_id)
    return [await _to_read(r, user.user_id) for r in rows]


async def list_purchases(user: UserRead) -> list[SellOfferRead]:
    rows = await offer_repo.list_by_buyer(user.user_id)
    return [await _to_read(r, user.user_id) for r in rows]


async def list_bought(user: UserRead) -> list[SellOfferRead]:
    rows = await offer_repo.list_by_buyer(user.user_id, OfferStatus.ACCEPTED.value)
    return [await _to_read(r, user.user_id) for r in rows]
