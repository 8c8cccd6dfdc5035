"""
shopemx/models/offer.py — Произведения и предложения о продаже прав.

Форма создания предложения приходит multipart-запросом и собирается
в ``SellOfferForm`` как есть; её проверку выполняет ``offer_service``,
чтобы вернуть первое нарушенное правило с именем поля.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import field_serializer

from shopemx.models.common import ShopBase
from shopemx.models.enums import ContractType, LicenseType, OfferStatus
from shopemx.models.user import PartyRead


class SellOfferForm(ShopBase):
    """Сырые поля формы продажи (до валидации)."""
    title: str | None = None
    description: str | None = None
    is_free: bool = False
    price: str | None = None
    contract_type: str | None = None
    is_exclusive_license: bool = False
    is_perpetual_license: bool = False
    license_duration: str | None = None


class PurchaseRequest(ShopBase):
    sell_offer_id: UUID
    buyer_id: UUID


class ConfirmPurchaseRequest(ShopBase):
    confirmation_code: str


class ArtworkRead(ShopBase):
    artwork_id: UUID
    title: str
    description: str
    file_path: str
    author_id: UUID
    author: PartyRead | None = None
    created_at: datetime | None = None


class SellOfferRead(ShopBase):
    """Предложение о продаже. Код подтверждения виден только продавцу."""
    offer_id: UUID
    status: OfferStatus
    contract_type: ContractType
    license_type: LicenseType | None = None
    is_exclusive: bool | None = None
    is_perpetual: bool | None = None
    license_duration: int | None = None
    is_free: bool = False
    price: Decimal | None = None
    seller_id: UUID
    buyer_id: UUID | None = None
    confirmation_code: str | None = None
    confirmation_expires: datetime | None = None
    purchase_confirmed_at: datetime | None = None
    contract_path: str | None = None
    purchase_contract_path: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    artwork: ArtworkRead | None = None
    seller: PartyRead | None = None
    buyer: PartyRead | None = None

    @field_serializer("price")
    def _price_as_number(self, price: Decimal | None) -> float | None:
        return float(price) if price is not None else None
