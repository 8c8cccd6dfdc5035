"""
shopemx/api/offers.py — Продажа, покупка и история сделок.

Все операции требуют пройденной верификации (``get_verified_user``).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from shopemx.dependencies import get_verified_user
from shopemx.models.offer import (
    ConfirmPurchaseRequest,
    PurchaseRequest,
    SellOfferForm,
    SellOfferRead,
)
from shopemx.models.user import UserRead
from shopemx.services import offer_service

sell_router = APIRouter(prefix="/sell", tags=["sell"])
buy_router = APIRouter(prefix="/buy", tags=["buy"])
transactions_router = APIRouter(prefix="/transactions", tags=["transactions"])


# ═══════════════════════════════════════════════════════════════════════════
# ПРОДАЖА
# ═══════════════════════════════════════════════════════════════════════════


@sell_router.post(
    "/create-offer",
    response_model=SellOfferRead,
    status_code=status.HTTP_201_CREATED,
    summary="Создать предложение о продаже прав",
)
async def create_offer(
    file: UploadFile | None = File(None),
    title: str | None = Form(None),
    description: str | None = Form(None),
    is_free: bool = Form(False, alias="isFree"),
    price: str | None = Form(None),
    contract_type: str | None = Form(None, alias="contractType"),
    is_exclusive_license: bool = Form(False, alias="isExclusiveLicense"),
    is_perpetual_license: bool = Form(False, alias="isPerpetualLicense"),
    license_duration: str | None = Form(None, alias="licenseDuration"),
    user: UserRead = Depends(get_verified_user),
):
    form = SellOfferForm(
        title=title,
        description=description,
        is_free=is_free,
        price=price,
        contract_type=contract_type,
        is_exclusive_license=is_exclusive_license,
        is_perpetual_license=is_perpetual_license,
        license_duration=license_duration,
    )
    data = await file.read() if file is not None else None
    return await offer_service.create_offer(
        user, form, file.filename if file is not None else None, data
    )


@sell_router.post("/confirm-offer/{offer_id}", summary="Подтвердить предложение (договор)")
async def confirm_offer(offer_id: UUID, user: UserRead = Depends(get_verified_user)):
    contract_url = await offer_service.confirm_offer(user, offer_id)
    return {"message": "Offer confirmed", "contractUrl": contract_url}


# ═══════════════════════════════════════════════════════════════════════════
# ПОКУПКА
# ═══════════════════════════════════════════════════════════════════════════


@buy_router.post("", response_model=SellOfferRead, summary="Купить предложение")
async def purchase(body: PurchaseRequest, user: UserRead = Depends(get_verified_user)):
    return await offer_service.purchase(user, body.sell_offer_id, body.buyer_id)


@buy_router.get(
    "/offers", response_model=list[SellOfferRead], summary="Доступные предложения"
)
async def available_offers(user: UserRead = Depends(get_verified_user)):
    return await offer_service.list_available(user)


@buy_router.get("/offers/{offer_id}", response_model=SellOfferRead, summary="Предложение")
async def get_offer(offer_id: UUID, user: UserRead = Depends(get_verified_user)):
    return await offer_service.get_offer(user, offer_id)


@buy_router.post(
    "/confirm-purchase/{offer_id}",
    response_model=SellOfferRead,
    summary="Подтвердить покупку кодом",
)
async def confirm_purchase(
    offer_id: UUID,
    body: ConfirmPurchaseRequest,
    user: UserRead = Depends(get_verified_user),
):
    return await offer_service.confirm_purchase(user, offer_id, body.confirmation_code)


@buy_router.get("/generate-contract/{offer_id}", summary="Договор купли-продажи")
async def generate_contract(offer_id: UUID, user: UserRead = Depends(get_verified_user)):
    contract_url = await offer_service.generate_purchase_contract(user, offer_id)
    return {"message": "Contract generated", "contractUrl": contract_url}


# ═══════════════════════════════════════════════════════════════════════════
# ИСТОРИЯ СДЕЛОК
# ═══════════════════════════════════════════════════════════════════════════


@transactions_router.get("/sales", response_model=list[SellOfferRead], summary="Мои продажи")
async def sales(user: UserRead = Depends(get_verified_user)):
    return await offer_service.list_sales(user)


@transactions_router.get(
    "/purchases", response_model=list[SellOfferRead], summary="Мои покупки"
)
async def purchases(user: UserRead = Depends(get_verified_user)):
    return await offer_service.list_purchases(user)


@transactions_router.get(
    "/bought", response_model=list[SellOfferRead], summary="Купленные права"
)
async def bought(user: UserRead = Depends(get_verified_user)):
    return await offer_service.list_bought(user)
