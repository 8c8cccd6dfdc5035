"""
shopemx/api/profile.py — Текущий пользователь, профиль, реквизиты и KYC-заявка.
"""

from fastapi import APIRouter, Depends, status

from shopemx.dependencies import get_current_user
from shopemx.models.user import BankDetailsUpdate, ProfileUpdate, UserRead
from shopemx.models.verification import VerificationRequestRead
from shopemx.services import profile_service

router = APIRouter(tags=["profile"])


@router.get("/user", response_model=UserRead, summary="Текущий пользователь")
async def current_user(user: UserRead = Depends(get_current_user)):
    return user


@router.get("/profile", response_model=UserRead, summary="Профиль")
async def get_profile(user: UserRead = Depends(get_current_user)):
    return await profile_service.get_profile(user.user_id)


@router.put("/profile", response_model=UserRead, summary="Обновить профиль")
async def update_profile(body: ProfileUpdate, user: UserRead = Depends(get_current_user)):
    return await profile_service.update_profile(user.user_id, body)


@router.put(
    "/profile/bank-details",
    response_model=UserRead,
    summary="Обновить банковские реквизиты",
)
async def update_bank_details(
    body: BankDetailsUpdate, user: UserRead = Depends(get_current_user)
):
    return await profile_service.update_bank_details(user.user_id, body)


@router.get(
    "/profile/verification-request",
    response_model=list[VerificationRequestRead],
    summary="Мои заявки на подтверждение личности",
)
async def my_verification_requests(user: UserRead = Depends(get_current_user)):
    return await profile_service.list_my_requests(user)


@router.post(
    "/profile/verification-request",
    response_model=VerificationRequestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Подать заявку на подтверждение личности",
)
async def request_verification(user: UserRead = Depends(get_current_user)):
    return await profile_service.request_verification(user)
