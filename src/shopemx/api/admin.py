"""
shopemx/api/admin.py — Панель администратора: пользователи и KYC-заявки.

Каждый эндпоинт требует роль ADMIN (иначе 403).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from shopemx.models.enums import RequestStatus, UserRole
from shopemx.models.user import UserRead
from shopemx.models.verification import RejectRequest, VerificationRequestRead
from shopemx.services import admin_service
from shopemx.services.rbac import require_role

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_role(UserRole.ADMIN)


@router.get("/users", response_model=list[UserRead], summary="Все пользователи")
async def list_users(admin: UserRead = Depends(require_admin)):
    return await admin_service.list_users()


@router.get("/users/{user_id}/document", summary="Документ пользователя")
async def user_document(user_id: UUID, admin: UserRead = Depends(require_admin)):
    return {"url": await admin_service.get_user_document(user_id)}


@router.get(
    "/verification-requests",
    response_model=list[VerificationRequestRead],
    summary="KYC-заявки",
)
async def verification_requests(
    status: RequestStatus | None = Query(None),
    include_all: bool = Query(False, alias="all"),
    admin: UserRead = Depends(require_admin),
):
    """По умолчанию только PENDING; ``?all=true`` или ``?status=`` меняют выборку."""
    if include_all or status is not None:
        return await admin_service.list_requests(status)
    return await admin_service.list_pending()


@router.post(
    "/verification-requests/{request_id}/approve",
    response_model=VerificationRequestRead,
    summary="Одобрить заявку",
)
async def approve(request_id: UUID, admin: UserRead = Depends(require_admin)):
    return await admin_service.approve(request_id, admin.user_id)


@router.post(
    "/verification-requests/{request_id}/reject",
    response_model=VerificationRequestRead,
    summary="Отклонить заявку",
)
async def reject(
    request_id: UUID,
    body: RejectRequest,
    admin: UserRead = Depends(require_admin),
):
    return await admin_service.reject(request_id, admin.user_id, body.reason)
