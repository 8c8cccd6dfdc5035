"""
shopemx/services/admin_service.py — Проверка KYC-заявок администратором.

Одобрение и отклонение выполняются условным обновлением из статуса
PENDING; если параллельный запрос уже обработал заявку, второй получает
``InvalidStateError``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from shopemx.db.repositories import kyc_repo, user_repo
from shopemx.exceptions import InvalidStateError, NotFoundError, ValidationError
from shopemx.models.enums import RequestStatus
from shopemx.models.user import UserRead, user_row_to_read
from shopemx.models.verification import VerificationRequestRead
from shopemx.services import profile_service
from shopemx.services.audit_logger import AuditAction, get_audit_logger

logger = logging.getLogger(__name__)

MIN_REASON_LENGTH = 5


async def _with_user(row: dict) -> VerificationRequestRead:
    user = await user_repo.get_user_by_id(row["user_id"])
    return VerificationRequestRead(**row, user=user_row_to_read(user) if user else None)


async def _load_pending(request_id: UUID) -> dict:
    row = await kyc_repo.get_request(request_id)
    if row is None:
        raise NotFoundError("VerificationRequest", str(request_id))
    if row["status"] != RequestStatus.PENDING.value:
        raise InvalidStateError("VerificationRequest", row["status"], RequestStatus.PENDING.value)
    return row


async def _lost_race(request_id: UUID) -> InvalidStateError:
    current = await kyc_repo.get_request(request_id)
    status = current["status"] if current else "UNKNOWN"
    return InvalidStateError("VerificationRequest", status, RequestStatus.PENDING.value)


# ═══════════════════════════════════════════════════════════════════════════
# ПОЛЬЗОВАТЕЛИ
# ═══════════════════════════════════════════════════════════════════════════


async def list_users() -> list[UserRead]:
    rows = await user_repo.list_users()
    return [user_row_to_read(r) for r in rows]


async def get_user_document(user_id: UUID) -> str:
    """Ссылка на документ пользователя (404, если пользователя или документа нет)."""
    row = await user_repo.get_user_by_id(user_id)
    if row is None:
        raise NotFoundError("User", str(user_id))
    url = profile_service.document_url_for(user_row_to_read(row))
    if not url:
        raise NotFoundError("Document", str(user_id))
    return url


# ═══════════════════════════════════════════════════════════════════════════
# ЗАЯВКИ
# ═══════════════════════════════════════════════════════════════════════════


async def list_pending() -> list[VerificationRequestRead]:
    """Заявки PENDING (сначала новые) с данными пользователя."""
    return await list_requests(RequestStatus.PENDING)


async def list_requests(status: RequestStatus | None = None) -> list[VerificationRequestRead]:
    rows = await kyc_repo.list_requests(status.value if status else None)
    return [await _with_user(r) for r in rows]


async def approve(request_id: UUID, admin_id: UUID) -> VerificationRequestRead:
    """PENDING → APPROVED; пользователь становится верифицированным."""
    await _load_pending(request_id)
    row = await kyc_repo.approve_request(request_id, admin_id, datetime.now(timezone.utc))
    if row is None:
        raise await _lost_race(request_id)

    await get_audit_logger().log(
        AuditAction.KYC_APPROVE, "verification_request", str(request_id), str(admin_id),
        details={"user_id": str(row["user_id"])},
    )
    try:
        from shopemx.events import emit_kyc_approved
        await emit_kyc_approved(str(request_id), str(row["user_id"]), str(admin_id))
    except Exception as exc:
        logger.warning("Failed to emit kyc.approved event: %s", exc)

    logger.info("KYC request %s approved by %s", request_id, admin_id)
    return await _with_user(row)


async def reject(request_id: UUID, admin_id: UUID, reason: str) -> VerificationRequestRead:
    """PENDING → REJECTED с причиной (не короче 5 символов)."""
    await _load_pending(request_id)
    reason = (reason or "").strip()
    if len(reason) < MIN_REASON_LENGTH:
        raise ValidationError(
            f"Rejection reason must be at least {MIN_REASON_LENGTH} characters", field="reason"
        )

    row = await kyc_repo.reject_request(request_id, admin_id, reason, datetime.now(timezone.utc))
    if row is None:
        raise await _lost_race(request_id)

    await get_audit_logger().log(
        AuditAction.KYC_REJECT, "verification_request", str(request_id), str(admin_id),
        details={"user_id": str(row["user_id"]), "reason": reason},
    )
    logger.info("KYC request %s rejected by %s", request_id, admin_id)
    return await _with_user(row)
