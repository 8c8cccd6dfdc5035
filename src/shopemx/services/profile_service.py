"""
shopemx/services/profile_service.py — Профиль, реквизиты, документ и KYC-заявка.

Правила, связывающие несколько полей:
    • паспорт заполняется целиком или не заполняется вовсе;
    • паспорт и альтернативный документ взаимоисключающие: при сохранении
      одного второй очищается;
    • банковские реквизиты: все четыре поля или ни одного.
"""

from __future__ import annotations

import logging
from pathlib import Path
from uuid import UUID, uuid4

from shopemx.adapters import file_storage
from shopemx.config import get_settings
from shopemx.db.repositories import kyc_repo, user_repo
from shopemx.exceptions import ConflictError, NotFoundError, ValidationError
from shopemx.models.user import BankDetailsUpdate, ProfileUpdate, UserRead, user_row_to_read
from shopemx.models.verification import VerificationRequestRead
from shopemx.services.audit_logger import AuditAction, get_audit_logger

logger = logging.getLogger(__name__)

PASSPORT_FIELDS = (
    ("passport_series", "passportSeries"),
    ("passport_number", "passportNumber"),
    ("passport_code", "passportCode"),
    ("passport_issue_date", "passportIssueDate"),
    ("passport_issued_by", "passportIssuedBy"),
)

BANK_FIELDS = (
    ("bank_name", "bankName"),
    ("bank_bik", "bankBik"),
    ("bank_account", "bankAccount"),
    ("bank_cor_account", "bankCorAccount"),
)


async def get_profile(user_id: UUID) -> UserRead:
    row = await user_repo.get_user_by_id(user_id)
    if row is None:
        raise NotFoundError("User", str(user_id))
    return user_row_to_read(row)


# ═══════════════════════════════════════════════════════════════════════════
# ПРОФИЛЬ И РЕКВИЗИТЫ
# ═══════════════════════════════════════════════════════════════════════════


async def update_profile(user_id: UUID, data: ProfileUpdate) -> UserRead:
    """Сохраняет ФИО, контакты и документ, удостоверяющий личность."""
    fields = data.model_dump()

    if data.use_alternative_document:
        if not data.alternative_document:
            raise ValidationError(
                "Alternative document is required", field="alternativeDocument"
            )
        for name, _ in PASSPORT_FIELDS:
            fields[name] = None
    else:
        filled = [fields[name] is not None for name, _ in PASSPORT_FIELDS]
        if any(filled) and not all(filled):
            missing = next(alias for (name, alias), ok in zip(PASSPORT_FIELDS, filled) if not ok)
            raise ValidationError(
                "All passport fields must be filled or none", field=missing
            )
        fields["alternative_document"] = None

    owner = await user_repo.get_user_by_phone(data.phone)
    if owner is not None and owner["user_id"] != user_id:
        raise ConflictError("Phone is already used by another user", field="phone")
    owner = await user_repo.get_user_by_email(data.email)
    if owner is not None and owner["user_id"] != user_id:
        raise ConflictError("Email is already used by another user", field="email")

    row = await user_repo.update_profile(user_id, fields)
    if row is None:
        raise NotFoundError("User", str(user_id))
    await get_audit_logger().log(AuditAction.PROFILE_UPDATE, "user", str(user_id), str(user_id))
    return user_row_to_read(row)


async def update_bank_details(user_id: UUID, data: BankDetailsUpdate) -> UserRead:
    """Сохраняет банковские реквизиты (все или ни одного)."""
    fields = data.model_dump()
    filled = [fields[name] is not None for name, _ in BANK_FIELDS]
    if any(filled) and not all(filled):
        missing = next(alias for (name, alias), ok in zip(BANK_FIELDS, filled) if not ok)
        raise ValidationError("All bank details must be filled or none", field=missing)

    row = await user_repo.update_bank_details(user_id, fields)
    if row is None:
        raise NotFoundError("User", str(user_id))
    await get_audit_logger().log(
        AuditAction.PROFILE_BANK_UPDATE, "user", str(user_id), str(user_id)
    )
    return user_row_to_read(row)


# ═══════════════════════════════════════════════════════════════════════════
# ДОКУМЕНТ, УДОСТОВЕРЯЮЩИЙ ЛИЧНОСТЬ
# ═══════════════════════════════════════════════════════════════════════════


def document_url_for(user: UserRead) -> str | None:
    """Сохранённая ссылка на документ, иначе файл из старого каталога загрузок."""
    return user.passport_document_url or file_storage.find_legacy_document(str(user.user_id))


async def upload_document(
    user: UserRead, filename: str, content_type: str, data: bytes
) -> str:
    """Загружает фото документа (только изображения, не больше лимита)."""
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed", field="file")
    if not data:
        raise ValidationError("File is empty", field="file")
    limit = get_settings().document_max_bytes
    if len(data) > limit:
        raise ValidationError(
            f"File is too large (max {limit // (1024 * 1024)} MB)", field="file"
        )

    ext = Path(filename or "").suffix.lstrip(".").lower() or "jpg"
    uid = str(user.user_id)
    url = file_storage.save(f"uploads/{uid}/{uid}_passport_{uuid4()}.{ext}", data)
    await user_repo.set_document_url(user.user_id, url)
    await get_audit_logger().log(
        AuditAction.DOCUMENT_UPLOAD, "user", uid, uid, details={"url": url}
    )
    return url


async def get_document(user: UserRead) -> str | None:
    return document_url_for(user)


async def delete_document(user: UserRead) -> None:
    """Удаляет загруженный документ и очищает ссылку на него."""
    url = user.passport_document_url
    if not url:
        raise NotFoundError("Document", str(user.user_id))
    if not file_storage.delete(file_storage.key_from_url(url)):
        logger.warning("Document file for user %s was already missing", user.user_id)
    await user_repo.set_document_url(user.user_id, None)
    await get_audit_logger().log(
        AuditAction.DOCUMENT_DELETE, "user", str(user.user_id), str(user.user_id)
    )


# ═══════════════════════════════════════════════════════════════════════════
# ЗАЯВКА НА ПОДТВЕРЖДЕНИЕ ЛИЧНОСТИ
# ═══════════════════════════════════════════════════════════════════════════


async def request_verification(user: UserRead) -> VerificationRequestRead:
    """
    Создаёт KYC-заявку.

    Требования: пользователь ещё не верифицирован, нет заявки в статусе
    PENDING и загружен документ, удостоверяющий личность.
    """
    if user.is_verified:
        raise ValidationError("User is already verified")
    if await kyc_repo.get_pending_for_user(user.user_id) is not None:
        raise ConflictError("Verification request is already pending")
    if not document_url_for(user):
        raise ValidationError("Identity document must be uploaded first", field="document")

    row = await kyc_repo.create_request(user.user_id)
    if row is None:
        raise ConflictError("Verification request is already pending")

    await get_audit_logger().log(
        AuditAction.KYC_REQUEST, "verification_request", str(row["request_id"]),
        str(user.user_id),
    )
    logger.info("KYC request %s created for user %s", row["request_id"], user.user_id)
    return VerificationRequestRead(**row)


async def list_my_requests(user: UserRead) -> list[VerificationRequestRead]:
    rows = await kyc_repo.list_for_user(user.user_id)
    return [VerificationRequestRead(**r) for r in rows]
