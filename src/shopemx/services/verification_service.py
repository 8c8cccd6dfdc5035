"""
shopemx/services/verification_service.py — Одноразовые коды подтверждения.

Жизненный цикл кода:
    issue()   → PENDING, expires_at = now + TTL, last_sent_at = now, send_attempts = 0
    dispatch() → SMS или email; при успехе send_attempts += 1, last_sent_at = now
    verify()  → PENDING → VERIFIED (одноразово), только пока expires_at > now

Повторная отправка запрещена, пока не истёк интервал с last_sent_at
или если исчерпан лимит отправок.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

from shopemx.adapters import mail_client, sms_client
from shopemx.config import get_settings
from shopemx.db.repositories import code_repo
from shopemx.exceptions import ExternalServiceError, RateLimitedError
from shopemx.models.enums import VerificationType
from shopemx.models.user import UserBrief

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_code(length: int | None = None) -> str:
    """Случайный числовой код фиксированной длины (с ведущими нулями)."""
    length = length or get_settings().verification_code_length
    return f"{secrets.randbelow(10 ** length):0{length}d}"


async def issue(
    user_id: UUID,
    type_: VerificationType,
    expires_in_minutes: int | None = None,
) -> dict:
    """Создаёт новый код в статусе PENDING."""
    ttl = expires_in_minutes or get_settings().verification_code_ttl_minutes
    return await code_repo.create_code(
        user_id=user_id,
        type_=VerificationType(type_).value,
        code=generate_code(),
        expires_at=_now() + timedelta(minutes=ttl),
    )


def can_resend(code: dict, now: datetime | None = None) -> bool:
    """Лимит попыток и интервал с последней отправки."""
    settings = get_settings()
    if code["send_attempts"] >= settings.verification_max_send_attempts:
        return False
    now = now or _now()
    cooldown = timedelta(minutes=settings.verification_resend_cooldown_minutes)
    return now >= code["last_sent_at"] + cooldown


async def can_resend_code(code_id: UUID) -> bool:
    code = await code_repo.get_code(code_id)
    if code is None:
        return False
    return can_resend(code)


async def dispatch(code: dict, user: UserBrief) -> bool:
    """
    Отправляет код по каналу, соответствующему его типу.

    Ошибка доставки логируется и возвращается как ``False``,
    повторных попыток нет.
    """
    if code["type"] == VerificationType.EMAIL.value:
        sent = await mail_client.send_verification_code(
            user.email, code["code"], get_settings().verification_code_ttl_minutes
        )
    else:
        sent = await sms_client.send_sms(
            user.phone, f"Ваш код подтверждения ShopEMX: {code['code']}"
        )

    if not sent:
        logger.warning("Failed to deliver %s code to user %s", code["type"], user.user_id)
        return False
    await code_repo.mark_sent(code["code_id"], _now())
    return True


async def verify(user_id: UUID, submitted: str, type_: VerificationType) -> bool:
    """Погашает код, если он совпал, не истёк и ещё не использован."""
    row = await code_repo.consume_code(user_id, submitted, VerificationType(type_).value, _now())
    return row is not None


async def resend(user: UserBrief, type_: VerificationType) -> dict:
    """Повторная отправка кода заданного типа."""
    latest = await code_repo.get_latest_code(user.user_id, VerificationType(type_).value)
    if latest is not None and not can_resend(latest):
        raise RateLimitedError("Code was sent recently, please wait before requesting a new one")

    code = await issue(user.user_id, type_)
    if not await dispatch(code, user):
        raise ExternalServiceError(
            "sms" if type_ == VerificationType.SMS else "email",
            "Failed to send verification code",
        )
    return code


async def issue_and_send_pair(user: UserBrief) -> tuple[bool, bool]:
    """Выпускает коды EMAIL и SMS и отправляет оба параллельно."""
    email_code = await issue(user.user_id, VerificationType.EMAIL)
    sms_code = await issue(user.user_id, VerificationType.SMS)
    email_sent, sms_sent = await asyncio.gather(
        dispatch(email_code, user),
        dispatch(sms_code, user),
    )
    return email_sent, sms_sent
