"""
shopemx/services/auth_service.py — Сервис аутентификации.

Вход выполняется в два шага:
    1. телефон + пароль → сессия (JWT в cookie), ``is_verified = false``,
       на SMS и email уходят коды;
    2. оба кода → ``is_verified = true``, запись данных входа.

Флаг ``is_verified`` сбрасывается при каждом входе и выходе, поэтому
двухфакторная проверка проходит заново в каждой сессии.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from shopemx.adapters import mail_client
from shopemx.config import get_settings
from shopemx.db.repositories import user_repo
from shopemx.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidCodeError,
    NotFoundError,
    ValidationError,
)
from shopemx.models.enums import VerificationType
from shopemx.models.user import RegisterRequest, UserRead, user_row_to_read
from shopemx.services import verification_service
from shopemx.services.audit_logger import AuditAction, get_audit_logger

logger = logging.getLogger(__name__)

MOSCOW_TZ = timezone(timedelta(hours=3))


# ═══════════════════════════════════════════════════════════════════════════
# РАБОТА С ПАРОЛЯМИ
# ═══════════════════════════════════════════════════════════════════════════


def hash_password(password: str) -> str:
    """Хеширует пароль с помощью bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Сравнивает открытый пароль с хешем из БД."""
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


# ═══════════════════════════════════════════════════════════════════════════
# СЕССИОННЫЙ ТОКЕН
# ═══════════════════════════════════════════════════════════════════════════


def create_session_token(user_id: UUID) -> str:
    """Создаёт подписанный JWT сессии (срок жизни ``session_expire_days``)."""
    settings = get_settings()
    exp = datetime.now(timezone.utc) + timedelta(days=settings.session_expire_days)
    payload = {"sub": str(user_id), "exp": exp, "type": "session"}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str) -> dict:
    """Проверяет подпись и срок действия JWT сессии."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthenticationError(f"Invalid session token: {exc}") from exc
    if payload.get("type") != "session" or not payload.get("sub"):
        raise AuthenticationError("Invalid session token")
    return payload


# ═══════════════════════════════════════════════════════════════════════════
# РЕГИСТРАЦИЯ И ВХОД
# ═══════════════════════════════════════════════════════════════════════════


async def check_phone(phone: str) -> None:
    """Проверяет, что пользователь с таким телефоном существует."""
    if await user_repo.get_user_by_phone(phone) is None:
        raise NotFoundError("User", phone)


async def register(data: RegisterRequest, ip: str, user_agent: str) -> UserRead:
    """
    Регистрирует пользователя и отправляет оба кода подтверждения.

    Уведомление о входе на email отправляется без гарантии доставки.
    """
    if await user_repo.get_user_by_phone(data.phone):
        raise ConflictError("User with this phone already exists", field="phone")
    if await user_repo.get_user_by_email(data.email):
        raise ConflictError("User with this email already exists", field="email")

    row = await user_repo.create_user(
        phone=data.phone,
        email=data.email,
        first_name=data.first_name,
        last_name=data.last_name,
        middle_name=data.middle_name,
        password_hash=hash_password(data.password),
    )
    user = user_row_to_read(row)
    await verification_service.issue_and_send_pair(user)
    await get_audit_logger().log(
        AuditAction.USER_REGISTER, "user", str(user.user_id), str(user.user_id),
    )

    try:
        from shopemx.events import emit_user_registered
        await emit_user_registered(str(user.user_id), user.phone, user.email)
    except Exception as exc:
        logger.warning("Failed to emit user.registered event: %s", exc)

    await _notify_login(user, ip, user_agent)
    logger.info("Registered user %s", user.user_id)
    return user


async def login(phone: str, password: str) -> UserRead:
    """Первый шаг входа: пароль. Сбрасывает верификацию и отправляет коды."""
    row = await user_repo.get_user_by_phone(phone)
    if row is None:
        raise NotFoundError("User", phone)
    if not verify_password(password, row["password_hash"]):
        raise AuthenticationError("Invalid password")

    await user_repo.set_verified(row["user_id"], False)
    user = user_row_to_read({**row, "is_verified": False})
    await verification_service.issue_and_send_pair(user)
    await get_audit_logger().log(
        AuditAction.USER_LOGIN, "user", str(user.user_id), str(user.user_id),
    )
    return user


async def complete_two_factor(
    user: UserRead,
    sms_code: str,
    email_code: str,
    ip: str,
    user_agent: str,
) -> None:
    """Второй шаг входа: проверка кодов из SMS и email."""
    sms_ok, email_ok = await asyncio.gather(
        verification_service.verify(user.user_id, sms_code, VerificationType.SMS),
        verification_service.verify(user.user_id, email_code, VerificationType.EMAIL),
    )
    if not sms_ok:
        raise InvalidCodeError("Invalid SMS code", field="smsCode")
    if not email_ok:
        raise InvalidCodeError("Invalid email code", field="emailCode")

    await user_repo.record_login(user.user_id, ip, user_agent)
    await get_audit_logger().log(
        AuditAction.USER_VERIFY, "user", str(user.user_id), str(user.user_id),
        details={"ip": ip},
    )

    await _notify_login(user, ip, user_agent)


async def _notify_login(user: UserRead, ip: str, user_agent: str) -> None:
    """Письмо о входе (время по Москве). Ошибка доставки не прерывает вход."""
    moment = datetime.now(MOSCOW_TZ).strftime("%d.%m.%Y %H:%M:%S")
    try:
        sent = await mail_client.send_login_notification(
            user.email, user.first_name, user.last_name, ip, user_agent, moment,
        )
    except Exception as exc:
        logger.warning("Login notification for user %s failed: %s", user.user_id, exc)
        return
    if not sent:
        logger.warning("Login notification for user %s was not delivered", user.user_id)


async def verify_code(user: UserRead, code: str, type_: VerificationType) -> None:
    """Проверка одиночного кода (SMS или email)."""
    if not await verification_service.verify(user.user_id, code, type_):
        raise InvalidCodeError("Invalid or expired code", field="code")


async def logout(user_id: UUID) -> None:
    """Выход: сбрасывает флаг верификации."""
    await user_repo.set_verified(user_id, False)
    await get_audit_logger().log(AuditAction.USER_LOGOUT, "user", str(user_id), str(user_id))


async def confirm_password(user_id: UUID, password: str) -> None:
    """Повторная проверка пароля для чувствительных действий."""
    row = await user_repo.get_user_by_id(user_id)
    if row is None:
        raise NotFoundError("User", str(user_id))
    if not verify_password(password, row["password_hash"]):
        raise ValidationError("Invalid password", field="password")


async def get_user(user_id: UUID) -> UserRead:
    row = await user_repo.get_user_by_id(user_id)
    if row is None:
        raise NotFoundError("User", str(user_id))
    return user_row_to_read(row)
