"""
shopemx/services/audit_logger.py — Аудит-лог ShopEMX.

Каждое действие пишется в ``audit_log`` через ``audit_repo``. Если запись
не удалась, событие попадает в ограниченный буфер (самые старые
вытесняются) и дозаписывается ``flush_buffer()``. Копия уходит в NATS
темой ``shop.audit.<action>``.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from shopemx.db.repositories import audit_repo

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    USER_REGISTER = "user.register"
    USER_LOGIN = "user.login"
    USER_VERIFY = "user.verify"
    USER_LOGOUT = "user.logout"

    PROFILE_UPDATE = "profile.update"
    PROFILE_BANK_UPDATE = "profile.bank_update"
    DOCUMENT_UPLOAD = "document.upload"
    DOCUMENT_DELETE = "document.delete"

    KYC_REQUEST = "kyc.request"
    KYC_APPROVE = "kyc.approve"
    KYC_REJECT = "kyc.reject"

    OFFER_CREATE = "offer.create"
    OFFER_ACTIVATE = "offer.activate"
    OFFER_PURCHASE = "offer.purchase"
    OFFER_CONFIRM_PURCHASE = "offer.confirm_purchase"


class AuditLogger:
    """Запись аудита с буфером на случай недоступности БД."""

    def __init__(self, max_buffer_size: int = 10000) -> None:
        self._pending: deque[dict[str, Any]] = deque(maxlen=max_buffer_size)

    async def log(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        record = {
            "action": AuditAction(action).value,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "user_id": None if user_id is None else str(user_id),
            "details": dict(details or {}),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        if not await self._store(record):
            self._pending.append(record)

        from shopemx.events import publish
        await publish(f"audit.{record['action']}", record)

    async def _store(self, record: dict[str, Any]) -> bool:
        try:
            await audit_repo.insert_audit_record(record)
        except Exception as exc:
            logger.warning("Audit write failed for %s, buffered: %s", record["action"], exc)
            return False
        return True

    async def flush_buffer(self) -> int:
        """Дозаписывает буфер; возвращает число сохранённых записей."""
        attempts = len(self._pending)
        stored = 0
        for _ in range(attempts):
            record = self._pending.popleft()
            if await self._store(record):
                stored += 1
            else:
                self._pending.append(record)
        if stored:
            logger.info("Audit buffer flushed: %d stored, %d left", stored, len(self._pending))
        return stored

    @property
    def buffer_size(self) -> int:
        return len(self._pending)


_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger
