"""
shopemx/db/repositories/kyc_repo.py — Заявки на подтверждение личности (KYC).

Смена статуса заявки выполняется условным UPDATE по ожидаемому статусу
PENDING; ``None`` в ответе означает, что заявка уже обработана.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

import asyncpg

from shopemx.database import get_connection, get_transaction


async def create_request(user_id: UUID) -> dict | None:
    """
    Создать заявку PENDING.

    Возвращает ``None``, если у пользователя уже есть заявка PENDING
    (срабатывает частичный уникальный индекс).
    """
    async with get_connection() as conn:
        try:
            row = await conn.fetchrow(
                "INSERT INTO verification_requests (user_id) VALUES ($1) RETURNING *",
                user_id,
            )
        except asyncpg.UniqueViolationError:
            return None
        return dict(row) if row else None


async def get_request(request_id: UUID) -> dict | None:
    async with get_connection() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM verification_requests WHERE request_id = $1", request_id
        )
        return dict(row) if row else None


async def get_pending_for_user(user_id: UUID) -> dict | None:
    async with get_connection() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM verification_requests WHERE user_id = $1 AND status = 'PENDING'",
            user_id,
        )
        return dict(row) if row else None


async def list_requests(status: str | None = None) -> list[dict]:
    """Заявки (опционально по статусу), сначала новые."""
    async with get_connection() as conn:
        if status is None:
            rows = await conn.fetch(
                "SELECT * FROM verification_requests ORDER BY created_at DESC"
            )
        else:
            rows = await conn.fetch(
                "SELECT * FROM verification_requests WHERE status = $1 ORDER BY created_at DESC",
                status,
            )
        return [dict(r) for r in rows]


async def list_for_user(user_id: UUID) -> list[dict]:
    async with get_connection() as conn:
        rows = await conn.fetch(
            "SELECT * FROM verification_requests WHERE user_id = $1 ORDER BY created_at DESC",
            user_id,
        )
        return [dict(r) for r in rows]


async def approve_request(request_id: UUID, admin_id: UUID, reviewed_at: datetime) -> dict | None:
    """PENDING → APPROVED и ``users.is_verified = TRUE`` в одной транзакции."""
    async with get_transaction() as conn:
        row = await conn.fetchrow(
            """
            UPDATE verification_requests
            SET status = 'APPROVED', reviewed_at = $3, reviewed_by = $2
            WHERE request_id = $1 AND status = 'PENDING'
            RETURNING *
            """,
            request_id, admin_id, reviewed_at,
        )
        if row is None:
            return None
        await conn.execute(
            "UPDATE users SET is_verified = TRUE, updated_at = NOW() WHERE user_id = $1",
            row["user_id"],
        )
        return dict(row)


async def reject_request(
    request_id: UUID, admin_id: UUID, reason: str, reviewed_at: datetime
) -> dict | None:
    """PENDING → REJECTED с причиной."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE verification_requests
            SET status = 'REJECTED', reviewed_at = $4, reviewed_by = $2, rejection_reason = $3
            WHERE request_id = $1 AND status = 'PENDING'
            RETURNING *
            """,
            request_id, admin_id, reason, reviewed_at,
        )
        return dict(row) if row else None
