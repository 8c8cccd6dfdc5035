"""
shopemx/db/repositories/code_repo.py — Одноразовые коды подтверждения (SMS / email).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from shopemx.database import get_connection


async def create_code(user_id: UUID, type_: str, code: str, expires_at: datetime) -> dict:
    """Сохранить новый код в статусе PENDING."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO verification_codes (user_id, type, code, expires_at)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            user_id, type_, code, expires_at,
        )
        return dict(row) if row else {}


async def get_code(code_id: UUID) -> dict | None:
    async with get_connection() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM verification_codes WHERE code_id = $1", code_id
        )
        return dict(row) if row else None


async def get_latest_code(user_id: UUID, type_: str) -> dict | None:
    """Последний выданный код заданного типа."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            SELECT * FROM verification_codes
            WHERE user_id = $1 AND type = $2
            ORDER BY created_at DESC
            LIMIT 1
            """,
            user_id, type_,
        )
        return dict(row) if row else None


async def consume_code(user_id: UUID, code: str, type_: str, now: datetime) -> dict | None:
    """
    Погасить действующий код: PENDING → VERIFIED одним условным UPDATE.

    Возвращает погашенную строку или ``None``, если подходящего кода нет
    (неверный, просроченный, другого типа или уже использованный).
    """
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE verification_codes SET status = 'VERIFIED'
            WHERE code_id = (
                SELECT code_id FROM verification_codes
                WHERE user_id = $1 AND code = $2 AND type = $3
                  AND status = 'PENDING' AND expires_at > $4
                ORDER BY created_at DESC
                LIMIT 1
                FOR UPDATE SKIP LOCKED
            )
            AND status = 'PENDING'
            RETURNING *
            """,
            user_id, code, type_, now,
        )
        return dict(row) if row else None


async def mark_sent(code_id: UUID, sent_at: datetime) -> None:
    """Зафиксировать успешную отправку: last_sent_at и счётчик попыток."""
    async with get_connection() as conn:
        await conn.execute(
            """
            UPDATE verification_codes
            SET last_sent_at = $2, send_attempts = send_attempts + 1
            WHERE code_id = $1
            """,
            code_id, sent_at,
        )
