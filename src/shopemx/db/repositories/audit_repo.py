"""
shopemx/db/repositories/audit_repo.py — Запись аудит-событий в таблицу audit_log.
"""

from __future__ import annotations

from typing import Any

from shopemx.database import get_connection


async def insert_audit_record(record: dict[str, Any]) -> None:
    """``details`` уходит в колонку jsonb через кодек соединения."""
    async with get_connection() as conn:
        await conn.execute(
            """
            INSERT INTO audit_log (action, entity_type, entity_id, user_id, details)
            VALUES ($1, $2, $3, $4, $5)
            """,
            record["action"],
            record["entity_type"],
            record["entity_id"],
            record["user_id"],
            record["details"],
        )
