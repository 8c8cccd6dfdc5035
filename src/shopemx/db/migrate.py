"""
shopemx/db/migrate.py — Применение SQL-миграций при старте.

Файлы ``db/migrations/NNN_*.sql`` применяются по порядку имён, каждый в
своей транзакции. Применённые фиксируются в ``schema_migrations``.
Advisory lock не даёт двум репликам применять миграции одновременно.
"""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_LOCK_KEY = 0x53484F50  # "SHOP"


def migration_files(directory: Path = MIGRATIONS_DIR) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(directory.glob("*.sql"), key=lambda path: path.name)


async def apply_migrations(pool: asyncpg.Pool, directory: Path = MIGRATIONS_DIR) -> list[str]:
    """Применяет ещё не применённые миграции; возвращает их имена."""
    files = migration_files(directory)
    applied_now: list[str] = []
    async with pool.acquire() as conn:
        await conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            " name TEXT PRIMARY KEY,"
            " applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW())"
        )
        await conn.execute("SELECT pg_advisory_lock($1)", _LOCK_KEY)
        try:
            done = {r["name"] for r in await conn.fetch("SELECT name FROM schema_migrations")}
            for path in files:
                if path.name in done:
                    continue
                async with conn.transaction():
                    await conn.execute(path.read_text(encoding="utf-8"))
                    await conn.execute(
                        "INSERT INTO schema_migrations (name) VALUES ($1)", path.name,
                    )
                logger.info("Migration applied: %s", path.name)
                applied_now.append(path.name)
        finally:
            await conn.execute("SELECT pg_advisory_unlock($1)", _LOCK_KEY)
    logger.info("Schema up to date (%d files, %d new)", len(files), len(applied_now))
    return applied_now
