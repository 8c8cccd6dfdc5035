"""
═══════════════════════════════════════════════════════════════════════════════
ShopEMX — Доступ к PostgreSQL (asyncpg)
═══════════════════════════════════════════════════════════════════════════════

Один пул на процесс. Каждое новое соединение получает кодек JSONB
(dict ↔ jsonb), поэтому репозитории передают ``details`` аудита как есть.

    get_connection()   — соединение из пула на время блока ``async with``
    get_transaction()  — то же, но внутри транзакции (многотабличные записи:
                         произведение + предложение, одобрение KYC + флаг
                         пользователя)
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from shopemx.config import get_settings

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=lambda value: json.dumps(value, default=str),
        decoder=json.loads,
        schema="pg_catalog",
    )


async def get_pool() -> asyncpg.Pool:
    """Пул соединений; создаётся при первом обращении."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.database_pool_min,
            max_size=settings.database_pool_max,
            command_timeout=60,
            init=_init_connection,
            server_settings={"application_name": "shopemx"},
        )
        logger.info(
            "PostgreSQL pool ready (min=%d, max=%d)",
            settings.database_pool_min, settings.database_pool_max,
        )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return
    await _pool.close()
    _pool = None
    logger.info("PostgreSQL pool closed")


@asynccontextmanager
async def get_connection() -> AsyncIterator[asyncpg.Connection]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncIterator[asyncpg.Connection]:
    """Соединение внутри транзакции: откат при любом исключении в блоке."""
    async with get_connection() as conn:
        async with conn.transaction():
            yield conn


async def check_connection() -> bool:
    """``SELECT 1`` для health check; ошибки логируются, не пробрасываются."""
    try:
        async with get_connection() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (OSError, asyncpg.PostgresError) as exc:
        logger.error("PostgreSQL health check failed: %s", exc)
        return False
