"""
shopemx/db/repositories/offer_repo.py — Произведения и предложения о продаже.

Переходы статуса предложения — условные UPDATE по ожидаемому статусу
(compare-and-swap). ``None`` в ответе означает, что предложение уже
ушло из ожидаемого статуса (параллельный запрос победил).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from shopemx.database import get_connection, get_transaction


async def create_artwork_with_offer(
    title: str,
    description: str,
    file_path: str,
    author_id: UUID,
    contract_type: str,
    license_type: str | None,
    is_exclusive: bool | None,
    is_perpetual: bool | None,
    license_duration: int | None,
    is_free: bool,
    price: Decimal | None,
) -> dict:
    """Создать произведение и предложение PENDING в одной транзакции."""
    async with get_transaction() as conn:
        artwork_id = await conn.fetchval(
            """
            INSERT INTO artworks (title, description, file_path, author_id)
            VALUES ($1, $2, $3, $4)
            RETURNING artwork_id
            """,
            title, description, file_path, author_id,
        )
        row = await conn.fetchrow(
            """
            INSERT INTO sell_offers (
                artwork_id, seller_id, status, contract_type, license_type,
                is_exclusive, is_perpetual, license_duration, is_free, price
            )
            VALUES ($1, $2, 'PENDING', $3, $4, $5, $6, $7, $8, $9)
            RETURNING *
            """,
            artwork_id, author_id, contract_type, license_type,
            is_exclusive, is_perpetual, license_duration, is_free, price,
        )
        return dict(row) if row else {}


async def get_artwork(artwork_id: UUID) -> dict | None:
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM artworks WHERE artwork_id = $1", artwork_id)
        return dict(row) if row else None


async def get_offer(offer_id: UUID) -> dict | None:
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM sell_offers WHERE offer_id = $1", offer_id)
        return dict(row) if row else None


async def list_by_seller(seller_id: UUID) -> list[dict]:
    async with get_connection() as conn:
        rows = await conn.fetch(
            "SELECT * FROM sell_offers WHERE seller_id = $1 ORDER BY updated_at DESC",
            seller_id,
        )
        return [dict(r) for r in rows]


async def list_by_buyer(buyer_id: UUID, status: str | None = None) -> list[dict]:
    async with get_connection() as conn:
        if status is None:
            rows = await conn.fetch(
                "SELECT * FROM sell_offers WHERE buyer_id = $1 ORDER BY updated_at DESC",
                buyer_id,
            )
        else:
            rows = await conn.fetch(
                """
                SELECT * FROM sell_offers WHERE buyer_id = $1 AND status = $2
                ORDER BY updated_at DESC
                """,
                buyer_id, status,
            )
        return [dict(r) for r in rows]


async def list_available(exclude_seller_id: UUID) -> list[dict]:
    """Активные, ещё не купленные предложения других продавцов."""
    async with get_connection() as conn:
        rows = await conn.fetch(
            """
            SELECT * FROM sell_offers
            WHERE status = 'ACTIVE' AND buyer_id IS NULL AND seller_id <> $1
            ORDER BY created_at DESC
            """,
            exclude_seller_id,
        )
        return [dict(r) for r in rows]


async def activate_offer(offer_id: UUID, contract_path: str) -> dict | None:
    """PENDING → ACTIVE с путём к договору."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE sell_offers
            SET status = 'ACTIVE', contract_path = $2, updated_at = NOW()
            WHERE offer_id = $1 AND status = 'PENDING'
            RETURNING *
            """,
            offer_id, contract_path,
        )
        return dict(row) if row else None


async def reserve_offer(
    offer_id: UUID, buyer_id: UUID, confirmation_code: str, confirmation_expires: datetime
) -> dict | None:
    """ACTIVE (без покупателя) → ACCEPTED с покупателем и кодом подтверждения."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE sell_offers
            SET status = 'ACCEPTED', buyer_id = $2, confirmation_code = $3,
                confirmation_expires = $4, updated_at = NOW()
            WHERE offer_id = $1 AND status = 'ACTIVE' AND buyer_id IS NULL
            RETURNING *
            """,
            offer_id, buyer_id, confirmation_code, confirmation_expires,
        )
        return dict(row) if row else None


async def confirm_purchase(offer_id: UUID, buyer_id: UUID, confirmed_at: datetime) -> dict | None:
    """Зафиксировать подтверждение покупки (статус остаётся ACCEPTED)."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE sell_offers
            SET purchase_confirmed_at = $3, updated_at = NOW()
            WHERE offer_id = $1 AND status = 'ACCEPTED' AND buyer_id = $2
              AND purchase_confirmed_at IS NULL
            RETURNING *
            """,
            offer_id, buyer_id, confirmed_at,
        )
        return dict(row) if row else None


async def set_purchase_contract(offer_id: UUID, path: str) -> dict | None:
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE sell_offers SET purchase_contract_path = $2, updated_at = NOW()
            WHERE offer_id = $1
            RETURNING *
            """,
            offer_id, path,
        )
        return dict(row) if row else None
