"""
shopemx/db/repositories/user_repo.py — Репозиторий пользователей.

Все функции возвращают строки как ``dict`` (или ``None``), чтобы
in-memory реализация из ``shopemx.memory_store`` была взаимозаменяемой.
"""

from __future__ import annotations

from uuid import UUID

from shopemx.database import get_connection

PROFILE_COLUMNS = (
    "first_name", "last_name", "middle_name", "email", "phone", "birth_date",
    "passport_series", "passport_number", "passport_code",
    "passport_issue_date", "passport_issued_by",
    "use_alternative_document", "alternative_document",
)

BANK_COLUMNS = ("bank_name", "bank_bik", "bank_account", "bank_cor_account")


async def create_user(
    phone: str,
    email: str,
    first_name: str,
    last_name: str,
    middle_name: str | None,
    password_hash: str,
    role: str = "USER",
) -> dict:
    """Создать нового пользователя."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO users (phone, email, first_name, last_name, middle_name, password_hash, role)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            phone, email, first_name, last_name, middle_name, password_hash, role,
        )
        return dict(row) if row else {}


async def get_user_by_id(user_id: UUID) -> dict | None:
    """Найти пользователя по UUID."""
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM users WHERE user_id = $1", user_id)
        return dict(row) if row else None


async def get_user_by_phone(phone: str) -> dict | None:
    """Найти пользователя по нормализованному номеру телефона."""
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM users WHERE phone = $1", phone)
        return dict(row) if row else None


async def get_user_by_email(email: str) -> dict | None:
    """Найти пользователя по email."""
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM users WHERE email = $1", email)
        return dict(row) if row else None


async def list_users() -> list[dict]:
    """Все пользователи, сначала новые."""
    async with get_connection() as conn:
        rows = await conn.fetch("SELECT * FROM users ORDER BY created_at DESC")
        return [dict(r) for r in rows]


async def set_verified(user_id: UUID, is_verified: bool) -> None:
    """Установить или сбросить флаг верификации."""
    async with get_connection() as conn:
        await conn.execute(
            "UPDATE users SET is_verified = $1, updated_at = NOW() WHERE user_id = $2",
            is_verified, user_id,
        )


async def record_login(user_id: UUID, ip: str, user_agent: str) -> None:
    """Отметить успешное прохождение 2FA: флаг верификации и данные входа."""
    async with get_connection() as conn:
        await conn.execute(
            """
            UPDATE users
            SET is_verified = TRUE, last_login_ip = $2, last_login_user_agent = $3,
                last_login_attempt = NOW(), updated_at = NOW()
            WHERE user_id = $1
            """,
            user_id, ip, user_agent,
        )


async def _update_columns(user_id: UUID, fields: dict, allowed: tuple[str, ...]) -> dict | None:
    columns = [c for c in allowed if c in fields]
    if not columns:
        return await get_user_by_id(user_id)
    assignments = ", ".join(f"{c} = ${i}" for i, c in enumerate(columns, start=2))
    async with get_connection() as conn:
        row = await conn.fetchrow(
            f"UPDATE users SET {assignments}, updated_at = NOW() WHERE user_id = $1 RETURNING *",
            user_id, *[fields[c] for c in columns],
        )
        return dict(row) if row else None


async def update_profile(user_id: UUID, fields: dict) -> dict | None:
    """Обновить персональные и паспортные данные."""
    return await _update_columns(user_id, fields, PROFILE_COLUMNS)


async def update_bank_details(user_id: UUID, fields: dict) -> dict | None:
    """Обновить банковские реквизиты."""
    return await _update_columns(user_id, fields, BANK_COLUMNS)


async def set_document_url(user_id: UUID, url: str | None) -> None:
    """Сохранить (или очистить) ссылку на фото документа."""
    async with get_connection() as conn:
        await conn.execute(
            "UPDATE users SET passport_document_url = $1, updated_at = NOW() WHERE user_id = $2",
            url, user_id,
        )
