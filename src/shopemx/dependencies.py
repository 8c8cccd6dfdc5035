"""
═══════════════════════════════════════════════════════════════════════════════
ShopEMX — Зависимости FastAPI (Dependency Injection)
═══════════════════════════════════════════════════════════════════════════════

Сессия передаётся в HTTP-only cookie ``shopemx_auth``; для API-клиентов
поддерживается заголовок ``Authorization: Bearer <token>``.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from shopemx.config import get_settings
from shopemx.db.repositories import user_repo
from shopemx.exceptions import AuthenticationError
from shopemx.models.user import UserRead, user_row_to_read
from shopemx.services.auth_service import decode_session_token


def _extract_token(request: Request, authorization: str | None) -> str | None:
    token = request.cookies.get(get_settings().session_cookie_name)
    if token:
        return token
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return None


async def get_optional_user(
    request: Request,
    authorization: str | None = Header(None),
) -> UserRead | None:
    """Текущий пользователь или ``None``, если сессии нет или она невалидна."""
    token = _extract_token(request, authorization)
    if not token:
        return None
    try:
        payload = decode_session_token(token)
        user_id = UUID(payload["sub"])
    except (AuthenticationError, ValueError):
        return None
    row = await user_repo.get_user_by_id(user_id)
    return user_row_to_read(row) if row else None


async def get_current_user(user: UserRead | None = Depends(get_optional_user)) -> UserRead:
    """
    Аутентифицированный пользователь.

    Raises:
        HTTPException(401): токена нет, он невалиден/просрочен
            или пользователь не найден.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_verified_user(user: UserRead = Depends(get_current_user)) -> UserRead:
    """Пользователь, прошедший верификацию (``is_verified``), иначе 403."""
    if not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Verification required",
        )
    return user
