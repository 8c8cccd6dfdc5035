"""
shopemx/services/rbac.py — Проверка ролей (USER < ADMIN).
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Depends, HTTPException, status

from shopemx.models.enums import UserRole
from shopemx.models.user import UserRead

logger = logging.getLogger(__name__)

_RANK = {UserRole.USER: 0, UserRole.ADMIN: 1}


def has_role(user: UserRead, required: UserRole) -> bool:
    return _RANK[UserRole(user.role or UserRole.USER)] >= _RANK[required]


def require_role(required: UserRole) -> Callable[..., Awaitable[UserRead]]:
    """Зависимость FastAPI: 403, если роль пользователя ниже ``required``."""
    from shopemx.dependencies import get_current_user

    async def _guard(user: UserRead = Depends(get_current_user)) -> UserRead:
        if has_role(user, required):
            return user
        logger.warning("Access denied: user %s lacks role %s", user.user_id, required.value)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{required.value}' required",
        )

    return _guard
