"""
shopemx/api/health.py — Health check эндпоинт.

GET /api/health — проверяет доступность PostgreSQL (или сообщает,
что работает in-memory хранилище).
"""

from fastapi import APIRouter

from shopemx import memory_store
from shopemx.database import check_connection

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check сервиса")
async def health():
    if memory_store.is_active():
        return {"status": "healthy", "database": "memory", "service": "shopemx"}
    db_ok = await check_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "service": "shopemx",
    }
