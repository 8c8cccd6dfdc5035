"""
═══════════════════════════════════════════════════════════════════════════════
ShopEMX — Главная точка входа сервиса (Application Entry Point)
═══════════════════════════════════════════════════════════════════════════════

Фабрика приложения (Application Factory Pattern): lifespan с пулом
PostgreSQL, миграциями и NATS, роутеры ``/api/*`` и единый обработчик
доменных ошибок.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from shopemx import __version__, events, memory_store
from shopemx.config import get_settings
from shopemx.database import close_pool, get_pool
from shopemx.db.migrate import apply_migrations
from shopemx.exceptions import ShopError

# ── API роутеры ──────────────────────────────────────────────────────────
from shopemx.api.admin import router as admin_router
from shopemx.api.auth import router as auth_router
from shopemx.api.documents import router as documents_router
from shopemx.api.health import router as health_router
from shopemx.api.offers import buy_router, sell_router, transactions_router
from shopemx.api.profile import router as profile_router

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

STATUS_MAP = {
    "SHOP_AUTH_ERROR": 401,
    "SHOP_AUTHZ_ERROR": 403,
    "SHOP_NOT_FOUND": 404,
    "SHOP_VALIDATION_ERROR": 400,
    "SHOP_INVALID_CODE": 400,
    "SHOP_CONFLICT": 409,
    "SHOP_INVALID_STATE": 409,
    "SHOP_RATE_LIMITED": 429,
    "SHOP_EXTERNAL_ERROR": 500,
}


# ═══════════════════════════════════════════════════════════════════════════════
# Lifespan
# ═══════════════════════════════════════════════════════════════════════════════

async def _open_database() -> bool:
    """
    Пул PostgreSQL и миграции. Без БД (или когда memory store уже
    активирован, например в тестах) сервис работает на памяти.
    """
    if memory_store.is_active():
        logger.info("Memory store active, PostgreSQL skipped")
        return False
    try:
        pool = await get_pool()
    except Exception as exc:
        logger.warning("PostgreSQL unavailable, falling back to memory store: %s", exc)
        memory_store.activate_memory_store()
        return False
    try:
        await apply_migrations(pool)
    except Exception:
        logger.exception("Migrations failed; continuing with the existing schema")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("ShopEMX %s starting (env=%s)", __version__, settings.app_env)

    using_db = await _open_database()
    await events.connect()

    yield

    await events.disconnect()
    if using_db:
        await close_pool()
    logger.info("ShopEMX stopped")


# ═══════════════════════════════════════════════════════════════════════════════
# Фабрика приложения
# ═══════════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Создаёт и конфигурирует FastAPI-приложение ShopEMX."""
    settings = get_settings()
    public_docs = not settings.is_production

    app = FastAPI(
        redirect_slashes=False,
        title="ShopEMX",
        description=(
            "Marketplace for intellectual-property rights: two-factor login, "
            "admin-reviewed identity verification, sell offers and contracts."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if public_docs else None,
        redoc_url="/redoc" if public_docs else None,
        openapi_url="/api/openapi.json" if public_docs else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    )

    api_router = APIRouter(prefix="/api")
    for router in (
        auth_router, profile_router, documents_router,
        sell_router, buy_router, transactions_router,
        admin_router, health_router,
    ):
        api_router.include_router(router)
    app.include_router(api_router)

    # ── Обработчики ошибок ───────────────────────────────────────────────
    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
        """Маппинг доменных кодов на HTTP-статусы."""
        content: dict = {"message": exc.message, "code": exc.code}
        if exc.field:
            content["field"] = exc.field
        if exc.errors:
            content["errors"] = exc.errors
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(
            status_code=STATUS_MAP.get(exc.code, 500),
            content=jsonable_encoder(content),
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"message": "Validation error", "code": "SHOP_VALIDATION_ERROR", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    @app.get("/")
    async def root():
        return {
            "name": "ShopEMX",
            "version": __version__,
            "docs": "/docs",
            "api": {
                "health": "/api/health",
                "login": "/api/auth/login",
                "offers": "/api/buy/offers",
            },
        }

    return app


app = create_app()


def main() -> None:
    """Запускает сервис через Uvicorn."""
    settings = get_settings()
    logger.info("Serving ShopEMX on %s:%s", settings.api_host, settings.api_port)
    uvicorn.run(
        "shopemx.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
