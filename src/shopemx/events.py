"""
shopemx/events.py — доменные события ShopEMX в NATS.

    shop.user.registered   регистрация
    shop.offer.activated   продавец подтвердил предложение, договор сформирован
    shop.offer.purchased   покупатель выбрал предложение
    shop.kyc.approved      администратор подтвердил личность
    shop.audit.<action>    копия каждой аудит-записи

Каждое сообщение — JSON-конверт ``{"event", "occurred_at", ...поля}``.
При ``NATS_ENABLED=false`` или недоступном сервере событие только
логируется; ``publish`` никогда не пробрасывает ошибки.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import nats
from nats.aio.client import Client as NATSClient
from nats.errors import Error as NATSError

from shopemx.config import get_settings

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = "shop"

_client: NATSClient | None = None


async def connect() -> NATSClient | None:
    global _client
    settings = get_settings()
    if not settings.nats_enabled:
        return None
    if _client is not None and _client.is_connected:
        return _client
    try:
        _client = await nats.connect(
            settings.nats_url, name="shopemx", max_reconnect_attempts=3,
        )
    except (OSError, NATSError) as exc:
        logger.warning("NATS unreachable at %s, events disabled: %s", settings.nats_url, exc)
        _client = None
        return None
    logger.info("NATS publisher connected: %s", settings.nats_url)
    return _client


async def disconnect() -> None:
    global _client
    client, _client = _client, None
    if client is not None and client.is_connected:
        await client.drain()
        logger.info("NATS publisher drained")


def _envelope(event: str, fields: dict[str, Any]) -> bytes:
    body = {"event": event, "occurred_at": datetime.now(timezone.utc).isoformat()}
    body.update(fields)
    return json.dumps(body, default=str, ensure_ascii=False).encode("utf-8")


async def publish(event: str, fields: dict[str, Any]) -> bool:
    """
    Публикует ``fields`` в тему ``shop.<event>``.

    Returns:
        True, если сообщение передано клиенту NATS.
    """
    subject = f"{SUBJECT_PREFIX}.{event}"
    client = await connect()
    if client is None:
        logger.debug("Event %s skipped: publisher offline", subject)
        return False
    try:
        await client.publish(subject, _envelope(event, fields))
    except (OSError, NATSError) as exc:
        logger.warning("NATS publish to %s failed: %s", subject, exc)
        return False
    logger.debug("Event published: %s", subject)
    return True


# ── События домена ───────────────────────────────────────────────────────

async def emit_user_registered(user_id: str, phone: str, email: str) -> None:
    await publish("user.registered", {"user_id": user_id, "phone": phone, "email": email})


async def emit_offer_activated(offer_id: str, seller_id: str, contract_url: str) -> None:
    await publish("offer.activated", {
        "offer_id": offer_id, "seller_id": seller_id, "contract_url": contract_url,
    })


async def emit_offer_purchased(offer_id: str, seller_id: str, buyer_id: str) -> None:
    await publish("offer.purchased", {
        "offer_id": offer_id, "seller_id": seller_id, "buyer_id": buyer_id,
    })


async def emit_kyc_approved(request_id: str, user_id: str, admin_id: str) -> None:
    await publish("kyc.approved", {
        "request_id": request_id, "user_id": user_id, "admin_id": admin_id,
    })
