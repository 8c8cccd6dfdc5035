"""
shopemx/adapters/sms_client.py — Клиент SMS Aero.

В production сообщение уходит через HTTP API шлюза
(``GET {base_url}/sms/send`` с basic-auth email:api_key). В остальных
средах текст SMS только пишется в лог.
"""

from __future__ import annotations

import logging
import re

import httpx

from shopemx.config import get_settings

logger = logging.getLogger(__name__)

SMS_TIMEOUT_SECONDS = 10.0


def normalize_number(phone: str) -> str | None:
    """Номер для шлюза: только цифры, ``8XXXXXXXXXX`` → ``7XXXXXXXXXX``."""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11 and digits[0] in ("7", "8"):
        return "7" + digits[1:]
    if 11 <= len(digits) <= 15:
        return digits
    return None


async def send_sms(phone: str, message: str) -> bool:
    """Отправить SMS. Ошибки логируются, результат возвращается как bool."""
    number = normalize_number(phone)
    if number is None:
        logger.error("Invalid phone number format for SMS: %s", phone)
        return False

    settings = get_settings()
    if not settings.is_production:
        logger.info("[DEV] SMS to %s: %s", number, message)
        return True

    if not settings.sms_aero_email or not settings.sms_aero_api_key:
        logger.error("SMS Aero credentials are not configured")
        return False

    try:
        async with httpx.AsyncClient(timeout=SMS_TIMEOUT_SECONDS) as client:
            response = await client.get(
                f"{settings.sms_aero_base_url.rstrip('/')}/sms/send",
                params={"number": number, "text": message, "sign": settings.sms_aero_from},
                auth=(settings.sms_aero_email, settings.sms_aero_api_key),
            )
            response.raise_for_status()
            payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("SMS Aero request failed for %s: %s", number, exc)
        return False

    if not payload.get("success"):
        logger.warning("SMS Aero rejected message to %s: %s", number, payload.get("message"))
        return False
    return True
