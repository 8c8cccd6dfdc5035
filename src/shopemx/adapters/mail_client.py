"""
shopemx/adapters/mail_client.py — Отправка email через SMTP.

``smtplib`` блокирующий, поэтому отправка выполняется в рабочем потоке
(``asyncio.to_thread``). Без ``SMTP_HOST`` письмо только пишется в лог.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from shopemx.config import get_settings

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 15


def _send_blocking(to: str, subject: str, text: str, html: str | None) -> None:
    settings = get_settings()
    msg = MIMEMultipart("alternative")
    msg["From"] = f"{settings.smtp_sender_name} <{settings.smtp_user}>"
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(text, "plain", "utf-8"))
    if html:
        msg.attach(MIMEText(html, "html", "utf-8"))

    smtp_cls = smtplib.SMTP_SSL if settings.smtp_secure else smtplib.SMTP
    with smtp_cls(settings.smtp_host, settings.smtp_port, timeout=SMTP_TIMEOUT_SECONDS) as server:
        if not settings.smtp_secure:
            server.starttls()
        if settings.smtp_user:
            server.login(settings.smtp_user, settings.smtp_password)
        server.send_message(msg)


async def send_email(to: str, subject: str, text: str, html: str | None = None) -> bool:
    """Отправить письмо. Ошибки логируются, результат возвращается как bool."""
    if not get_settings().smtp_host:
        logger.info("[DEV] Email to %s: %s\n%s", to, subject, text)
        return True
    try:
        await asyncio.to_thread(_send_blocking, to, subject, text, html)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("SMTP delivery to %s failed: %s", to, exc)
        return False
    return True


# ═══════════════════════════════════════════════════════════════════════════
# Шаблоны писем
# ═══════════════════════════════════════════════════════════════════════════


async def send_verification_code(to: str, code: str, ttl_minutes: int) -> bool:
    text = f"Ваш код подтверждения: {code}. Он действителен в течение {ttl_minutes} минут."
    html = (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        "<h2>Код подтверждения для ShopEMX</h2>"
        "<p>Ваш код подтверждения:</p>"
        f"<div style=\"font-size: 24px; font-weight: bold; letter-spacing: 5px;\">{code}</div>"
        f"<p>Код действителен в течение {ttl_minutes} минут.</p>"
        "<p>Если вы не запрашивали этот код, проигнорируйте это сообщение.</p>"
        "</div>"
    )
    return await send_email(to, "Код подтверждения для ShopEMX", text, html)


async def send_login_notification(
    to: str, first_name: str, last_name: str, ip: str, user_agent: str, time: str
) -> bool:
    text = (
        f"Уважаемый {first_name} {last_name}, был выполнен вход в ваш аккаунт ShopEMX.\n\n"
        f"Время входа: {time}\n"
        f"IP-адрес: {ip}\n"
        f"Устройство: {user_agent}\n\n"
        "Если это были не вы, немедленно смените пароль и свяжитесь с поддержкой."
    )
    return await send_email(to, "Вход в аккаунт ShopEMX", text)
