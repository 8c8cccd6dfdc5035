"""
shopemx/services/contract_service.py — Тексты договоров и их выпуск в PDF.

Два шаблона:
    • договор передачи прав (при подтверждении предложения продавцом):
      отчуждение исключительного права или лицензионный договор,
      реквизиты правообладателя, место покупателя не заполнено;
    • договор купли-продажи (после покупки): продавец и покупатель.

Построение текста — чистые функции; ``store_contract`` рендерит PDF
в рабочем потоке и сохраняет его в файловое хранилище.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from decimal import Decimal

from shopemx.adapters import file_storage
from shopemx.adapters.contract_pdf import render_contract_pdf
from shopemx.exceptions import ExternalServiceError
from shopemx.models.enums import ContractType, LicenseType
from shopemx.models.user import UserRead

logger = logging.getLogger(__name__)

BANNER = "=" * 52
BLANK = "_" * 27


def _fmt_date(value: date | None) -> str:
    return value.strftime("%d.%m.%Y") if value else ""


def _full_name(person: UserRead) -> str:
    return " ".join(p for p in (person.last_name, person.first_name, person.middle_name) if p)


def _short_name(person: UserRead) -> str:
    initials = f"{person.first_name[0]}."
    if person.middle_name:
        initials += f" {person.middle_name[0]}."
    return f"{person.last_name} {initials}"


def _years(n: int) -> str:
    if n % 10 == 1 and n % 100 != 11:
        return f"{n} год"
    if n % 10 in (2, 3, 4) and n % 100 not in (12, 13, 14):
        return f"{n} года"
    return f"{n} лет"


def _price(offer: dict) -> str:
    if offer["is_free"]:
        return "Безвозмездно"
    price = offer.get("price") or Decimal("0")
    return f"{price} руб."


def _license_adjective(offer: dict, form: str) -> str:
    exclusive = offer.get("license_type") == LicenseType.EXCLUSIVE.value
    if form == "nominative":
        return "исключительная" if exclusive else "неисключительная"
    return "исключительную" if exclusive else "неисключительную"


def build_rights_transfer_text(
    offer: dict, artwork: dict, seller: UserRead, today: date | None = None
) -> str:
    """Текст договора передачи прав со стороны правообладателя."""
    today = today or date.today()
    is_license = offer["contract_type"] == ContractType.LICENSE.value
    if is_license:
        title = f"Лицензионный договор ({_license_adjective(offer, 'nominative')} лицензия)"
    else:
        title = "Договор об отчуждении исключительного права"

    lines = [
        BANNER,
        title.upper(),
        BANNER,
        "",
        f"г. Москва                                {_fmt_date(today)}",
        "",
        f"{_full_name(seller)},",
        'именуемый в дальнейшем "Правообладатель", с одной стороны,',
        f'и {BLANK}, именуемый в дальнейшем "Приобретатель",',
        "с другой стороны, заключили настоящий Договор о нижеследующем:",
        "",
        "1. ПРЕДМЕТ ДОГОВОРА",
        "",
        "1.1. Правообладатель передает Приобретателю права на произведение:",
        f"Название: {artwork['title']}",
        f"Описание: {artwork['description']}",
        "",
        "2. УСЛОВИЯ ДОГОВОРА",
        "",
        f"2.1. Стоимость передачи прав: {_price(offer)}",
    ]
    if is_license:
        duration = (
            "Бессрочно" if offer.get("is_perpetual") else _years(offer.get("license_duration") or 0)
        )
        lines += [
            "2.2. По настоящему Договору Правообладатель предоставляет Приобретателю "
            f"{_license_adjective(offer, 'accusative')} лицензию на использование произведения.",
            f"2.3. Срок действия лицензии: {duration}",
        ]
    else:
        lines.append(
            "2.2. По настоящему Договору Правообладатель передает Приобретателю "
            "исключительное право на произведение в полном объеме."
        )

    lines += [
        "",
        "3. ОТВЕТСТВЕННОСТЬ СТОРОН",
        "",
        "3.1. За неисполнение или ненадлежащее исполнение обязательств по настоящему "
        "Договору Стороны несут ответственность в соответствии с действующим законодательством.",
        "",
        "4. РЕКВИЗИТЫ СТОРОН",
        "",
        "Правообладатель:",
        _full_name(seller),
    ]
    if seller.use_alternative_document:
        lines.append(f"Документ: {seller.alternative_document or ''}")
    else:
        lines += [
            f"Паспорт: {seller.passport_series or ''} {seller.passport_number or ''}",
            f"Выдан: {seller.passport_issued_by or ''}, {_fmt_date(seller.passport_issue_date)}",
        ]
    lines += [
        "Банковские реквизиты:",
        seller.bank_name or "",
        f"БИК: {seller.bank_bik or ''}",
        f"Счет: {seller.bank_account or ''}",
        f"К/с: {seller.bank_cor_account or ''}",
        "",
        "Приобретатель:",
        BLANK,
        BLANK,
        "",
        "5. ПОДПИСИ СТОРОН",
        "",
        f"Правообладатель: _______________ / {_short_name(seller)}",
        "",
        "Приобретатель: _______________ / ________________",
    ]
    return "\n".join(lines)


def build_purchase_text(
    offer: dict,
    artwork: dict,
    seller: UserRead,
    buyer: UserRead,
    today: date | None = None,
) -> str:
    """Текст договора купли-продажи между продавцом и покупателем."""
    today = today or date.today()
    lines = [
        BANNER,
        "ДОГОВОР КУПЛИ-ПРОДАЖИ ИНТЕЛЛЕКТУАЛЬНОЙ СОБСТВЕННОСТИ",
        BANNER,
        "",
        f"г. Москва                                {_fmt_date(today)}",
        "",
        f"{_full_name(seller)},",
        'именуемый в дальнейшем "Продавец", с одной стороны,',
        f"и {_full_name(buyer)},",
        'именуемый в дальнейшем "Покупатель", с другой стороны,',
        "заключили настоящий Договор о нижеследующем:",
        "",
        "1. ПРЕДМЕТ ДОГОВОРА",
        "",
        "1.1. Продавец передает Покупателю права на произведение:",
        f"Название: {artwork['title']}",
        f"Описание: {artwork['description']}",
        "",
        "2. УСЛОВИЯ ДОГОВОРА",
        "",
        f"2.1. Стоимость передачи прав: {_price(offer)}",
        "",
        "3. ПОДПИСИ СТОРОН",
        "",
        f"Продавец: _______________ / {_short_name(seller)}",
        "",
        f"Покупатель: _______________ / {_short_name(buyer)}",
    ]
    return "\n".join(lines)


async def store_contract(text: str, key: str) -> str:
    """Рендерит договор в PDF и сохраняет его; возвращает публичную ссылку."""
    try:
        pdf = await asyncio.to_thread(render_contract_pdf, text)
    except Exception as exc:
        logger.error("Contract PDF rendering failed for %s: %s", key, exc)
        raise ExternalServiceError("pdf", "Failed to generate contract document") from exc
    return file_storage.save(key, pdf)
