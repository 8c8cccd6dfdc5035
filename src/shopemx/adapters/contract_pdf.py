"""
shopemx/adapters/contract_pdf.py — Рендер текста договора в PDF (reportlab).

Разметка текста:
    • строка с ``=====`` — баннер; заголовком считается текст между баннерами;
    • строка вида ``1. ПРЕДМЕТ ДОГОВОРА`` (номер и заглавные буквы) — раздел;
    • остальное — абзацы, длинные строки переносятся по ширине страницы.
"""

from __future__ import annotations

import logging
import os
import re
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from shopemx.config import get_settings

logger = logging.getLogger(__name__)

CONTRACT_FONT = "ContractSans"
FALLBACK_FONT = "Helvetica"
MARGIN = 20 * mm

_SECTION_RE = re.compile(r"^\d+\.\s[^a-zа-яё]+$")


def _font_name() -> str:
    """Регистрирует TTF с кириллицей (один раз); без файла — Helvetica."""
    if CONTRACT_FONT in pdfmetrics.getRegisteredFontNames():
        return CONTRACT_FONT
    path = get_settings().contract_font_path
    if path and os.path.exists(path):
        pdfmetrics.registerFont(TTFont(CONTRACT_FONT, path))
        return CONTRACT_FONT
    logger.warning("Contract font %s not found, Cyrillic text will not render", path)
    return FALLBACK_FONT


def render_contract_pdf(text: str) -> bytes:
    """Рендерит текст договора на страницы A4 и возвращает байты PDF."""
    font = _font_name()
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    usable = width - 2 * MARGIN
    y = height - MARGIN

    def line(txt: str, size: int = 11, dy: int = 15, centered: bool = False) -> None:
        nonlocal y
        if y < MARGIN:
            c.showPage()
            y = height - MARGIN
        c.setFont(font, size)
        if centered:
            c.drawCentredString(width / 2, y, txt)
        else:
            c.drawString(MARGIN, y, txt)
        y -= dy

    in_banner = False
    for raw in text.strip("\n").split("\n"):
        stripped = raw.strip()
        if not stripped:
            y -= 8
            continue
        if "=====" in stripped:
            in_banner = not in_banner
            continue
        if in_banner:
            line(stripped, size=13, dy=20, centered=True)
        elif _SECTION_RE.match(stripped):
            y -= 4
            line(stripped, size=12, dy=18)
        else:
            for part in simpleSplit(stripped, font, 11, usable):
                line(part)

    c.showPage()
    c.save()
    return buf.getvalue()
