"""
shopemx/models/common.py — Базовые типы и общие правила валидации.

ShopBase — базовая Pydantic-модель: camelCase в JSON, snake_case в Python.
Здесь же живут регулярные выражения и нормализация российских номеров
телефона, которые используют и модели, и сервисы.
"""

from __future__ import annotations

import re

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

PHONE_PATTERN = r"^(\+7|7|8)?[\s\-]?\(?9[0-9]{2}\)?[\s\-]?[0-9]{3}[\s\-]?[0-9]{2}[\s\-]?[0-9]{2}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
CYRILLIC_NAME_PATTERN = r"^[А-Яа-яЁё]+$"

_NON_DIGITS = re.compile(r"\D")


class ShopBase(BaseModel):
    """Базовая Pydantic-модель для схем ShopEMX."""

    model_config = {
        "str_strip_whitespace": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


def normalize_phone(phone: str) -> str:
    """
    Приводит российский номер к виду ``+7XXXXXXXXXX``.

    11 цифр, начинающихся с 7 или 8, и 10 цифр, начинающихся с 9,
    нормализуются; остальные номера возвращаются без изменений.
    """
    digits = _NON_DIGITS.sub("", phone)
    if len(digits) == 11 and digits[0] in ("7", "8"):
        return f"+7{digits[1:]}"
    if len(digits) == 10 and digits[0] == "9":
        return f"+7{digits}"
    return phone


def blank_to_none(value):
    """Пустые строки из форм трактуются как отсутствующее значение."""
    if isinstance(value, str) and not value.strip():
        return None
    return value
