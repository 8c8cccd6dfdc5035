"""
shopemx/models/user.py — Доменные модели пользователя.

Схемы запросов (регистрация, вход, 2FA, профиль, банковские реквизиты)
и схемы ответов. Форматы полей проверяются здесь; правила, связывающие
несколько полей (паспорт «всё или ничего», альтернативный документ),
проверяет ``profile_service``.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from shopemx.models.common import (
    CYRILLIC_NAME_PATTERN,
    EMAIL_PATTERN,
    PHONE_PATTERN,
    ShopBase,
    blank_to_none,
    normalize_phone,
)
from shopemx.models.enums import UserRole, VerificationType

BIRTH_DATE_MIN = date(1900, 1, 1)
PASSPORT_ISSUE_DATE_MIN = date(1991, 1, 1)


# ═══════════════════════════════════════════════════════════════════════════
# АУТЕНТИФИКАЦИЯ
# ═══════════════════════════════════════════════════════════════════════════


class PhoneRequest(ShopBase):
    """Проверка существования пользователя по номеру телефона."""
    phone: str = Field(..., min_length=1, pattern=PHONE_PATTERN, examples=["+79991234567"])

    @field_validator("phone")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_phone(v)


class LoginRequest(PhoneRequest):
    """Вход: телефон + пароль."""
    password: str = Field(..., min_length=1)


class RegisterRequest(ShopBase):
    """Схема для регистрации нового пользователя."""
    phone: str = Field(..., pattern=PHONE_PATTERN, examples=["+79991234567"])
    email: str = Field(..., min_length=1, pattern=EMAIL_PATTERN, examples=["user@example.com"])
    first_name: str = Field(..., min_length=1, pattern=CYRILLIC_NAME_PATTERN, examples=["Иван"])
    last_name: str = Field(..., min_length=1, pattern=CYRILLIC_NAME_PATTERN, examples=["Иванов"])
    middle_name: str | None = Field(default=None, examples=["Иванович"])
    password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str = Field(..., min_length=1)
    agree_to_terms: bool = False

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, v: str) -> str:
        return normalize_phone(v)

    @field_validator("middle_name", mode="before")
    @classmethod
    def _blank_middle_name(cls, v):
        return blank_to_none(v)

    @field_validator("middle_name")
    @classmethod
    def _cyrillic_middle_name(cls, v: str | None) -> str | None:
        if v is not None and not re.fullmatch(CYRILLIC_NAME_PATTERN, v):
            raise ValueError("Middle name must contain only Russian letters")
        return v

    @field_validator("password")
    @classmethod
    def _password_strength(cls, v: str) -> str:
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain an uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain a lowercase letter")
        if not re.search(r"[0-9]", v):
            raise ValueError("Password must contain a digit")
        if not re.search(r"[^A-Za-z0-9]", v):
            raise ValueError("Password must contain a special character")
        return v

    @model_validator(mode="after")
    def _check_confirmation(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if not self.agree_to_terms:
            raise ValueError("Terms of service must be accepted")
        return self


class TwoFactorRequest(ShopBase):
    """Второй шаг входа: коды из SMS и email."""
    sms_code: str = Field(..., pattern=r"^\d{6}$")
    email_code: str = Field(..., pattern=r"^\d{6}$")


class SendCodeRequest(ShopBase):
    type: VerificationType


class VerifyCodeRequest(ShopBase):
    code: str = Field(..., min_length=4, max_length=6)
    type: VerificationType


class PasswordCheckRequest(ShopBase):
    password: str = Field(..., min_length=1)


# ═══════════════════════════════════════════════════════════════════════════
# ПРОФИЛЬ
# ═══════════════════════════════════════════════════════════════════════════


class ProfileUpdate(ShopBase):
    """Схема обновления профиля: ФИО, контакты, паспорт или иной документ."""
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    middle_name: str | None = None
    email: str = Field(..., min_length=1, pattern=EMAIL_PATTERN)
    phone: str = Field(..., min_length=1)

    birth_date: date | None = None

    passport_series: str | None = Field(default=None, pattern=r"^\d{4}$")
    passport_number: str | None = Field(default=None, pattern=r"^\d{6}$")
    passport_code: str | None = Field(default=None, pattern=r"^\d{3}-\d{3}$")
    passport_issue_date: date | None = None
    passport_issued_by: str | None = Field(default=None, min_length=5)

    use_alternative_document: bool = False
    alternative_document: str | None = Field(default=None, max_length=100)

    @field_validator(
        "middle_name", "birth_date", "passport_series", "passport_number",
        "passport_code", "passport_issue_date", "passport_issued_by",
        "alternative_document",
        mode="before",
    )
    @classmethod
    def _blank(cls, v):
        return blank_to_none(v)

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, v: str) -> str:
        return normalize_phone(v)

    @field_validator("birth_date")
    @classmethod
    def _birth_date_range(cls, v: date | None) -> date | None:
        if v is not None and not (BIRTH_DATE_MIN <= v <= date.today()):
            raise ValueError("Birth date must be after 1900-01-01 and not in the future")
        return v

    @field_validator("passport_issue_date")
    @classmethod
    def _issue_date_range(cls, v: date | None) -> date | None:
        if v is not None and not (PASSPORT_ISSUE_DATE_MIN <= v <= date.today()):
            raise ValueError("Passport issue date must be after 1991-01-01 and not in the future")
        return v


class BankDetailsUpdate(ShopBase):
    """Банковские реквизиты: заполняются все четыре поля или ни одного."""
    bank_name: str | None = Field(default=None, min_length=2, max_length=100)
    bank_bik: str | None = Field(default=None, pattern=r"^\d{9}$")
    bank_account: str | None = Field(default=None, pattern=r"^\d{20}$")
    bank_cor_account: str | None = Field(default=None, pattern=r"^\d{20}$")

    @field_validator("*", mode="before")
    @classmethod
    def _blank(cls, v):
        return blank_to_none(v)


# ═══════════════════════════════════════════════════════════════════════════
# ОТВЕТЫ
# ═══════════════════════════════════════════════════════════════════════════


class UserBrief(ShopBase):
    """Базовая информация о текущем пользователе."""
    user_id: UUID
    first_name: str
    last_name: str
    middle_name: str | None = None
    email: str
    phone: str
    role: UserRole = UserRole.USER


class PartyRead(ShopBase):
    """Сторона сделки (продавец, покупатель, автор)."""
    user_id: UUID
    first_name: str
    last_name: str
    middle_name: str | None = None
    phone: str | None = None
    email: str | None = None


class UserRead(UserBrief):
    """Полный профиль пользователя (без пароля)."""
    is_verified: bool = False
    birth_date: date | None = None
    passport_series: str | None = None
    passport_number: str | None = None
    passport_code: str | None = None
    passport_issue_date: date | None = None
    passport_issued_by: str | None = None
    use_alternative_document: bool = False
    alternative_document: str | None = None
    bank_name: str | None = None
    bank_bik: str | None = None
    bank_account: str | None = None
    bank_cor_account: str | None = None
    passport_document_url: str | None = None
    created_at: datetime | None = None


def user_row_to_read(row: dict) -> UserRead:
    """Конвертирует строку из БД (dict) → UserRead."""
    return UserRead(**{k: v for k, v in row.items() if k in UserRead.model_fields})


def user_row_to_party(row: dict, with_contacts: bool = False) -> PartyRead:
    """Конвертирует строку из БД (dict) → PartyRead."""
    return PartyRead(
        user_id=row["user_id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        middle_name=row.get("middle_name"),
        phone=row.get("phone") if with_contacts else None,
        email=row.get("email") if with_contacts else None,
    )
