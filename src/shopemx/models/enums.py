"""
shopemx/models/enums.py — Перечисления домена ShopEMX.

Содержит enum'ы, относящиеся к пользователям, верификации и сделкам:
    • UserRole — роль пользователя на площадке
    • VerificationType / VerificationStatus — одноразовые коды (2FA)
    • RequestStatus — статус KYC-заявки
    • OfferStatus — жизненный цикл предложения о продаже
    • ContractType / LicenseType — вид договора
"""

from enum import Enum


class UserRole(str, Enum):
    """Роль пользователя на площадке."""
    USER = "USER"
    ADMIN = "ADMIN"


class VerificationType(str, Enum):
    """Канал доставки кода подтверждения."""
    EMAIL = "EMAIL"
    SMS = "SMS"


class VerificationStatus(str, Enum):
    """Статус одноразового кода."""
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"


class RequestStatus(str, Enum):
    """Статус заявки на подтверждение личности (KYC)."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class OfferStatus(str, Enum):
    """
    Статус предложения о продаже.

    PENDING → ACTIVE (продавец подтвердил, договор сформирован)
    → ACCEPTED (покупатель зарезервировал и подтвердил покупку).
    DECLINED / CANCELLED — терминальные статусы схемы.
    """
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


class ContractType(str, Enum):
    """Вид договора: отчуждение исключительного права или лицензия."""
    EXCLUSIVE_RIGHTS = "EXCLUSIVE_RIGHTS"
    LICENSE = "LICENSE"


class LicenseType(str, Enum):
    """Вид лицензии."""
    EXCLUSIVE = "EXCLUSIVE"
    NON_EXCLUSIVE = "NON_EXCLUSIVE"
