"""
shopemx.models — Модели данных ShopEMX.

Реэкспорт основных классов для удобства:
    from shopemx.models import UserRead, SellOfferRead
"""

from shopemx.models.enums import (  # noqa: F401
    ContractType,
    LicenseType,
    OfferStatus,
    RequestStatus,
    UserRole,
    VerificationStatus,
    VerificationType,
)
from shopemx.models.user import PartyRead, UserBrief, UserRead  # noqa: F401
from shopemx.models.verification import VerificationRequestRead  # noqa: F401
from shopemx.models.offer import ArtworkRead, SellOfferRead  # noqa: F401
