"""
shopemx/models/verification.py — KYC-заявки на подтверждение личности.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from shopemx.models.common import ShopBase
from shopemx.models.enums import RequestStatus
from shopemx.models.user import UserRead


class RejectRequest(ShopBase):
    """Причина отклонения заявки (длина проверяется в admin_service)."""
    reason: str = Field(default="")


class VerificationRequestRead(ShopBase):
    """Заявка с опциональным снимком данных пользователя для проверки админом."""
    request_id: UUID
    user_id: UUID
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: UUID | None = None
    rejection_reason: str | None = None
    user: UserRead | None = None
