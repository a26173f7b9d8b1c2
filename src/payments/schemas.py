"""Pydantic schemas for payments."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from src.core.schemas import ApiModel
from src.payments.models import PaymentStatus


class CheckoutSessionResponse(ApiModel):
    """Hosted checkout page to redirect the student to."""

    session_id: str
    session_url: str


class WebhookAck(ApiModel):
    """Acknowledgement returned to the gateway."""

    received: bool = True


class PaymentHistoryItem(ApiModel):
    """One entry of the caller's payment history."""

    id: UUID
    course_id: UUID
    course_title: str
    amount: Decimal
    currency: str
    status: PaymentStatus
    created_at: datetime
