"""Payment fulfillment: Stripe checkout, webhook processing and history."""

from src.payments.models import Payment, PaymentStatus
from src.payments.router import router
from src.payments.service import PaymentService


__all__ = ["Payment", "PaymentService", "PaymentStatus", "router"]
