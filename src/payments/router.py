"""HTTP endpoints for payments.

Provides:
- POST /payments/create-checkout-session/{course_id} - Start a Stripe checkout
- POST /payments/webhook - Stripe event receiver (signature checked)
- GET  /payments/history - Caller's payments, newest first
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Request, status

from src.auth.dependencies import StudentUser
from src.core.exceptions import AppError
from src.core.logging import get_logger

from .dependencies import PaymentServiceDep
from .schemas import CheckoutSessionResponse, PaymentHistoryItem, WebhookAck


logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/create-checkout-session/{course_id}",
    response_model=CheckoutSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start checkout for a course",
)
async def create_checkout_session(
    course_id: UUID,
    current_user: StudentUser,
    service: PaymentServiceDep,
) -> CheckoutSessionResponse:
    return await service.initiate_checkout(course_id, current_user)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Receive payment gateway events",
)
async def payment_webhook(
    request: Request,
    service: PaymentServiceDep,
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
    x_signature: Annotated[str | None, Header(alias="X-Signature")] = None,
) -> WebhookAck:
    """Any failure is answered with 400 so the gateway delivers the event again."""
    signature = stripe_signature or x_signature
    if not signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing webhook signature",
        )

    payload = await request.body()
    try:
        return await service.handle_webhook(payload, signature)
    except AppError as e:
        logger.warning("webhook_rejected", code=e.code, error=e.message)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        ) from e
    except Exception as e:
        logger.exception("webhook_processing_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook processing failed",
        ) from e


@router.get(
    "/history",
    response_model=list[PaymentHistoryItem],
    summary="My payment history",
)
async def payment_history(
    current_user: StudentUser,
    service: PaymentServiceDep,
) -> list[PaymentHistoryItem]:
    payments = await service.get_history(current_user.id)
    return [PaymentHistoryItem.model_validate(p) for p in payments]
