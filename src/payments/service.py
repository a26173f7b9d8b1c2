"""Payment fulfillment service.

Checkout:
    course lookup -> already-enrolled check -> pending Payment (price and
    title snapshot) -> Stripe Checkout session -> session id recorded.

Webhook:
    signature check -> conditional pending -> completed -> enrollment grant
    -> receipts. The grant runs on every delivery of a completed session, so
    a delivery that crashed after the transition is repaired by the retry.
    Only the delivery whose grant created the membership sends emails.
"""

import asyncio
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

from src.auth.schemas import AuthenticatedUser
from src.core.exceptions import (
    ConflictError,
    NotFoundError,
    UpstreamFailureError,
    ValidationError,
)
from src.core.logging import get_logger
from src.payments.gateway import CheckoutSession
from src.payments.models import Payment, PaymentStatus
from src.payments.schemas import CheckoutSessionResponse, WebhookAck


if TYPE_CHECKING:
    from src.courses.service import CourseService
    from src.enrollments.service import EnrollmentService
    from src.payments.repository import PaymentRepository


logger = get_logger(__name__)

DEFAULT_NOTIFICATION_TIMEOUT = 10.0

COMPLETED_EVENTS = frozenset(
    {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
)
FAILED_EVENTS = frozenset(
    {"checkout.session.expired", "checkout.session.async_payment_failed"}
)


class PaymentGateway(Protocol):
    async def create_checkout_session(
        self,
        *,
        amount: Decimal,
        currency: str,
        product_name: str,
        customer_email: str | None,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession: ...

    def construct_event(self, payload: bytes, signature: str) -> dict[str, Any]: ...


class Notifier(Protocol):
    async def send_payment_confirmation(
        self,
        to: str,
        course_title: str,
        amount: Decimal,
        currency: str,
        payment_id: str,
    ) -> Any: ...

    async def send_enrollment_confirmation(
        self, to: str, course_title: str, course_id: str
    ) -> Any: ...


class PaymentNotFoundError(NotFoundError):
    """Webhook references an unknown payment."""

    def __init__(self, message: str = "Payment not found"):
        super().__init__(message, "payment_not_found")


class AlreadyEnrolledError(ConflictError):
    """Student already has access to the course."""

    def __init__(self, message: str = "You are already enrolled in this course"):
        super().__init__(message, "already_enrolled")


def _metadata_uuid(metadata: dict[str, Any], name: str) -> UUID:
    value = metadata.get(name)
    if not value:
        raise ValidationError(f"Webhook metadata is missing {name}", "invalid_metadata")
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ValidationError(
            f"Webhook metadata has a malformed {name}", "invalid_metadata"
        ) from e


class PaymentService:
    """Checkout, webhook state machine and payment history."""

    def __init__(
        self,
        repository: "PaymentRepository",
        course_service: "CourseService",
        enrollment_service: "EnrollmentService",
        gateway: PaymentGateway,
        notifier: Notifier,
        *,
        currency: str = "usd",
        success_url: str,
        cancel_url: str,
        notification_timeout: float = DEFAULT_NOTIFICATION_TIMEOUT,
    ):
        self.repository = repository
        self.course_service = course_service
        self.enrollment_service = enrollment_service
        self.gateway = gateway
        self.notifier = notifier
        self.currency = currency
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.notification_timeout = notification_timeout

    # ==========================================================================
    # Checkout
    # ==========================================================================

    async def initiate_checkout(
        self, course_id: UUID, user: AuthenticatedUser
    ) -> CheckoutSessionResponse:
        """Create a pending payment and open a checkout session for it.

        Raises:
            CourseNotFoundError: Course does not exist.
            AlreadyEnrolledError: Student already has access; nothing is created.
            UpstreamFailureError: Gateway failed; the payment is marked failed.
        """
        course = await self.course_service.get_course(course_id)
        if await self.enrollment_service.is_enrolled(user.id, course_id):
            raise AlreadyEnrolledError

        payment = await self.repository.insert(
            Payment(
                user_id=user.id,
                course_id=course.id,
                user_email=str(user.email),
                course_title=course.title,
                amount=course.price,
                currency=self.currency,
            )
        )

        try:
            session = await self.gateway.create_checkout_session(
                amount=payment.amount,
                currency=payment.currency,
                product_name=payment.course_title,
                customer_email=payment.user_email,
                metadata={
                    "course_id": str(course.id),
                    "user_id": str(user.id),
                    "payment_id": str(payment.id),
                },
                success_url=self.success_url,
                cancel_url=self.cancel_url,
            )
        except UpstreamFailureError:
            await self.repository.mark_failed(payment.id)
            logger.warning(
                "checkout_session_failed",
                payment_id=str(payment.id),
                course_id=str(course_id),
            )
            raise

        await self.repository.set_session_id(payment.id, session.id)
        logger.info(
            "checkout_session_created",
            payment_id=str(payment.id),
            course_id=str(course_id),
            user_id=str(user.id),
            amount=str(payment.amount),
        )
        return CheckoutSessionResponse(session_id=session.id, session_url=session.url)

    # ==========================================================================
    # Webhook
    # ==========================================================================

    async def handle_webhook(self, payload: bytes, signature: str) -> WebhookAck:
        """Verify and apply one gateway event.

        Raises:
            InvalidSignatureError: Signature check failed; nothing changed.
            ValidationError: Metadata missing, malformed or inconsistent.
            PaymentNotFoundError: Metadata references an unknown payment.
        """
        event = self.gateway.construct_event(payload, signature)
        event_type = event.get("type")
        session = (event.get("data") or {}).get("object") or {}

        logger.info("webhook_received", event_type=event_type, event_id=event.get("id"))

        if event_type in COMPLETED_EVENTS:
            if session.get("payment_status") != "paid":
                logger.info(
                    "webhook_session_not_paid",
                    event_type=event_type,
                    payment_status=session.get("payment_status"),
                )
            else:
                await self._fulfill(session)
        elif event_type in FAILED_EVENTS:
            await self._fail(session)
        else:
            logger.debug("webhook_event_ignored", event_type=event_type)

        return WebhookAck()

    async def _load_for_session(self, session: dict[str, Any]) -> Payment:
        metadata = session.get("metadata") or {}
        payment_id = _metadata_uuid(metadata, "payment_id")
        course_id = _metadata_uuid(metadata, "course_id")
        user_id = _metadata_uuid(metadata, "user_id")

        payment = await self.repository.get(payment_id)
        if payment is None:
            raise PaymentNotFoundError
        if payment.course_id != course_id or payment.user_id != user_id:
            logger.warning(
                "webhook_metadata_mismatch",
                payment_id=str(payment_id),
            )
            raise ValidationError(
                "Webhook metadata does not match the payment", "invalid_metadata"
            )
        return payment

    async def _fulfill(self, session: dict[str, Any]) -> None:
        payment = await self._load_for_session(session)

        won = await self.repository.complete(payment.id, session.get("payment_intent"))
        if won:
            logger.info(
                "payment_completed",
                payment_id=str(payment.id),
                course_id=str(payment.course_id),
                user_id=str(payment.user_id),
            )
        else:
            current = await self.repository.get(payment.id)
            if current is None or current.status != PaymentStatus.COMPLETED:
                logger.warning(
                    "payment_not_completable",
                    payment_id=str(payment.id),
                    status=current.status.value if current else None,
                )
                return
            logger.info("payment_already_completed", payment_id=str(payment.id))

        created = await self.enrollment_service.grant(
            payment.user_id, payment.course_id, payment.id
        )
        await self._notify(payment, receipt=won, enrollment=created)

    async def _fail(self, session: dict[str, Any]) -> None:
        payment = await self._load_for_session(session)
        if await self.repository.mark_failed(payment.id):
            logger.info("payment_failed", payment_id=str(payment.id))
        else:
            logger.debug("payment_fail_ignored", payment_id=str(payment.id))

    async def _notify(
        self, payment: Payment, *, receipt: bool, enrollment: bool
    ) -> None:
        """Send receipt and/or enrollment emails; failures are logged only."""
        sends = []
        if receipt:
            sends.append(
                self.notifier.send_payment_confirmation(
                    to=payment.user_email,
                    course_title=payment.course_title,
                    amount=payment.amount,
                    currency=payment.currency,
                    payment_id=str(payment.id),
                )
            )
        if enrollment:
            sends.append(
                self.notifier.send_enrollment_confirmation(
                    to=payment.user_email,
                    course_title=payment.course_title,
                    course_id=str(payment.course_id),
                )
            )
        if not sends:
            return

        try:
            results = await asyncio.wait_for(
                asyncio.gather(*sends),
                timeout=self.notification_timeout,
            )
        except TimeoutError:
            logger.warning("payment_notification_timeout", payment_id=str(payment.id))
            return
        except Exception as e:
            logger.warning(
                "payment_notification_failed",
                payment_id=str(payment.id),
                error=str(e),
            )
            return

        for result in results:
            if getattr(result, "success", True) is False:
                logger.warning(
                    "payment_notification_not_sent",
                    payment_id=str(payment.id),
                    error=getattr(result, "error", None),
                )

    # ==========================================================================
    # History
    # ==========================================================================

    async def get_history(self, user_id: UUID) -> list[Payment]:
        """Payments of ``user_id``, newest first."""
        payments = await self.repository.list_for_user(user_id)
        payments.sort(key=lambda p: p.created_at, reverse=True)
        return payments
