"""Stripe Checkout gateway.

Opens hosted checkout sessions and verifies webhook signatures. The Stripe SDK
is synchronous, so calls run in a worker thread with a timeout.
"""

import asyncio
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import orjson
import stripe

from src.core.exceptions import InvalidSignatureError, UpstreamFailureError
from src.core.logging import get_logger


logger = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0


@dataclass(frozen=True)
class CheckoutSession:
    """Hosted checkout page opened for one payment."""

    id: str
    url: str


def to_minor_units(amount: Decimal) -> int:
    """Decimal price to integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeGateway:
    """Payment gateway backed by an explicit Stripe client."""

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: stripe.StripeClient | None = None,
    ):
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self._client = client or stripe.StripeClient(secret_key)

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
    ) -> CheckoutSession:
        """Open a one-off card checkout for a single item.

        Raises:
            UpstreamFailureError: Stripe rejected the call or did not answer in time.
        """
        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": to_minor_units(amount),
                        "product_data": {"name": product_name},
                    },
                    "quantity": 1,
                }
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = await asyncio.wait_for(
                asyncio.to_thread(self._client.checkout.sessions.create, params=params),
                timeout=self.timeout,
            )
        except TimeoutError as e:
            logger.error("stripe_checkout_timeout", timeout=self.timeout)
            raise UpstreamFailureError("Payment gateway timed out") from e
        except stripe.StripeError as e:
            logger.error(
                "stripe_checkout_failed",
                error=str(e),
                stripe_code=getattr(e, "code", None),
            )
            raise UpstreamFailureError("Payment gateway rejected the request") from e

        if not session.url:
            raise UpstreamFailureError("Payment gateway returned no checkout URL")
        return CheckoutSession(id=session.id, url=session.url)

    def construct_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify the webhook signature and decode the event.

        Raises:
            InvalidSignatureError: Signature does not match or payload is malformed.
        """
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
            event = orjson.loads(payload)
        except stripe.SignatureVerificationError as e:
            logger.warning("stripe_signature_invalid", error=str(e))
            raise InvalidSignatureError from e
        except ValueError as e:
            logger.warning("stripe_payload_invalid", error=str(e))
            raise InvalidSignatureError("Malformed webhook payload") from e

        if not isinstance(event, dict):
            raise InvalidSignatureError("Malformed webhook payload")
        return event
