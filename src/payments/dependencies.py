"""Dependencies for payments module."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends

from src.payments.service import PaymentService


_payment_service_getter: Callable[[], PaymentService] | None = None


def set_payment_service_getter(getter: Callable[[], PaymentService]) -> None:
    """Set the payment service getter function (called by main.py)."""
    global _payment_service_getter  # noqa: PLW0603
    _payment_service_getter = getter


def get_payment_service() -> PaymentService:
    """Get the payment service built at startup."""
    if _payment_service_getter is None:
        msg = "PaymentService not configured"
        raise RuntimeError(msg)
    return _payment_service_getter()


PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
