"""
Exception to HTTP translation shared by the routers.

Error bodies always carry `code`, `message` and `retry_affordance` so the
frontend can offer "try again" or "contact support".
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from src.components.enrollment import (
    EnrollmentError,
    EnrollmentRequiresPurchase,
    EnrollmentUnauthenticated,
    RoleNotAssignable,
)
from src.components.payments import (
    AlreadyPurchased,
    DuplicatePurchaseInProgress,
    EnrollmentRequired,
    InvalidPaymentTarget,
    NotPurchasable,
    PaymentError,
    PaymentInitiationFailed,
    PaymentNotFound,
    PaymentProviderError,
    PurchaseSucceededButNotApplied,
    Unauthenticated,
    UnsupportedPaymentMethod,
)

logger = logging.getLogger(__name__)

# Order matters: subclasses before their bases
_PAYMENT_STATUS: tuple[tuple[type[PaymentError], int], ...] = (
    (Unauthenticated, status.HTTP_401_UNAUTHORIZED),
    (PaymentNotFound, status.HTTP_404_NOT_FOUND),
    (AlreadyPurchased, status.HTTP_409_CONFLICT),
    (DuplicatePurchaseInProgress, status.HTTP_409_CONFLICT),
    (EnrollmentRequired, status.HTTP_409_CONFLICT),
    (NotPurchasable, 422),
    (UnsupportedPaymentMethod, 422),
    (InvalidPaymentTarget, 422),
    (PaymentInitiationFailed, status.HTTP_502_BAD_GATEWAY),
    (PaymentProviderError, status.HTTP_502_BAD_GATEWAY),
    (PurchaseSucceededButNotApplied, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def not_found(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": code, "message": message, "retry_affordance": "none"},
    )


def payment_http_error(e: PaymentError) -> HTTPException:
    """Map a payment error to its HTTP status and structured detail."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped in _PAYMENT_STATUS:
        if isinstance(e, error_type):
            status_code = mapped
            break

    detail: dict[str, str | None] = {
        "code": e.code,
        "message": str(e),
        "retry_affordance": e.retry_affordance,
    }
    transaction_id = getattr(e, "transaction_id", None)
    if transaction_id:
        detail["transaction_id"] = transaction_id

    if isinstance(e, PurchaseSucceededButNotApplied):
        logger.error("Returning contact-support error for txn=%s", e.transaction_id)
    return HTTPException(status_code=status_code, detail=detail)


def enrollment_http_error(e: EnrollmentError) -> HTTPException:
    if isinstance(e, EnrollmentUnauthenticated):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": str(e), "retry_affordance": "none"},
        )
    if isinstance(e, EnrollmentRequiresPurchase):
        return HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "code": "enrollment_requires_purchase",
                "message": str(e),
                "retry_affordance": "none",
                "course_id": e.course_id,
                "price": str(e.price),
                "currency": e.currency,
            },
        )
    if isinstance(e, RoleNotAssignable):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "role_not_assignable", "message": str(e), "retry_affordance": "none"},
        )
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "enrollment_error", "message": str(e), "retry_affordance": "none"},
    )
