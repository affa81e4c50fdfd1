"""
Payments component models (C2).

Configuration, outcomes and the user-facing error taxonomy of the
payment orchestrator.

State machine (SM2): created -> submitted -> completed | failed
- created/submitted live only for one checkout; submitted is persisted
  as a pending PaymentRecord keyed by transaction_id
- completed/failed are terminal and immutable
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal

# --- States ---

PaymentState = Literal["created", "submitted", "completed", "failed"]
RetryAffordance = Literal["none", "retry_purchase", "contact_support"]


# --- Configuration ---


@dataclass(frozen=True)
class MethodConfig:
    """Per payment method settings."""

    currency: str = "USD"
    rate: Decimal = Decimal("1")
    minor_units: int = 2
    target_pattern: str | None = None
    enabled: bool = True


def _default_methods() -> dict[str, MethodConfig]:
    return {
        "paypal": MethodConfig(currency="USD"),
        "mobile_money": MethodConfig(
            currency="KES",
            rate=Decimal("120"),
            minor_units=0,
            target_pattern=r"^254\d{9}$",
        ),
    }


@dataclass(frozen=True)
class PaymentsConfig:
    """Payments configuration from rules."""

    catalog_currency: str = "USD"
    intent_timeout_minutes: int = 15
    poll_interval_seconds: float = 5.0
    methods: dict[str, MethodConfig] = field(default_factory=_default_methods)

    # Entitlement write retries
    write_max_attempts: int = 5
    write_backoff_seconds: tuple[float, ...] = (0.1, 0.2, 0.4, 0.8)


# --- Outcomes ---


@dataclass(frozen=True)
class PurchaseOutcome:
    """
    Method-agnostic result of a purchase step.

    `state` is "submitted" while the provider has not resolved the payment.
    """

    transaction_id: str
    state: PaymentState
    method: str
    item_kind: str
    item_id: str
    amount: Decimal
    currency: str
    retry_affordance: RetryAffordance = "none"
    checkout_url: str | None = None
    instructions: str | None = None
    failure_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in ("completed", "failed")


@dataclass(frozen=True)
class ExpiryReport:
    """Result of one expiry sweep."""

    expired: tuple[str, ...] = ()
    completed: tuple[str, ...] = ()
    unapplied: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReconcileReport:
    """Result of one reconciliation pass."""

    checked: int = 0
    repaired: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()


# --- Error Types ---


class PaymentError(Exception):
    """Base payment error. Every payment error is user-facing."""

    code: str = "payment_error"
    retry_affordance: RetryAffordance = "none"


class Unauthenticated(PaymentError):
    """Purchases require a signed-in user."""

    code = "unauthenticated"

    def __init__(self) -> None:
        super().__init__("Sign in to make a purchase")


class NotPurchasable(PaymentError):
    """Item is free or bundled."""

    code = "not_purchasable"

    def __init__(self, item_id: str, reason: str) -> None:
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Item {item_id} cannot be purchased: {reason}")


class EnrollmentRequired(PaymentError):
    """Units are only sold to users enrolled in their course."""

    code = "enrollment_required"

    def __init__(self, user_id: str, course_id: str) -> None:
        self.user_id = user_id
        self.course_id = course_id
        super().__init__(f"Enroll in course {course_id} before buying its content")


class AlreadyPurchased(PaymentError):
    """The user already holds the entitlement this item grants."""

    code = "already_purchased"

    def __init__(self, user_id: str, item_id: str) -> None:
        self.user_id = user_id
        self.item_id = item_id
        super().__init__(f"User {user_id} already has access to {item_id}")


class UnsupportedPaymentMethod(PaymentError):
    """Method is unknown or disabled."""

    code = "unsupported_payment_method"

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Payment method '{method}' is not available")


class DuplicatePurchaseInProgress(PaymentError):
    """A checkout for the same (user, item) is already submitted."""

    code = "duplicate_purchase_in_progress"

    def __init__(self, user_id: str, item_id: str, transaction_id: str | None = None) -> None:
        self.user_id = user_id
        self.item_id = item_id
        self.transaction_id = transaction_id
        super().__init__(f"A purchase of {item_id} is already in progress")


class PaymentInitiationFailed(PaymentError):
    """Provider could not start the payment. Nothing was persisted."""

    code = "payment_initiation_failed"
    retry_affordance: RetryAffordance = "retry_purchase"

    def __init__(self, method: str, reason: str) -> None:
        self.method = method
        self.reason = reason
        super().__init__(f"Could not start {method} payment: {reason}")


class InvalidPaymentTarget(PaymentInitiationFailed):
    """Method target (e.g. phone number) is missing or malformed."""

    code = "invalid_payment_target"


class PaymentProviderError(PaymentError):
    """The attempt ended in failure. A new purchase may be started."""

    code = "payment_failed"
    retry_affordance: RetryAffordance = "retry_purchase"

    def __init__(self, transaction_id: str, reason: str | None) -> None:
        self.transaction_id = transaction_id
        self.reason = reason or "declined"
        super().__init__(f"Payment {transaction_id} failed: {self.reason}")


class PurchaseSucceededButNotApplied(PaymentError):
    """Provider confirmed the payment but the entitlement was not written."""

    code = "purchase_succeeded_but_not_applied"
    retry_affordance: RetryAffordance = "contact_support"

    def __init__(self, transaction_id: str, reason: str) -> None:
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(
            f"Payment {transaction_id} succeeded but access was not granted: {reason}"
        )


class PaymentNotFound(PaymentError):
    """Unknown transaction id."""

    code = "payment_not_found"

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"Payment {transaction_id} not found")
