"""
Payments component (C2).

Public API for the payment orchestrator: purchase state machine,
entitlement grant with retries, expiry sweep and reconciliation.
"""

from ._impl import PaymentOrchestrator, new_transaction_id
from .component import (
    backoff_delay,
    convert_amount,
    is_already_granted,
    item_for_course,
    item_for_unit,
    load_config_from_rules,
    mark_submitted,
    merge_for,
    method_config,
    normalize_phone,
    outcome_from_record,
    validate_target,
)
from .models import (
    AlreadyPurchased,
    DuplicatePurchaseInProgress,
    EnrollmentRequired,
    ExpiryReport,
    InvalidPaymentTarget,
    MethodConfig,
    NotPurchasable,
    PaymentError,
    PaymentInitiationFailed,
    PaymentNotFound,
    PaymentProviderError,
    PaymentsConfig,
    PaymentState,
    PurchaseOutcome,
    PurchaseSucceededButNotApplied,
    ReconcileReport,
    RetryAffordance,
    Unauthenticated,
    UnsupportedPaymentMethod,
)

__all__ = [
    # Service
    "PaymentOrchestrator",
    "new_transaction_id",
    # Functions
    "backoff_delay",
    "convert_amount",
    "is_already_granted",
    "item_for_course",
    "item_for_unit",
    "load_config_from_rules",
    "mark_submitted",
    "merge_for",
    "method_config",
    "normalize_phone",
    "outcome_from_record",
    "validate_target",
    # Models
    "ExpiryReport",
    "MethodConfig",
    "PaymentsConfig",
    "PaymentState",
    "PurchaseOutcome",
    "ReconcileReport",
    "RetryAffordance",
    # Errors
    "AlreadyPurchased",
    "DuplicatePurchaseInProgress",
    "EnrollmentRequired",
    "InvalidPaymentTarget",
    "NotPurchasable",
    "PaymentError",
    "PaymentInitiationFailed",
    "PaymentNotFound",
    "PaymentProviderError",
    "PurchaseSucceededButNotApplied",
    "Unauthenticated",
    "UnsupportedPaymentMethod",
]
