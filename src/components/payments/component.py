"""
Payments component (C2) - functional core.

Pure helpers used by the orchestrator: purchasable item construction,
currency conversion, method target validation, backoff and outcome
mapping. The stateful coordinator lives in _impl.py.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal

from src.core.ports.db import EntitlementMerge
from src.domain.entities import (
    Course,
    PaymentRecord,
    PdfDocument,
    PurchaseIntent,
    PurchaseItem,
    UserProfile,
    VideoEpisode,
)
from src.rules.models import Rules

from .models import (
    InvalidPaymentTarget,
    MethodConfig,
    NotPurchasable,
    PaymentsConfig,
    PurchaseOutcome,
    RetryAffordance,
    UnsupportedPaymentMethod,
)

# --- Purchasable Items ---


def item_for_unit(
    course: Course,
    unit: PdfDocument | VideoEpisode,
    free_episode_ordinal: int = 0,
) -> PurchaseItem:
    """
    Build the purchasable item for a content unit.

    Raises:
        NotPurchasable: unit has no price, or is the bundled free episode
    """
    if isinstance(unit, VideoEpisode) and unit.ordinal == free_episode_ordinal:
        raise NotPurchasable(unit.id, "the first episode is free for enrolled students")
    if unit.price is None or unit.price <= 0:
        raise NotPurchasable(unit.id, "unit has no price")
    return PurchaseItem(
        kind="unit",
        id=unit.id,
        course_id=course.id,
        title=unit.title or unit.id,
        price=unit.price,
        currency=course.currency,
    )


def item_for_course(course: Course) -> PurchaseItem:
    """
    Build the purchasable item for full course access.

    Raises:
        NotPurchasable: course is free (enroll directly instead)
    """
    if course.price is None or course.price <= 0:
        raise NotPurchasable(course.id, "course is free; enroll directly")
    return PurchaseItem(
        kind="course",
        id=course.id,
        course_id=course.id,
        title=course.title,
        price=course.price,
        currency=course.currency,
    )


def is_already_granted(profile: UserProfile, item_kind: str, item_id: str) -> bool:
    if item_kind == "course":
        return profile.is_enrolled(item_id)
    return profile.owns_unit(item_id)


def merge_for(record: PaymentRecord) -> EntitlementMerge:
    """Entitlement merge a completed record grants, keyed by its transaction id."""
    if record.item_kind == "course":
        return EntitlementMerge(add_course=record.item_id, idempotency_key=record.transaction_id)
    return EntitlementMerge(add_unit=record.item_id, idempotency_key=record.transaction_id)


# --- Methods ---


def method_config(config: PaymentsConfig, method: str) -> MethodConfig:
    """Raises UnsupportedPaymentMethod for unknown or disabled methods."""
    cfg = config.methods.get(method)
    if cfg is None or not cfg.enabled:
        raise UnsupportedPaymentMethod(method)
    return cfg


def convert_amount(price: Decimal, cfg: MethodConfig) -> Decimal:
    """Convert a catalog price into the method currency, rounded to its minor units."""
    quantum = Decimal(1).scaleb(-cfg.minor_units)
    return (price * cfg.rate).quantize(quantum, rounding=ROUND_HALF_UP)


def normalize_phone(raw: str) -> str:
    return re.sub(r"[\s\-()]", "", raw).lstrip("+")


def validate_target(method: str, cfg: MethodConfig, target: str | None) -> str | None:
    """
    Check the method-specific target.

    Methods without a target pattern ignore the target entirely.

    Raises:
        InvalidPaymentTarget: target missing or not matching the pattern
    """
    if cfg.target_pattern is None:
        return None
    if not target:
        raise InvalidPaymentTarget(method, "a phone number is required")
    normalized = normalize_phone(target)
    if not re.fullmatch(cfg.target_pattern, normalized):
        raise InvalidPaymentTarget(method, f"'{target}' is not a valid number")
    return normalized


# --- Backoff ---


def backoff_delay(attempt: int, backoff_seconds: tuple[float, ...]) -> float:
    """
    Delay before retry number `attempt` (1-based).

    Attempts past the end of the schedule reuse the last delay.
    """
    if not backoff_seconds:
        return 0.0
    index = min(max(attempt - 1, 0), len(backoff_seconds) - 1)
    return backoff_seconds[index]


# --- Submission ---


def mark_submitted(
    intent: PurchaseIntent, provider_reference: str | None
) -> tuple[PurchaseIntent, PaymentRecord]:
    """
    Created -> Submitted once the provider accepted the intent.

    Returns the submitted intent and the pending record that persists it.
    """
    if intent.state != "created":
        raise ValueError(f"Intent {intent.transaction_id} is already {intent.state}")

    submitted = intent.model_copy(update={"state": "submitted"})
    record = PaymentRecord(
        transaction_id=submitted.transaction_id,
        provider=submitted.method,
        provider_reference=provider_reference,
        user_id=submitted.user_id,
        item_kind=submitted.item.kind,
        item_id=submitted.item.id,
        course_id=submitted.item.course_id,
        amount=submitted.amount,
        currency=submitted.currency,
        created_at=submitted.created_at,
        expires_at=submitted.expires_at,
    )
    return submitted, record


# --- Outcomes ---


def outcome_from_record(
    record: PaymentRecord,
    *,
    checkout_url: str | None = None,
    instructions: str | None = None,
    retry_affordance: RetryAffordance | None = None,
) -> PurchaseOutcome:
    """Map a ledger record to the method-agnostic outcome shape."""
    if record.status == "pending":
        state = "submitted"
        default_affordance: RetryAffordance = "none"
    elif record.status == "completed":
        state = "completed"
        default_affordance = "none"
    else:
        state = "failed"
        default_affordance = "retry_purchase"

    return PurchaseOutcome(
        transaction_id=record.transaction_id,
        state=state,
        method=record.provider,
        item_kind=record.item_kind,
        item_id=record.item_id,
        amount=record.amount,
        currency=record.currency,
        retry_affordance=retry_affordance or default_affordance,
        checkout_url=checkout_url,
        instructions=instructions,
        failure_reason=record.failure_reason,
    )


# --- Configuration Loader ---


def load_config_from_rules(rules: Rules) -> PaymentsConfig:
    """Build PaymentsConfig from rules.yaml."""
    payments = rules.payments
    writes = rules.entitlement_writes
    return PaymentsConfig(
        catalog_currency=payments.catalog_currency,
        intent_timeout_minutes=payments.intent_timeout_minutes,
        poll_interval_seconds=payments.poll_interval_seconds,
        methods={
            name: MethodConfig(
                currency=m.currency,
                rate=m.rate,
                minor_units=m.minor_units,
                target_pattern=m.target_pattern,
                enabled=m.enabled,
            )
            for name, m in payments.methods.items()
        },
        write_max_attempts=writes.max_attempts,
        write_backoff_seconds=tuple(writes.backoff_seconds),
    )
