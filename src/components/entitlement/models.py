"""
Entitlement component models (C1).

Decision types, preview budget and paywall configuration for the
content entitlement gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar, Literal

# --- Decisions ---

DecisionKind = Literal["allow", "deny_requires_enrollment", "deny_requires_purchase"]


@dataclass(frozen=True)
class Allow:
    """Render the content."""

    kind: ClassVar[DecisionKind] = "allow"
    reason: str = "entitled"

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class DenyRequiresEnrollment:
    """Viewer is anonymous or not enrolled; offer enrollment, not payment."""

    kind: ClassVar[DecisionKind] = "deny_requires_enrollment"
    course_id: str
    reason: str = "enrollment required"

    @property
    def allowed(self) -> bool:
        return False


@dataclass(frozen=True)
class DenyRequiresPurchase:
    """Viewer is enrolled but lacks this unit; offer checkout."""

    kind: ClassVar[DecisionKind] = "deny_requires_purchase"
    unit_id: str
    price: Decimal | None
    reason: str = "purchase required"

    @property
    def allowed(self) -> bool:
        return False


Decision = Allow | DenyRequiresEnrollment | DenyRequiresPurchase


def decision_to_dict(decision: Decision) -> dict[str, Any]:
    """Flatten a decision for JSON responses."""
    data: dict[str, Any] = {
        "decision": decision.kind,
        "allowed": decision.allowed,
        "reason": decision.reason,
    }
    if isinstance(decision, DenyRequiresEnrollment):
        data["course_id"] = decision.course_id
    if isinstance(decision, DenyRequiresPurchase):
        data["unit_id"] = decision.unit_id
        data["price"] = str(decision.price) if decision.price is not None else None
    return data


# --- Preview Budget ---

PreviewKind = Literal["pdf_pages", "video_episode"]


@dataclass(frozen=True)
class PreviewBudget:
    """
    Free preview available without purchase.

    For PDFs, limit/total are pages. For episodes, limit is 1 when the
    episode is the free one and 0 otherwise, out of a total of 1.
    """

    kind: PreviewKind
    limit: int
    total: int

    @property
    def is_limited(self) -> bool:
        return self.limit < self.total


# --- Configuration ---


@dataclass(frozen=True)
class PaywallConfig:
    """Paywall configuration from rules."""

    pdf_free_page_threshold: int = 10
    free_episode_ordinal: int = 0
    approaching_limit_pages: int = 2


# --- Errors ---


class EntitlementError(Exception):
    """
    Base entitlement precondition error.

    These are caller defects, never user-facing failures.
    """


class InvalidCursor(EntitlementError):
    """PDF page cursor outside [1, total_pages]."""

    def __init__(self, unit_id: str, cursor: object, total_pages: int) -> None:
        self.unit_id = unit_id
        self.cursor = cursor
        self.total_pages = total_pages
        super().__init__(
            f"Invalid page {cursor!r} for unit {unit_id} (valid: 1..{total_pages})"
        )


class UnitNotInCourse(EntitlementError):
    """Unit does not belong to the course it was evaluated against."""

    def __init__(self, unit_id: str, course_id: str) -> None:
        self.unit_id = unit_id
        self.course_id = course_id
        super().__init__(f"Unit {unit_id} is not part of course {course_id}")
