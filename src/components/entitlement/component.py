"""
Entitlement component (C1).

Pure functions deciding whether a viewer may access a content unit.

Invariants:
- Anonymous or not-enrolled viewers are always denied with an
  enrollment reason, whatever they have purchased
- The free episode (ordinal 0) is always allowed for enrolled viewers
- PDF pages up to the free threshold are always allowed for enrolled viewers
- No side effects; safe to call on every render
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from src.domain.entities import Course, PdfDocument, UserProfile, VideoEpisode
from src.rules.models import Rules

from .models import (
    Allow,
    Decision,
    DenyRequiresEnrollment,
    DenyRequiresPurchase,
    InvalidCursor,
    PaywallConfig,
    PreviewBudget,
    UnitNotInCourse,
    decision_to_dict,
)
from .ports import CatalogReaderPort, ProfileReaderPort

DEFAULT_CONFIG = PaywallConfig()

ContentUnit = PdfDocument | VideoEpisode


def _check_cursor(unit: PdfDocument, cursor: int | None) -> int:
    # bool is an int subclass; reject it explicitly
    if not isinstance(cursor, int) or isinstance(cursor, bool):
        raise InvalidCursor(unit.id, cursor, unit.total_pages)
    if cursor < 1 or cursor > unit.total_pages:
        raise InvalidCursor(unit.id, cursor, unit.total_pages)
    return cursor


def evaluate(
    user: UserProfile | None,
    course: Course,
    unit: ContentUnit,
    cursor: int | None = None,
    config: PaywallConfig | None = None,
) -> Decision:
    """
    Decide whether `user` may view `unit` at `cursor`.

    Args:
        user: Viewer profile, or None for anonymous viewers
        course: Course the unit is viewed in
        unit: PDF document or video episode
        cursor: Page number for PDFs (1-based); ignored for episodes
        config: Paywall configuration

    Returns:
        Allow, DenyRequiresEnrollment or DenyRequiresPurchase

    Raises:
        InvalidCursor: PDF page outside [1, total_pages]
        UnitNotInCourse: unit is not part of course
    """
    config = config or DEFAULT_CONFIG

    if course.find_unit(unit.id) is None:
        raise UnitNotInCourse(unit.id, course.id)
    if isinstance(unit, PdfDocument):
        page = _check_cursor(unit, cursor)

    if user is None:
        return DenyRequiresEnrollment(course_id=course.id, reason="sign in and enroll to continue")
    if not user.is_enrolled(course.id):
        return DenyRequiresEnrollment(course_id=course.id)

    if isinstance(unit, VideoEpisode):
        if unit.ordinal == config.free_episode_ordinal:
            return Allow(reason="free episode")
        if user.owns_unit(unit.id):
            return Allow(reason="purchased")
        return DenyRequiresPurchase(unit_id=unit.id, price=unit.price)

    if page <= config.pdf_free_page_threshold:
        return Allow(reason="free preview page")
    if user.owns_unit(unit.id):
        return Allow(reason="purchased")
    return DenyRequiresPurchase(unit_id=unit.id, price=unit.price)


def preview_budget(unit: ContentUnit, config: PaywallConfig | None = None) -> PreviewBudget:
    """Free preview for UI messaging ("free: 10 of 42 pages"). Not a gate."""
    config = config or DEFAULT_CONFIG

    if isinstance(unit, PdfDocument):
        return PreviewBudget(
            kind="pdf_pages",
            limit=min(config.pdf_free_page_threshold, unit.total_pages),
            total=unit.total_pages,
        )

    free = 1 if unit.ordinal == config.free_episode_ordinal else 0
    return PreviewBudget(kind="video_episode", limit=free, total=1)


def format_price(price: Decimal | None, currency: str = "USD") -> str:
    if price is None:
        return "free"
    if currency == "USD":
        return f"${price:.2f}"
    return f"{price:.2f} {currency}"


def paywall_info(
    user: UserProfile | None,
    course: Course,
    unit: ContentUnit,
    cursor: int | None = None,
    config: PaywallConfig | None = None,
) -> dict[str, Any]:
    """
    Paywall display information for the frontend.

    Combines the decision with the preview budget and call-to-action text.
    Never includes the content itself.
    """
    config = config or DEFAULT_CONFIG

    decision = evaluate(user, course, unit, cursor, config)
    budget = preview_budget(unit, config)

    info = decision_to_dict(decision)
    info.update(
        {
            "unit_id": unit.id,
            "unit_kind": unit.kind,
            "preview_kind": budget.kind,
            "preview_limit": budget.limit,
            "preview_total": budget.total,
            "show_paywall": not decision.allowed,
            "cta": None,
            "cta_text": None,
            "approaching_limit": False,
        }
    )

    if isinstance(decision, DenyRequiresEnrollment):
        info["cta"] = "enroll"
        info["cta_text"] = "Enroll to start learning"
    elif isinstance(decision, DenyRequiresPurchase):
        label = "PDF" if isinstance(unit, PdfDocument) else "episode"
        info["cta"] = "purchase"
        info["cta_text"] = (
            f"Purchase this {label} for {format_price(decision.price, course.currency)}"
        )
    elif (
        isinstance(unit, PdfDocument)
        and user is not None
        and not user.owns_unit(unit.id)
        and cursor is not None
        and cursor > config.pdf_free_page_threshold - config.approaching_limit_pages
        and budget.is_limited
    ):
        info["approaching_limit"] = True

    return info


def check_unit_access(
    user_id: str | None,
    course_id: str,
    unit_id: str,
    cursor: int | None = None,
    *,
    profiles: ProfileReaderPort,
    catalog: CatalogReaderPort,
    config: PaywallConfig | None = None,
) -> Decision:
    """
    Load the current snapshot and evaluate it.

    Raises:
        CourseNotFound: unknown course
        UnitNotInCourse: unit id not part of the course
        InvalidCursor: page out of range
    """
    course = catalog.get_course(course_id)
    unit = course.find_unit(unit_id)
    if unit is None:
        raise UnitNotInCourse(unit_id, course_id)
    user = profiles.get_user_profile(user_id) if user_id else None
    return evaluate(user, course, unit, cursor, config)


# --- Configuration Loader ---


def load_config_from_rules(rules: Rules) -> PaywallConfig:
    """Build PaywallConfig from rules.yaml."""
    return PaywallConfig(
        pdf_free_page_threshold=rules.paywall.pdf_free_page_threshold,
        free_episode_ordinal=rules.paywall.free_episode_ordinal,
        approaching_limit_pages=rules.paywall.approaching_limit_pages,
    )
