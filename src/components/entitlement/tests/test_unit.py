"""
Entitlement component unit tests (C1).

Covers the decision algorithm, cursor preconditions, preview budgets
and the paywall display payload.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from src.adapters.memory import InMemoryCourseCatalog, InMemoryUserProfileRepo
from src.components.entitlement import (
    Allow,
    DenyRequiresEnrollment,
    DenyRequiresPurchase,
    InvalidCursor,
    PaywallConfig,
    UnitNotInCourse,
    check_unit_access,
    decision_to_dict,
    evaluate,
    format_price,
    load_config_from_rules,
    paywall_info,
    preview_budget,
)
from src.core.ports.db import CourseNotFound
from src.domain.entities import Course, PdfDocument, UserProfile, VideoEpisode
from src.rules.loader import parse_rules

# --- Fixtures ---

E1 = VideoEpisode(id="ep-1", title="Welcome", ordinal=0, price=Decimal("3.00"))
E2 = VideoEpisode(id="ep-2", title="Variables", ordinal=1, price=Decimal("3.00"))
PDF = PdfDocument(id="pdf-1", title="Workbook", total_pages=42, price=Decimal("2.00"))
SHORT_PDF = PdfDocument(id="pdf-short", title="Cheat sheet", total_pages=4, price=Decimal("1.00"))


@pytest.fixture
def course() -> Course:
    return Course(
        id="course-py",
        title="Python Foundations",
        instructor_id="teacher-1",
        units=[E1, E2, PDF, SHORT_PDF],
    )


@pytest.fixture
def enrolled() -> UserProfile:
    return UserProfile(id="u1", enrolled_course_ids=frozenset({"course-py"}))


@pytest.fixture
def outsider() -> UserProfile:
    # Purchases without enrollment never grant access
    return UserProfile(id="u2", purchased_unit_ids=frozenset({"ep-2", "pdf-1"}))


# --- Decision Algorithm ---


class TestEnrollmentGate:
    """Step 1: anonymous and not-enrolled viewers."""

    @pytest.mark.parametrize("unit,cursor", [(E1, None), (E2, None), (PDF, 1), (PDF, 42)])
    def test_anonymous_denied(self, course: Course, unit, cursor) -> None:
        decision = evaluate(None, course, unit, cursor)
        assert isinstance(decision, DenyRequiresEnrollment)
        assert decision.course_id == "course-py"

    @pytest.mark.parametrize("unit,cursor", [(E1, None), (E2, None), (PDF, 1), (PDF, 11)])
    def test_not_enrolled_denied_regardless_of_purchases(
        self, course: Course, outsider: UserProfile, unit, cursor
    ) -> None:
        decision = evaluate(outsider, course, unit, cursor)
        assert isinstance(decision, DenyRequiresEnrollment)


class TestVideoEpisodes:
    """Step 2: episodes."""

    def test_first_episode_free(self, course: Course, enrolled: UserProfile) -> None:
        decision = evaluate(enrolled, course, E1)
        assert isinstance(decision, Allow)
        assert decision.reason == "free episode"

    def test_paid_episode_requires_purchase(self, course: Course, enrolled: UserProfile) -> None:
        decision = evaluate(enrolled, course, E2)
        assert isinstance(decision, DenyRequiresPurchase)
        assert decision.unit_id == "ep-2"
        assert decision.price == Decimal("3.00")

    def test_purchased_episode_allowed(self, course: Course, enrolled: UserProfile) -> None:
        owner = enrolled.model_copy(update={"purchased_unit_ids": frozenset({"ep-2"})})
        assert evaluate(owner, course, E2) == Allow(reason="purchased")

    def test_cursor_ignored_for_episodes(self, course: Course, enrolled: UserProfile) -> None:
        assert evaluate(enrolled, course, E1, cursor=999).allowed


class TestPdfDocuments:
    """Step 3: PDF pages."""

    def test_free_threshold_inclusive(self, course: Course, enrolled: UserProfile) -> None:
        assert evaluate(enrolled, course, PDF, 10).allowed
        decision = evaluate(enrolled, course, PDF, 11)
        assert isinstance(decision, DenyRequiresPurchase)
        assert decision.price == Decimal("2.00")

    def test_purchased_pdf_all_pages(self, course: Course, enrolled: UserProfile) -> None:
        owner = enrolled.model_copy(update={"purchased_unit_ids": frozenset({"pdf-1"})})
        assert evaluate(owner, course, PDF, 11).allowed
        assert evaluate(owner, course, PDF, 42).allowed

    def test_short_pdf_entirely_free(self, course: Course, enrolled: UserProfile) -> None:
        assert all(evaluate(enrolled, course, SHORT_PDF, p).allowed for p in range(1, 5))

    def test_custom_threshold(self, course: Course, enrolled: UserProfile) -> None:
        config = PaywallConfig(pdf_free_page_threshold=3)
        assert evaluate(enrolled, course, PDF, 3, config).allowed
        assert not evaluate(enrolled, course, PDF, 4, config).allowed


class TestPreconditions:
    """Caller defects raise."""

    @pytest.mark.parametrize("cursor", [None, 0, -1, 43, True, "5", 2.5])
    def test_invalid_cursor(self, course: Course, enrolled: UserProfile, cursor) -> None:
        with pytest.raises(InvalidCursor):
            evaluate(enrolled, course, PDF, cursor)

    def test_invalid_cursor_checked_before_identity(self, course: Course) -> None:
        with pytest.raises(InvalidCursor):
            evaluate(None, course, PDF, 0)

    def test_unit_from_other_course(self, course: Course, enrolled: UserProfile) -> None:
        stray = VideoEpisode(id="ep-other", ordinal=0)
        with pytest.raises(UnitNotInCourse):
            evaluate(enrolled, course, stray)


# --- Preview and Paywall ---


class TestPreviewBudget:
    def test_pdf_budget(self) -> None:
        budget = preview_budget(PDF)
        assert (budget.kind, budget.limit, budget.total) == ("pdf_pages", 10, 42)
        assert budget.is_limited

    def test_short_pdf_not_limited(self) -> None:
        assert not preview_budget(SHORT_PDF).is_limited

    def test_episode_budget(self) -> None:
        assert preview_budget(E1).limit == 1
        assert preview_budget(E2).limit == 0


class TestPaywallInfo:
    """Frontend paywall payload."""

    def test_enroll_cta(self, course: Course) -> None:
        info = paywall_info(None, course, E2)
        assert info["show_paywall"] is True
        assert info["cta"] == "enroll"
        assert info["cta_text"] == "Enroll to start learning"

    def test_purchase_cta_pdf(self, course: Course, enrolled: UserProfile) -> None:
        info = paywall_info(enrolled, course, PDF, 11)
        assert info["decision"] == "deny_requires_purchase"
        assert info["cta_text"] == "Purchase this PDF for $2.00"
        assert info["price"] == "2.00"

    def test_purchase_cta_episode(self, course: Course, enrolled: UserProfile) -> None:
        info = paywall_info(enrolled, course, E2)
        assert info["cta_text"] == "Purchase this episode for $3.00"

    @pytest.mark.parametrize("page,expected", [(8, False), (9, True), (10, True)])
    def test_approaching_limit(
        self, course: Course, enrolled: UserProfile, page: int, expected: bool
    ) -> None:
        info = paywall_info(enrolled, course, PDF, page)
        assert info["allowed"] is True
        assert info["approaching_limit"] is expected

    def test_no_warning_for_owner(self, course: Course, enrolled: UserProfile) -> None:
        owner = enrolled.model_copy(update={"purchased_unit_ids": frozenset({"pdf-1"})})
        assert paywall_info(owner, course, PDF, 10)["approaching_limit"] is False

    def test_no_warning_when_pdf_fully_free(self, course: Course, enrolled: UserProfile) -> None:
        assert paywall_info(enrolled, course, SHORT_PDF, 4)["approaching_limit"] is False


class TestHelpers:
    def test_format_price(self) -> None:
        assert format_price(Decimal("2")) == "$2.00"
        assert format_price(Decimal("240"), "KES") == "240.00 KES"
        assert format_price(None) == "free"

    def test_decision_to_dict(self) -> None:
        data = decision_to_dict(DenyRequiresPurchase(unit_id="pdf-1", price=Decimal("2.00")))
        assert data == {
            "decision": "deny_requires_purchase",
            "allowed": False,
            "reason": "purchase required",
            "unit_id": "pdf-1",
            "price": "2.00",
        }


class TestCheckUnitAccess:
    """Snapshot loading through ports."""

    def test_loads_profile_and_course(self, course: Course, enrolled: UserProfile) -> None:
        decision = check_unit_access(
            "u1",
            "course-py",
            "pdf-1",
            5,
            profiles=InMemoryUserProfileRepo([enrolled]),
            catalog=InMemoryCourseCatalog([course]),
        )
        assert decision.allowed

    def test_unknown_user_is_anonymous(self, course: Course) -> None:
        decision = check_unit_access(
            "ghost",
            "course-py",
            "ep-1",
            profiles=InMemoryUserProfileRepo(),
            catalog=InMemoryCourseCatalog([course]),
        )
        assert isinstance(decision, DenyRequiresEnrollment)

    def test_unknown_course(self) -> None:
        with pytest.raises(CourseNotFound):
            check_unit_access(
                None,
                "missing",
                "ep-1",
                profiles=InMemoryUserProfileRepo(),
                catalog=InMemoryCourseCatalog(),
            )

    def test_unknown_unit(self, course: Course) -> None:
        with pytest.raises(UnitNotInCourse):
            check_unit_access(
                None,
                "course-py",
                "ep-404",
                profiles=InMemoryUserProfileRepo(),
                catalog=InMemoryCourseCatalog([course]),
            )


class TestRulesConfig:
    def test_load_config_from_rules(self) -> None:
        rules = parse_rules(
            """
project: {slug: test, rules_version: "1"}
paywall: {pdf_free_page_threshold: 5, free_episode_ordinal: 0, approaching_limit_pages: 1}
payments: {methods: {}}
entitlement_writes: {}
ops: {}
"""
        )
        config = load_config_from_rules(rules)
        assert config.pdf_free_page_threshold == 5
        assert config.approaching_limit_pages == 1
