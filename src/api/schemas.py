from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from src.components.payments import ExpiryReport, PurchaseOutcome, ReconcileReport
from src.domain.entities import Course, PaymentRecord, PdfDocument, UserProfile, VideoEpisode

# --- Shared Enums/Types ---
MethodName = Literal["paypal", "mobile_money"]
ProviderOutcome = Literal["completed", "failed"]


def _money(value: Any) -> str | None:
    return str(value) if value is not None else None


# --- Errors ---
class ErrorDetail(BaseModel):
    code: str
    message: str
    retry_affordance: str = "none"


class ErrorResponse(BaseModel):
    detail: ErrorDetail


# --- Catalog ---
class UnitSummary(BaseModel):
    """Unit metadata. Content URLs are never exposed here."""

    id: str
    kind: Literal["pdf", "video"]
    title: str
    price: str | None = None
    total_pages: int | None = None
    ordinal: int | None = None
    duration: str | None = None

    @classmethod
    def from_unit(cls, unit: PdfDocument | VideoEpisode) -> "UnitSummary":
        if isinstance(unit, PdfDocument):
            return cls(
                id=unit.id,
                kind="pdf",
                title=unit.title,
                price=_money(unit.price),
                total_pages=unit.total_pages,
            )
        return cls(
            id=unit.id,
            kind="video",
            title=unit.title,
            price=_money(unit.price),
            ordinal=unit.ordinal,
            duration=unit.duration,
        )


class CourseSummary(BaseModel):
    id: str
    title: str
    instructor_id: str
    description: str = ""
    price: str | None = None
    currency: str = "USD"
    is_free: bool
    unit_count: int

    @classmethod
    def from_course(cls, course: Course) -> "CourseSummary":
        return cls(
            id=course.id,
            title=course.title,
            instructor_id=course.instructor_id,
            description=course.description,
            price=_money(course.price),
            currency=course.currency,
            is_free=course.is_free,
            unit_count=len(course.units),
        )


class CourseDetail(CourseSummary):
    units: list[UnitSummary] = Field(default_factory=list)

    @classmethod
    def from_course(cls, course: Course) -> "CourseDetail":
        summary = CourseSummary.from_course(course)
        return cls(
            **summary.model_dump(),
            units=[UnitSummary.from_unit(u) for u in course.units],
        )


class AccessResponse(BaseModel):
    """Entitlement decision plus paywall display info."""

    decision: str
    allowed: bool
    reason: str
    unit_id: str
    unit_kind: str
    course_id: str | None = None
    price: str | None = None
    preview_kind: str
    preview_limit: int
    preview_total: int
    show_paywall: bool
    cta: str | None = None
    cta_text: str | None = None
    approaching_limit: bool = False
    content_url: str | None = None


# --- Profiles ---
class ProfileResponse(BaseModel):
    id: str
    role: str
    display_name: str
    enrolled_course_ids: list[str]
    purchased_unit_ids: list[str]
    created_at: datetime

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ProfileResponse":
        return cls(
            id=profile.id,
            role=profile.role,
            display_name=profile.display_name,
            enrolled_course_ids=sorted(profile.enrolled_course_ids),
            purchased_unit_ids=sorted(profile.purchased_unit_ids),
            created_at=profile.created_at,
        )


# --- Payments ---
class PurchaseOutcomeResponse(BaseModel):
    transaction_id: str
    state: str
    method: str
    item_kind: str
    item_id: str
    amount: str
    currency: str
    retry_affordance: str
    checkout_url: str | None = None
    instructions: str | None = None
    failure_reason: str | None = None
    is_terminal: bool

    @classmethod
    def from_outcome(cls, outcome: PurchaseOutcome) -> "PurchaseOutcomeResponse":
        return cls(
            transaction_id=outcome.transaction_id,
            state=outcome.state,
            method=outcome.method,
            item_kind=outcome.item_kind,
            item_id=outcome.item_id,
            amount=str(outcome.amount),
            currency=outcome.currency,
            retry_affordance=outcome.retry_affordance,
            checkout_url=outcome.checkout_url,
            instructions=outcome.instructions,
            failure_reason=outcome.failure_reason,
            is_terminal=outcome.is_terminal,
        )


class PaymentRecordResponse(BaseModel):
    transaction_id: str
    provider: str
    provider_reference: str | None
    user_id: str
    item_kind: str
    item_id: str
    course_id: str
    amount: str
    currency: str
    status: str
    failure_reason: str | None
    created_at: datetime
    expires_at: datetime
    resolved_at: datetime | None

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PaymentRecordResponse":
        data = record.model_dump()
        data["amount"] = str(record.amount)
        return cls(**data)


class ExpiryReportResponse(BaseModel):
    expired: list[str]
    completed: list[str]
    unapplied: list[str]

    @classmethod
    def from_report(cls, report: ExpiryReport) -> "ExpiryReportResponse":
        return cls(
            expired=list(report.expired),
            completed=list(report.completed),
            unapplied=list(report.unapplied),
        )


class ReconcileReportResponse(BaseModel):
    checked: int
    repaired: list[str]
    failed: list[str]

    @classmethod
    def from_report(cls, report: ReconcileReport) -> "ReconcileReportResponse":
        return cls(checked=report.checked, repaired=list(report.repaired), failed=list(report.failed))
