"""
Purchase endpoints.

Endpoints:
- POST /api/purchases/units - Start a unit purchase
- POST /api/purchases/courses - Start a full course purchase
- GET /api/purchases/{transaction_id} - Poll a purchase (owner or admin)

Submission returns 202 with the checkout URL (PayPal) or approval
instructions (mobile money). The frontend then polls until the outcome
is terminal.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.api.deps import get_course_catalog, get_current_profile, get_payment_orchestrator
from src.api.errors import not_found, payment_http_error
from src.api.schemas import ErrorResponse, MethodName, PurchaseOutcomeResponse
from src.components.payments import PaymentError, PaymentOrchestrator
from src.core.ports.db import CourseCatalogPort, CourseNotFound
from src.domain.entities import Course, UserProfile

router = APIRouter()

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse, "description": "Paid but not applied; contact support"},
    502: {"model": ErrorResponse},
}


class UnitPurchaseRequest(BaseModel):
    course_id: str
    unit_id: str
    method: MethodName
    target: str | None = Field(default=None, description="Phone number for mobile money")


class CoursePurchaseRequest(BaseModel):
    course_id: str
    method: MethodName
    target: str | None = None


def _load_course(catalog: CourseCatalogPort, course_id: str) -> Course:
    try:
        return catalog.get_course(course_id)
    except CourseNotFound as e:
        raise not_found("course_not_found", str(e)) from e


@router.post(
    "/units",
    response_model=PurchaseOutcomeResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=_ERROR_RESPONSES,
)
def purchase_unit(
    body: UnitPurchaseRequest,
    profile: UserProfile = Depends(get_current_profile),
    catalog: CourseCatalogPort = Depends(get_course_catalog),
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> PurchaseOutcomeResponse:
    course = _load_course(catalog, body.course_id)
    unit = course.find_unit(body.unit_id)
    if unit is None:
        raise not_found("unit_not_found", f"Unit {body.unit_id} not found in course {course.id}")

    try:
        outcome = orchestrator.submit_purchase(profile, course, unit, body.method, body.target)
    except PaymentError as e:
        raise payment_http_error(e) from e
    return PurchaseOutcomeResponse.from_outcome(outcome)


@router.post(
    "/courses",
    response_model=PurchaseOutcomeResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=_ERROR_RESPONSES,
)
def purchase_course(
    body: CoursePurchaseRequest,
    profile: UserProfile = Depends(get_current_profile),
    catalog: CourseCatalogPort = Depends(get_course_catalog),
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> PurchaseOutcomeResponse:
    course = _load_course(catalog, body.course_id)
    try:
        outcome = orchestrator.submit_course_purchase(profile, course, body.method, body.target)
    except PaymentError as e:
        raise payment_http_error(e) from e
    return PurchaseOutcomeResponse.from_outcome(outcome)


@router.get(
    "/{transaction_id}",
    response_model=PurchaseOutcomeResponse,
    responses=_ERROR_RESPONSES,
)
def poll_purchase(
    transaction_id: str,
    profile: UserProfile = Depends(get_current_profile),
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> PurchaseOutcomeResponse:
    """Current outcome; asks the provider while the payment is pending."""
    try:
        record = orchestrator.record(transaction_id)
        if record.user_id != profile.id and profile.role != "admin":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "forbidden", "message": "Access denied", "retry_affordance": "none"},
            )
        outcome = orchestrator.poll(transaction_id)
    except PaymentError as e:
        raise payment_http_error(e) from e
    return PurchaseOutcomeResponse.from_outcome(outcome)
