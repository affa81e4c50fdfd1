"""
Course catalog, access check and enrollment endpoints.

Endpoints:
- GET /api/courses - List courses
- GET /api/courses/{course_id} - Course detail with unit metadata
- GET /api/courses/{course_id}/units/{unit_id}/access - Decision + paywall info
- POST /api/courses/{course_id}/enroll - Enroll in a free course
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from src.api.deps import (
    get_course_catalog,
    get_current_profile,
    get_current_profile_optional,
    get_paywall_config,
    get_profile_repo,
)
from src.api.errors import enrollment_http_error, not_found
from src.api.schemas import AccessResponse, CourseDetail, CourseSummary, ErrorResponse
from src.components.enrollment import EnrollmentError, enroll
from src.components.entitlement import EntitlementError, PaywallConfig, paywall_info
from src.core.ports.db import CourseCatalogPort, CourseNotFound, UserProfileRepoPort
from src.domain.entities import Course, UserProfile

logger = logging.getLogger(__name__)

router = APIRouter()


class EnrollResponse(BaseModel):
    course_id: str
    enrolled: bool
    already_enrolled: bool


def _load_course(catalog: CourseCatalogPort, course_id: str) -> Course:
    try:
        return catalog.get_course(course_id)
    except CourseNotFound as e:
        raise not_found("course_not_found", str(e)) from e


@router.get("", response_model=list[CourseSummary])
def list_courses(
    catalog: CourseCatalogPort = Depends(get_course_catalog),
) -> list[CourseSummary]:
    return [CourseSummary.from_course(c) for c in catalog.list_courses()]


@router.get(
    "/{course_id}",
    response_model=CourseDetail,
    responses={404: {"model": ErrorResponse}},
)
def get_course(
    course_id: str,
    catalog: CourseCatalogPort = Depends(get_course_catalog),
) -> CourseDetail:
    return CourseDetail.from_course(_load_course(catalog, course_id))


@router.get(
    "/{course_id}/units/{unit_id}/access",
    response_model=AccessResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Check access to a content unit",
)
def check_access(
    course_id: str,
    unit_id: str,
    page: int | None = Query(default=None, description="1-based page number for PDFs"),
    catalog: CourseCatalogPort = Depends(get_course_catalog),
    viewer: UserProfile | None = Depends(get_current_profile_optional),
    config: PaywallConfig = Depends(get_paywall_config),
) -> AccessResponse:
    """
    Evaluate the viewer's entitlement to one unit.

    Anonymous callers are allowed and always get an enrollment paywall.
    The content URL is only returned when access is allowed.
    """
    course = _load_course(catalog, course_id)
    unit = course.find_unit(unit_id)
    if unit is None:
        raise not_found("unit_not_found", f"Unit {unit_id} not found in course {course_id}")

    try:
        info = paywall_info(viewer, course, unit, page, config)
    except EntitlementError as e:
        # Caller bug (bad page number); logged, shown as a generic validation error
        logger.warning("Rejected access check: %s", e)
        raise HTTPException(
            status_code=422,
            detail={"code": "invalid_request", "message": "Invalid page", "retry_affordance": "none"},
        ) from e

    if info["allowed"]:
        info["content_url"] = unit.url
    return AccessResponse(**info)


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollResponse,
    responses={402: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def enroll_in_course(
    course_id: str,
    catalog: CourseCatalogPort = Depends(get_course_catalog),
    profile: UserProfile = Depends(get_current_profile),
    profiles: UserProfileRepoPort = Depends(get_profile_repo),
) -> EnrollResponse:
    """Enroll in a free course. Priced courses answer 402 with the price."""
    course = _load_course(catalog, course_id)
    try:
        result = enroll(profile, course, profiles=profiles)
    except EnrollmentError as e:
        raise enrollment_http_error(e) from e

    return EnrollResponse(
        course_id=course.id,
        enrolled=True,
        already_enrolled=result.already_enrolled,
    )
