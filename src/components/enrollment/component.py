"""
Enrollment component (C3).

Free-course enrollment through the atomic entitlement merge, and
profile registration without role self-escalation.
"""

from __future__ import annotations

import logging

from src.domain.entities import Course, RoleType, UserProfile

from .models import (
    SELF_ASSIGNABLE_ROLES,
    EnrollmentRequiresPurchase,
    EnrollmentResult,
    EnrollmentUnauthenticated,
    RegistrationResult,
    RoleNotAssignable,
)
from .ports import EntitlementMerge, UserProfileRepoPort

logger = logging.getLogger(__name__)


def enroll(
    user: UserProfile | None,
    course: Course,
    *,
    profiles: UserProfileRepoPort,
) -> EnrollmentResult:
    """
    Enroll `user` in a free course.

    Idempotent: enrolling twice returns already_enrolled=True.

    Raises:
        EnrollmentUnauthenticated: no user
        EnrollmentRequiresPurchase: course has a price
        ProfileNotFound: user has no profile yet
    """
    if user is None:
        raise EnrollmentUnauthenticated()

    if user.is_enrolled(course.id):
        return EnrollmentResult(course_id=course.id, profile=user, already_enrolled=True)

    if course.price is not None and course.price > 0:
        raise EnrollmentRequiresPurchase(course.id, course.price, course.currency)

    profile = profiles.atomic_merge_entitlement(user.id, EntitlementMerge(add_course=course.id))
    logger.info("User %s enrolled in %s", user.id, course.id)
    return EnrollmentResult(course_id=course.id, profile=profile)


def register(
    user_id: str,
    role: RoleType = "student",
    display_name: str = "",
    *,
    profiles: UserProfileRepoPort,
) -> RegistrationResult:
    """
    Create the caller's profile if absent.

    Returning users get their stored profile back unchanged, role included.

    Raises:
        RoleNotAssignable: role outside student/teacher
    """
    if role not in SELF_ASSIGNABLE_ROLES:
        raise RoleNotAssignable(role)

    existing = profiles.get_user_profile(user_id)
    if existing is not None:
        return RegistrationResult(profile=existing, created=False)

    stored = profiles.create_profile(
        UserProfile(id=user_id, role=role, display_name=display_name)
    )
    logger.info("Registered profile %s as %s", user_id, stored.role)
    return RegistrationResult(profile=stored, created=True)
