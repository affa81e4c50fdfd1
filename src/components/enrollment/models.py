"""
Enrollment component models (C3).

Results and errors for course enrollment and profile registration.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from src.domain.entities import RoleType, UserProfile

# Roles a user may pick for themselves at registration.
SELF_ASSIGNABLE_ROLES: frozenset[RoleType] = frozenset({"student", "teacher"})


@dataclass(frozen=True)
class EnrollmentResult:
    """Outcome of an enroll call."""

    course_id: str
    profile: UserProfile
    already_enrolled: bool = False


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a register call. `created` is False for returning users."""

    profile: UserProfile
    created: bool = True


# --- Errors ---


class EnrollmentError(Exception):
    """Base enrollment error."""


class EnrollmentUnauthenticated(EnrollmentError):
    def __init__(self) -> None:
        super().__init__("Sign in to enroll")


class EnrollmentRequiresPurchase(EnrollmentError):
    """Priced course; the caller starts a course purchase instead."""

    def __init__(self, course_id: str, price: Decimal, currency: str = "USD") -> None:
        self.course_id = course_id
        self.price = price
        self.currency = currency
        super().__init__(f"Course {course_id} requires purchase ({price} {currency})")


class RoleNotAssignable(EnrollmentError):
    """Role cannot be self-assigned at registration."""

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f"Role '{role}' cannot be chosen at registration")
