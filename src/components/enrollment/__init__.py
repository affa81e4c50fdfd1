"""
Enrollment component (C3).

Public API for course enrollment and profile registration.
"""

from .component import enroll, register
from .models import (
    SELF_ASSIGNABLE_ROLES,
    EnrollmentError,
    EnrollmentRequiresPurchase,
    EnrollmentResult,
    EnrollmentUnauthenticated,
    RegistrationResult,
    RoleNotAssignable,
)
from .ports import UserProfileRepoPort

__all__ = [
    # Functions
    "enroll",
    "register",
    # Models
    "EnrollmentResult",
    "RegistrationResult",
    "SELF_ASSIGNABLE_ROLES",
    # Errors
    "EnrollmentError",
    "EnrollmentRequiresPurchase",
    "EnrollmentUnauthenticated",
    "RoleNotAssignable",
    # Ports
    "UserProfileRepoPort",
]
