"""
Store Adapter Interfaces (P1).

Protocol-based interfaces for the managed backend collaborators:
the content catalog, the entitlement store (user profiles) and the
payment ledger. Implementations: SQLite and in-memory.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from src.domain.entities import (
    Course,
    PaymentRecord,
    PaymentStatus,
    RoleType,
    UserProfile,
)

# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------


class StoreError(Exception):
    """Base class for store errors."""


class CourseNotFound(StoreError):
    def __init__(self, course_id: str) -> None:
        self.course_id = course_id
        super().__init__(f"Course not found: {course_id}")


class ProfileNotFound(StoreError):
    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User profile not found: {user_id}")


class EntitlementWriteConflict(StoreError):
    """
    Raised when the atomic merge could not obtain the user document.

    Transient; callers retry with backoff.
    """

    def __init__(self, user_id: str, reason: str = "write conflict") -> None:
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"Entitlement write conflict for {user_id}: {reason}")


class DuplicatePendingPayment(StoreError):
    """Raised when a second pending record is appended for the same (user, item)."""

    def __init__(self, user_id: str, item_id: str) -> None:
        self.user_id = user_id
        self.item_id = item_id
        super().__init__(f"Pending payment already exists for {user_id}/{item_id}")


# -----------------------------------------------------------------------------
# Content Catalog
# -----------------------------------------------------------------------------


class CourseCatalogPort(Protocol):
    """Read access to course documents (plus save for seeding/authoring)."""

    def get_course(self, course_id: str) -> Course:
        """Get a course by ID. Raises CourseNotFound."""
        ...

    def list_courses(self) -> list[Course]:
        """List all courses."""
        ...

    def save_course(self, course: Course) -> Course:
        """Save or update a course (upsert)."""
        ...


# -----------------------------------------------------------------------------
# Entitlement Store
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class EntitlementMerge:
    """
    Set-union update for one user document.

    idempotency_key is the payment transaction id when the merge comes
    from a purchase; it is recorded next to the grant.
    """

    add_course: str | None = None
    add_unit: str | None = None
    idempotency_key: str | None = None

    def is_empty(self) -> bool:
        return self.add_course is None and self.add_unit is None


class UserProfileRepoPort(Protocol):
    """
    Repository for user profiles.

    Invariants:
    - enrolled_course_ids / purchased_unit_ids only grow
    - every write is an atomic read-modify-write on one user document
    """

    def get_user_profile(self, user_id: str) -> UserProfile | None:
        """Get profile by user id."""
        ...

    def create_profile(self, profile: UserProfile) -> UserProfile:
        """Insert the profile if absent. Returns the stored profile."""
        ...

    def set_role(self, user_id: str, role: RoleType) -> UserProfile:
        """Operator role assignment. Raises ProfileNotFound."""
        ...

    def atomic_merge_entitlement(self, user_id: str, merge: EntitlementMerge) -> UserProfile:
        """
        Union the merge into the user's sets in one atomic step.

        Raises ProfileNotFound, EntitlementWriteConflict.
        """
        ...


# -----------------------------------------------------------------------------
# Payment Ledger
# -----------------------------------------------------------------------------


class PaymentLedgerPort(Protocol):
    """
    Append-only ledger of payment records.

    Invariants:
    - at most one pending record per (user_id, item_id)
    - pending -> completed | failed happens at most once per transaction id
    """

    def append(self, record: PaymentRecord) -> PaymentRecord:
        """Insert a new record. Raises DuplicatePendingPayment."""
        ...

    def get(self, transaction_id: str) -> PaymentRecord | None:
        """Get record by transaction id."""
        ...

    def find_pending(self, user_id: str, item_id: str) -> PaymentRecord | None:
        """Get the pending record for (user, item), if any."""
        ...

    def mark_terminal(
        self,
        transaction_id: str,
        status: PaymentStatus,
        resolved_at: datetime,
        failure_reason: str | None = None,
    ) -> PaymentRecord | None:
        """
        Transition a pending record to a terminal status.

        Returns the updated record, or None if the record was not pending.
        """
        ...

    def list_pending_expired(self, now_utc: datetime) -> list[PaymentRecord]:
        """List pending records whose expires_at is at or before now."""
        ...

    def list_by_status(self, status: PaymentStatus | None = None, limit: int = 100) -> list[PaymentRecord]:
        """List records, newest first, optionally filtered by status."""
        ...

    def list_completed_after(
        self, after: PaymentRecord | None = None, limit: int = 1000
    ) -> list[PaymentRecord]:
        """
        Page through completed records, oldest first.

        Records are ordered by (created_at, transaction_id); `after` is the
        last record of the previous page, None for the first page.
        """
        ...

    def list_by_user(self, user_id: str) -> list[PaymentRecord]:
        """List a user's records, newest first."""
        ...
