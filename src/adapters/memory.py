"""
In-memory store adapters.

Implement the catalog, profile and ledger ports with process-local dicts.
Suitable for tests and single-process dev runs. Every write holds a lock
so read-modify-write sequences are atomic per instance.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import datetime

from src.core.ports.db import (
    CourseNotFound,
    DuplicatePendingPayment,
    EntitlementMerge,
    EntitlementWriteConflict,
    ProfileNotFound,
)
from src.domain.entities import (
    Course,
    PaymentRecord,
    PaymentStatus,
    RoleType,
    UserProfile,
)


class InMemoryCourseCatalog:
    """In-memory course catalog."""

    def __init__(self, courses: Iterable[Course] = ()) -> None:
        self._courses: dict[str, Course] = {c.id: c for c in courses}

    def get_course(self, course_id: str) -> Course:
        course = self._courses.get(course_id)
        if course is None:
            raise CourseNotFound(course_id)
        return course

    def list_courses(self) -> list[Course]:
        return sorted(self._courses.values(), key=lambda c: c.created_at)

    def save_course(self, course: Course) -> Course:
        self._courses[course.id] = course
        return course


class InMemoryUserProfileRepo:
    """In-memory entitlement store."""

    def __init__(self, profiles: Iterable[UserProfile] = ()) -> None:
        self._lock = threading.Lock()
        self._profiles: dict[str, UserProfile] = {p.id: p for p in profiles}
        self._applied_keys: dict[str, str] = {}
        self._conflicts_to_raise = 0
        self.merge_calls = 0

    def get_user_profile(self, user_id: str) -> UserProfile | None:
        return self._profiles.get(user_id)

    def create_profile(self, profile: UserProfile) -> UserProfile:
        with self._lock:
            existing = self._profiles.get(profile.id)
            if existing is not None:
                return existing
            self._profiles[profile.id] = profile
            return profile

    def set_role(self, user_id: str, role: RoleType) -> UserProfile:
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                raise ProfileNotFound(user_id)
            updated = profile.model_copy(update={"role": role})
            self._profiles[user_id] = updated
            return updated

    def atomic_merge_entitlement(self, user_id: str, merge: EntitlementMerge) -> UserProfile:
        with self._lock:
            self.merge_calls += 1
            if self._conflicts_to_raise > 0:
                self._conflicts_to_raise -= 1
                raise EntitlementWriteConflict(user_id, "injected conflict")

            profile = self._profiles.get(user_id)
            if profile is None:
                raise ProfileNotFound(user_id)

            update: dict[str, frozenset[str]] = {}
            if merge.add_course is not None:
                update["enrolled_course_ids"] = profile.enrolled_course_ids | {merge.add_course}
            if merge.add_unit is not None:
                update["purchased_unit_ids"] = profile.purchased_unit_ids | {merge.add_unit}

            updated = profile.model_copy(update=update)
            self._profiles[user_id] = updated
            if merge.idempotency_key:
                self._applied_keys.setdefault(merge.idempotency_key, user_id)
            return updated

    # --- Testing Helpers ---

    def fail_next_merges(self, count: int) -> None:
        """Make the next `count` merges raise EntitlementWriteConflict."""
        with self._lock:
            self._conflicts_to_raise = count

    def applied_keys(self) -> set[str]:
        return set(self._applied_keys)


class InMemoryPaymentLedger:
    """In-memory append-only payment ledger."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, PaymentRecord] = {}

    def append(self, record: PaymentRecord) -> PaymentRecord:
        with self._lock:
            if record.transaction_id in self._records:
                raise ValueError(f"Transaction {record.transaction_id} already recorded")
            if record.status == "pending":
                for existing in self._records.values():
                    if (
                        existing.status == "pending"
                        and existing.user_id == record.user_id
                        and existing.item_id == record.item_id
                    ):
                        raise DuplicatePendingPayment(record.user_id, record.item_id)
            self._records[record.transaction_id] = record
            return record

    def get(self, transaction_id: str) -> PaymentRecord | None:
        with self._lock:
            return self._records.get(transaction_id)

    def find_pending(self, user_id: str, item_id: str) -> PaymentRecord | None:
        with self._lock:
            for record in self._records.values():
                if record.status == "pending" and record.user_id == user_id and record.item_id == item_id:
                    return record
        return None

    def mark_terminal(
        self,
        transaction_id: str,
        status: PaymentStatus,
        resolved_at: datetime,
        failure_reason: str | None = None,
    ) -> PaymentRecord | None:
        with self._lock:
            record = self._records.get(transaction_id)
            if record is None or record.status != "pending":
                return None
            updated = record.model_copy(
                update={
                    "status": status,
                    "resolved_at": resolved_at,
                    "failure_reason": failure_reason,
                }
            )
            self._records[transaction_id] = updated
            return updated

    def list_pending_expired(self, now_utc: datetime) -> list[PaymentRecord]:
        with self._lock:
            records = [r for r in self._records.values() if r.status == "pending" and r.expires_at <= now_utc]
        return sorted(records, key=lambda r: r.created_at)

    def list_by_status(self, status: PaymentStatus | None = None, limit: int = 100) -> list[PaymentRecord]:
        with self._lock:
            records = [r for r in self._records.values() if status is None or r.status == status]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def list_completed_after(
        self, after: PaymentRecord | None = None, limit: int = 1000
    ) -> list[PaymentRecord]:
        with self._lock:
            records = [r for r in self._records.values() if r.status == "completed"]
        records.sort(key=lambda r: (r.created_at, r.transaction_id))
        if after is not None:
            cursor = (after.created_at, after.transaction_id)
            records = [r for r in records if (r.created_at, r.transaction_id) > cursor]
        return records[:limit]

    def list_by_user(self, user_id: str) -> list[PaymentRecord]:
        with self._lock:
            records = [r for r in self._records.values() if r.user_id == user_id]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records
