"""
Entitlement component ports (C1).

Read-only snapshots the gate evaluates against.
"""

from __future__ import annotations

from typing import Protocol

from src.domain.entities import Course, UserProfile


class ProfileReaderPort(Protocol):
    """Read access to the entitlement store."""

    def get_user_profile(self, user_id: str) -> UserProfile | None:
        """Get profile by user id."""
        ...


class CatalogReaderPort(Protocol):
    """Read access to the content catalog."""

    def get_course(self, course_id: str) -> Course:
        """Get course by id. Raises CourseNotFound."""
        ...
