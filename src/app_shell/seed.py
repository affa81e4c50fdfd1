"""
Demo catalog and users for local runs.

Unit ids are globally unique (course slug + unit slug); nothing relies on
string prefixes to tell PDFs from episodes.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from src.core.ports.db import CourseCatalogPort, EntitlementMerge, UserProfileRepoPort
from src.domain.entities import Course, PdfDocument, UserProfile, VideoEpisode

logger = logging.getLogger(__name__)


def demo_courses() -> list[Course]:
    return [
        Course(
            id="react-fundamentals",
            title="React Fundamentals",
            instructor_id="instructor1",
            description="Learn the basics of React development",
            units=[
                VideoEpisode(
                    id="react-fundamentals-ep1",
                    title="Introduction to React",
                    ordinal=0,
                    price=Decimal("3.00"),
                    duration="15:30",
                ),
                VideoEpisode(
                    id="react-fundamentals-ep2",
                    title="Components and Props",
                    ordinal=1,
                    price=Decimal("3.00"),
                    duration="20:45",
                ),
                PdfDocument(
                    id="react-fundamentals-notes",
                    title="Course Notes",
                    total_pages=42,
                    price=Decimal("2.00"),
                ),
            ],
        ),
        Course(
            id="javascript-es6",
            title="JavaScript ES6+",
            instructor_id="instructor2",
            description="Modern JavaScript features and best practices",
            price=Decimal("29.99"),
            units=[
                VideoEpisode(
                    id="javascript-es6-ep1",
                    title="Arrow Functions",
                    ordinal=0,
                    price=Decimal("3.00"),
                    duration="12:20",
                ),
                VideoEpisode(
                    id="javascript-es6-ep2",
                    title="Destructuring",
                    ordinal=1,
                    price=Decimal("3.00"),
                    duration="18:15",
                ),
            ],
        ),
        Course(
            id="ui-ux-design",
            title="UI/UX Design Principles",
            instructor_id="instructor3",
            description="Create beautiful and user-friendly interfaces",
            price=Decimal("19.99"),
            units=[
                VideoEpisode(
                    id="ui-ux-design-ep1",
                    title="Design Fundamentals",
                    ordinal=0,
                    price=Decimal("3.00"),
                    duration="25:10",
                ),
                VideoEpisode(
                    id="ui-ux-design-ep2",
                    title="Color Theory",
                    ordinal=1,
                    price=Decimal("3.00"),
                    duration="22:30",
                ),
                PdfDocument(
                    id="ui-ux-design-workbook",
                    title="Design Workbook",
                    total_pages=18,
                    price=Decimal("2.00"),
                ),
            ],
        ),
    ]


def seed_demo_data(catalog: CourseCatalogPort, profiles: UserProfileRepoPort) -> int:
    """Upsert the demo catalog and demo users. Returns the course count."""
    courses = demo_courses()
    for course in courses:
        catalog.save_course(course)

    student = profiles.create_profile(UserProfile(id="user1", display_name="Demo Student"))
    profiles.create_profile(UserProfile(id="user2", role="teacher", display_name="Demo Teacher"))
    for course_id in ("react-fundamentals", "javascript-es6"):
        profiles.atomic_merge_entitlement(student.id, EntitlementMerge(add_course=course_id))
    profiles.atomic_merge_entitlement(
        student.id, EntitlementMerge(add_unit="javascript-es6-ep2")
    )

    logger.info("Seeded %d courses and 2 demo users", len(courses))
    return len(courses)
