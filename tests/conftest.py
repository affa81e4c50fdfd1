import os
from decimal import Decimal
from pathlib import Path

import pytest

from src.adapters.clock import FrozenClock
from src.adapters.memory import (
    InMemoryCourseCatalog,
    InMemoryPaymentLedger,
    InMemoryUserProfileRepo,
)
from src.adapters.payment_stub import PaymentStubAdapter
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.components.payments import PaymentOrchestrator, PaymentsConfig
from src.domain.entities import Course, PdfDocument, UserProfile, VideoEpisode
from src.rules.loader import load_rules
from src.rules.models import Rules

ROOT = Path(__file__).resolve().parents[1]
MIGRATIONS_DIR = ROOT / "migrations"
RULES_PATH = ROOT / "rules.yaml"


@pytest.fixture
def test_data_dir(tmp_path):
    return str(tmp_path)


@pytest.fixture
def db_path(test_data_dir) -> str:
    """Temporary SQLite database with all migrations applied."""
    path = os.path.join(test_data_dir, "lms.db")
    SQLiteMigrator(path, str(MIGRATIONS_DIR)).run_migrations()
    return path


@pytest.fixture
def rules() -> Rules:
    """The REAL rules file from the project root."""
    return load_rules(RULES_PATH)


@pytest.fixture
def course() -> Course:
    """
    Course C from the paywall scenarios.

    E1 is the free episode, E2 costs $3, the workbook has 42 pages.
    """
    return Course(
        id="course-c",
        title="Python Foundations",
        instructor_id="teacher-1",
        price=Decimal("20.00"),
        units=[
            VideoEpisode(id="e1", title="Welcome", ordinal=0, price=Decimal("3.00"), url="https://cdn.test/e1.mp4"),
            VideoEpisode(id="e2", title="Variables", ordinal=1, price=Decimal("3.00"), url="https://cdn.test/e2.mp4"),
            VideoEpisode(id="e3", title="Loops", ordinal=2, price=Decimal("3.00")),
            PdfDocument(id="workbook", title="Workbook", total_pages=42, price=Decimal("2.00"), url="https://cdn.test/wb.pdf"),
        ],
    )


@pytest.fixture
def free_course() -> Course:
    return Course(
        id="course-free",
        title="Intro to Git",
        instructor_id="teacher-1",
        units=[VideoEpisode(id="git-1", title="What is Git", ordinal=0)],
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def catalog(course: Course, free_course: Course) -> InMemoryCourseCatalog:
    return InMemoryCourseCatalog([course, free_course])


@pytest.fixture
def profiles() -> InMemoryUserProfileRepo:
    return InMemoryUserProfileRepo(
        [
            UserProfile(id="student-1", enrolled_course_ids=frozenset({"course-c"})),
            UserProfile(id="student-2"),
            UserProfile(id="admin-1", role="admin"),
        ]
    )


@pytest.fixture
def ledger() -> InMemoryPaymentLedger:
    return InMemoryPaymentLedger()


@pytest.fixture
def providers() -> dict[str, PaymentStubAdapter]:
    return {
        "paypal": PaymentStubAdapter(method="paypal"),
        "mobile_money": PaymentStubAdapter(method="mobile_money"),
    }


@pytest.fixture
def orchestrator(
    profiles: InMemoryUserProfileRepo,
    ledger: InMemoryPaymentLedger,
    providers: dict[str, PaymentStubAdapter],
    clock: FrozenClock,
) -> PaymentOrchestrator:
    """In-memory orchestrator; sleeping advances the frozen clock."""
    return PaymentOrchestrator(
        profiles=profiles,
        ledger=ledger,
        providers=providers,
        config=PaymentsConfig(),
        time_port=clock,
        sleep=lambda seconds: clock.advance(seconds=seconds),
    )
