"""
Shared fixtures for route tests.

Each test gets a fresh FastAPI app with every router mounted and the
store, orchestrator and settings dependencies pointed at in-memory
fixtures.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.memory import (
    InMemoryCourseCatalog,
    InMemoryPaymentLedger,
    InMemoryUserProfileRepo,
)
from src.api.auth_utils import issue_user_token
from src.api.deps import (
    Settings,
    get_course_catalog,
    get_payment_ledger,
    get_payment_orchestrator,
    get_paywall_config,
    get_profile_repo,
    get_settings,
)
from src.api.routes import admin_payments, courses, me, payment_callbacks, purchases
from src.components.entitlement import PaywallConfig
from src.components.payments import PaymentOrchestrator

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("LMS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("LMS_PAYMENT_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return Settings()


@pytest.fixture
def app(
    settings: Settings,
    catalog: InMemoryCourseCatalog,
    profiles: InMemoryUserProfileRepo,
    ledger: InMemoryPaymentLedger,
    orchestrator: PaymentOrchestrator,
) -> FastAPI:
    app = FastAPI()
    app.include_router(courses.router, prefix="/api/courses")
    app.include_router(me.router, prefix="/api/me")
    app.include_router(purchases.router, prefix="/api/purchases")
    app.include_router(payment_callbacks.router, prefix="/api/payments")
    app.include_router(admin_payments.router, prefix="/api/admin/payments")

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_course_catalog] = lambda: catalog
    app.dependency_overrides[get_profile_repo] = lambda: profiles
    app.dependency_overrides[get_payment_ledger] = lambda: ledger
    app.dependency_overrides[get_payment_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_paywall_config] = lambda: PaywallConfig()
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def _bearer(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_user_token(user_id)}"}


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Bearer headers for any user id."""
    return _bearer


@pytest.fixture
def student_headers() -> dict[str, str]:
    return _bearer("student-1")


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return _bearer("admin-1")
