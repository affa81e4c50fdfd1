"""
Tests for the admin payment ledger routes and the profile routes.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from src.adapters.clock import FrozenClock
from src.adapters.memory import InMemoryUserProfileRepo
from src.components.payments import PaymentOrchestrator, PurchaseSucceededButNotApplied


@pytest.fixture
def pending_txn(client: TestClient, student_headers) -> str:
    response = client.post(
        "/api/purchases/units",
        json={"course_id": "course-c", "unit_id": "e3", "method": "paypal"},
        headers=student_headers,
    )
    return response.json()["transaction_id"]


class TestAdminAccess:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/admin/payments"),
            ("post", "/api/admin/payments/expire"),
            ("post", "/api/admin/payments/reconcile"),
        ],
    )
    def test_students_are_forbidden(self, client: TestClient, student_headers, method, path) -> None:
        response = client.request(method.upper(), path, headers=student_headers)
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "forbidden"

    def test_anonymous_is_unauthenticated(self, client: TestClient) -> None:
        assert client.get("/api/admin/payments").status_code == 401


class TestLedgerListing:
    def test_list_and_filter(self, client: TestClient, admin_headers, pending_txn) -> None:
        all_records = client.get("/api/admin/payments", headers=admin_headers).json()
        pending = client.get(
            "/api/admin/payments", params={"status": "pending"}, headers=admin_headers
        ).json()
        completed = client.get(
            "/api/admin/payments", params={"status": "completed"}, headers=admin_headers
        ).json()
        by_user = client.get(
            "/api/admin/payments", params={"user_id": "student-1"}, headers=admin_headers
        ).json()

        assert [r["transaction_id"] for r in all_records] == [pending_txn]
        assert all_records[0]["amount"] == "3.00"
        assert all_records[0]["provider"] == "paypal"
        assert [r["transaction_id"] for r in pending] == [pending_txn]
        assert completed == []
        assert [r["transaction_id"] for r in by_user] == [pending_txn]

    def test_bad_status_filter(self, client: TestClient, admin_headers) -> None:
        response = client.get("/api/admin/payments", params={"status": "refunded"}, headers=admin_headers)
        assert response.status_code == 422


class TestSweeps:
    def test_expire(self, client: TestClient, admin_headers, pending_txn, clock: FrozenClock) -> None:
        clock.advance(minutes=16)

        report = client.post("/api/admin/payments/expire", headers=admin_headers).json()

        assert report == {"expired": [pending_txn], "completed": [], "unapplied": []}

    def test_reconcile_repairs_missing_grant(
        self,
        client: TestClient,
        admin_headers,
        pending_txn,
        profiles: InMemoryUserProfileRepo,
        orchestrator: PaymentOrchestrator,
    ) -> None:
        profiles.fail_next_merges(5)
        with pytest.raises(PurchaseSucceededButNotApplied):
            orchestrator.resolve(pending_txn, "completed")

        report = client.post(
            "/api/admin/payments/reconcile", params={"batch_size": 50}, headers=admin_headers
        ).json()

        assert report == {"checked": 1, "repaired": [pending_txn], "failed": []}
        assert profiles.get_user_profile("student-1").owns_unit("e3")


class TestProfile:
    def test_get_me(self, client: TestClient, student_headers) -> None:
        data = client.get("/api/me", headers=student_headers).json()

        assert data["id"] == "student-1"
        assert data["role"] == "student"
        assert data["enrolled_course_ids"] == ["course-c"]
        assert data["purchased_unit_ids"] == []

    def test_register_teacher(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers("new-teacher")

        assert client.get("/api/me", headers=headers).status_code == 404

        first = client.post("/api/me/profile", json={"role": "teacher", "display_name": "T"}, headers=headers)
        again = client.post("/api/me/profile", json={"role": "student"}, headers=headers)

        assert first.status_code == 200
        assert first.json()["created"] is True
        assert first.json()["profile"]["role"] == "teacher"
        assert again.json()["created"] is False
        assert again.json()["profile"]["role"] == "teacher"

    def test_admin_cannot_be_self_assigned(self, client: TestClient, auth_headers) -> None:
        response = client.post(
            "/api/me/profile", json={"role": "admin"}, headers=auth_headers("sneaky")
        )
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "role_not_assignable"

    def test_register_requires_token(self, client: TestClient) -> None:
        assert client.post("/api/me/profile", json={}).status_code == 401
