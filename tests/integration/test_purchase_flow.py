"""
End-to-end purchase flows on the SQLite stores.

Covers both payment methods, duplicate protection across orchestrator
instances, timeouts and callback-driven resumption after a restart.
"""

from decimal import Decimal

import pytest

from src.adapters.clock import FrozenClock
from src.adapters.payment_stub import PaymentStubAdapter
from src.adapters.sqlite.repos import (
    SQLiteCourseCatalog,
    SQLitePaymentLedger,
    SQLiteUserProfileRepo,
)
from src.components.entitlement import Allow, evaluate
from src.components.payments import (
    AlreadyPurchased,
    DuplicatePurchaseInProgress,
    PaymentOrchestrator,
    PaymentProviderError,
    PaymentsConfig,
    PurchaseSucceededButNotApplied,
)
from src.core.ports.db import EntitlementMerge
from src.domain.entities import UserProfile


@pytest.fixture
def store(db_path, course):
    catalog = SQLiteCourseCatalog(db_path)
    catalog.save_course(course)
    profiles = SQLiteUserProfileRepo(db_path)
    profiles.create_profile(UserProfile(id="student-1"))
    profiles.create_profile(UserProfile(id="student-2"))
    profiles.atomic_merge_entitlement("student-1", EntitlementMerge(add_course="course-c"))
    return catalog, profiles, SQLitePaymentLedger(db_path)


def _orchestrator(store, clock, providers=None):
    _, profiles, ledger = store
    return PaymentOrchestrator(
        profiles=profiles,
        ledger=ledger,
        providers=providers
        or {
            "paypal": PaymentStubAdapter(method="paypal"),
            "mobile_money": PaymentStubAdapter(method="mobile_money"),
        },
        config=PaymentsConfig(),
        time_port=clock,
        sleep=lambda seconds: clock.advance(seconds=seconds),
    )


class TestMobileMoneyPurchase:
    def test_submit_settle_and_read(self, store, clock):
        catalog, profiles, ledger = store
        providers = {
            "paypal": PaymentStubAdapter(method="paypal"),
            "mobile_money": PaymentStubAdapter(method="mobile_money"),
        }
        orchestrator = _orchestrator(store, clock, providers)
        course = catalog.get_course("course-c")
        student = profiles.get_user_profile("student-1")

        submitted = orchestrator.submit_purchase(
            student, course, course.find_unit("e2"), "mobile_money", "+254 712 345 678"
        )

        assert submitted.state == "submitted"
        assert submitted.amount == Decimal("360")
        assert submitted.currency == "KES"
        assert "254712345678" in submitted.instructions
        assert ledger.get(submitted.transaction_id).status == "pending"

        providers["mobile_money"].settle_transaction(submitted.transaction_id, "completed")
        done = orchestrator.poll(submitted.transaction_id)

        assert done.state == "completed"
        student = profiles.get_user_profile("student-1")
        assert student.owns_unit("e2")

        assert isinstance(evaluate(student, course, course.find_unit("e2")), Allow)

        with pytest.raises(AlreadyPurchased):
            orchestrator.submit_purchase(
                student, course, course.find_unit("e2"), "mobile_money", "254712345678"
            )


class TestPaypalCoursePurchase:
    def test_blocking_course_purchase_grants_enrollment(self, store, clock):
        catalog, profiles, _ = store
        providers = {
            "paypal": PaymentStubAdapter(method="paypal", auto_outcome="completed"),
            "mobile_money": PaymentStubAdapter(method="mobile_money"),
        }
        orchestrator = _orchestrator(store, clock, providers)
        course = catalog.get_course("course-c")

        outcome = orchestrator.purchase_course(profiles.get_user_profile("student-2"), course, "paypal")

        assert outcome.state == "completed"
        assert outcome.amount == Decimal("20.00")
        assert profiles.get_user_profile("student-2").is_enrolled("course-c")

    def test_blocking_purchase_fails_on_decline(self, store, clock):
        catalog, profiles, _ = store
        providers = {
            "paypal": PaymentStubAdapter(method="paypal", auto_outcome="failed"),
            "mobile_money": PaymentStubAdapter(method="mobile_money"),
        }
        orchestrator = _orchestrator(store, clock, providers)
        course = catalog.get_course("course-c")

        with pytest.raises(PaymentProviderError):
            orchestrator.purchase(
                profiles.get_user_profile("student-1"), course, course.find_unit("workbook"), "paypal"
            )
        assert not profiles.get_user_profile("student-1").owns_unit("workbook")


class TestDuplicates:
    def test_second_instance_hits_ledger_constraint(self, store, clock):
        catalog, profiles, _ = store
        course = catalog.get_course("course-c")
        student = profiles.get_user_profile("student-1")

        first = _orchestrator(store, clock)
        second = _orchestrator(store, clock)

        submitted = first.submit_purchase(student, course, course.find_unit("e3"), "paypal")
        with pytest.raises(DuplicatePurchaseInProgress) as exc:
            second.submit_purchase(student, course, course.find_unit("e3"), "paypal")

        assert exc.value.transaction_id == submitted.transaction_id


class TestTimeoutAndRestart:
    def test_timeout_then_late_confirmation(self, store, clock: FrozenClock):
        catalog, profiles, ledger = store
        orchestrator = _orchestrator(store, clock)
        course = catalog.get_course("course-c")
        student = profiles.get_user_profile("student-1")

        submitted = orchestrator.submit_purchase(student, course, course.find_unit("e2"), "paypal")
        clock.advance(minutes=15)

        assert orchestrator.poll(submitted.transaction_id).failure_reason == "expired"

        with pytest.raises(PurchaseSucceededButNotApplied):
            orchestrator.resolve(submitted.transaction_id, "completed")
        assert ledger.get(submitted.transaction_id).status == "failed"
        assert not profiles.get_user_profile("student-1").owns_unit("e2")

        # A fresh attempt is allowed once the old one is closed
        retry = orchestrator.submit_purchase(student, course, course.find_unit("e2"), "paypal")
        assert retry.transaction_id != submitted.transaction_id

    def test_callback_after_restart(self, store, clock):
        catalog, profiles, _ = store
        course = catalog.get_course("course-c")
        student = profiles.get_user_profile("student-1")

        submitted = _orchestrator(store, clock).submit_purchase(
            student, course, course.find_unit("e2"), "paypal"
        )

        # New process: fresh provider adapters that never saw the payment
        restarted = _orchestrator(store, clock)
        assert restarted.poll(submitted.transaction_id).state == "submitted"

        outcome = restarted.resolve(submitted.transaction_id, "completed")

        assert outcome.state == "completed"
        assert profiles.get_user_profile("student-1").owns_unit("e2")

    def test_expire_and_reconcile_on_sqlite(self, store, clock):
        catalog, profiles, ledger = store
        orchestrator = _orchestrator(store, clock)
        course = catalog.get_course("course-c")
        student = profiles.get_user_profile("student-1")

        abandoned = orchestrator.submit_purchase(student, course, course.find_unit("e3"), "paypal")
        clock.advance(minutes=20)

        report = orchestrator.expire_stale()

        assert report.expired == (abandoned.transaction_id,)
        assert ledger.get(abandoned.transaction_id).failure_reason == "expired"
        assert orchestrator.reconcile().repaired == ()
