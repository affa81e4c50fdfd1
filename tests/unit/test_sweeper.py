"""
Unit tests for the dev payment sweeper.
"""

from __future__ import annotations

import time

import pytest

from src.adapters.clock import FrozenClock
from src.adapters.dev_jobs import DevPaymentSweeper
from src.adapters.memory import InMemoryUserProfileRepo
from src.components.payments import PaymentOrchestrator, PurchaseSucceededButNotApplied
from src.domain.entities import Course


class TestTriggerNow:
    def test_expires_and_repairs(
        self,
        orchestrator: PaymentOrchestrator,
        profiles: InMemoryUserProfileRepo,
        clock: FrozenClock,
        course: Course,
    ) -> None:
        student = profiles.get_user_profile("student-1")

        abandoned = orchestrator.submit_purchase(student, course, course.find_unit("e2"), "paypal")

        # Paid, but the grant never landed
        paid = orchestrator.submit_purchase(student, course, course.find_unit("e3"), "paypal")
        profiles.fail_next_merges(5)
        with pytest.raises(PurchaseSucceededButNotApplied):
            orchestrator.resolve(paid.transaction_id, "completed")

        clock.advance(minutes=16)
        result = DevPaymentSweeper(orchestrator).trigger_now()

        assert result.expiry.expired == (abandoned.transaction_id,)
        assert result.reconcile.repaired == (paid.transaction_id,)
        assert result.total_changed == 2
        assert profiles.get_user_profile("student-1").owns_unit("e3")

    def test_nothing_to_do(self, orchestrator: PaymentOrchestrator) -> None:
        result = DevPaymentSweeper(orchestrator).trigger_now()
        assert result.total_changed == 0


class TestBackgroundLoop:
    def test_start_stop(self, orchestrator: PaymentOrchestrator) -> None:
        sweeper = DevPaymentSweeper(orchestrator, poll_interval_seconds=0.01)

        sweeper.start()
        assert sweeper.is_running
        sweeper.start()  # no-op when running
        time.sleep(0.05)
        sweeper.stop()

        assert not sweeper.is_running

    def test_loop_survives_errors(self) -> None:
        class Exploding:
            calls = 0

            def expire_stale(self):
                Exploding.calls += 1
                raise RuntimeError("boom")

            def reconcile(self, batch_size: int = 1000):
                raise AssertionError("not reached")

        sweeper = DevPaymentSweeper(Exploding(), poll_interval_seconds=0.01)  # type: ignore[arg-type]
        sweeper.start()
        time.sleep(0.1)
        sweeper.stop()

        assert Exploding.calls >= 2
