"""
Dev Payment Sweeper Adapter.

In-process background job that closes abandoned purchase intents and
re-applies completed payments whose entitlement grant never landed.

Production runs the same two passes from the CLI on a schedule
(`expire_intents`, `reconcile`); this provides equivalent functionality
for local development and single-process deployments.

Key behaviors:
- One sweep = expire_stale() then reconcile()
- Errors inside a sweep are logged and the loop keeps running
- trigger_now() runs a sweep synchronously for tests
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.components.payments import ExpiryReport, PaymentOrchestrator, ReconcileReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one sweep."""

    expiry: ExpiryReport
    reconcile: ReconcileReport

    @property
    def total_changed(self) -> int:
        return (
            len(self.expiry.expired)
            + len(self.expiry.completed)
            + len(self.reconcile.repaired)
        )


class DevPaymentSweeper:
    """
    Background sweeper with a polling thread.

    Runs a sweep every `poll_interval_seconds` until stopped.
    """

    def __init__(
        self,
        orchestrator: PaymentOrchestrator,
        poll_interval_seconds: float = 60.0,
        reconcile_batch_size: int = 1000,
    ) -> None:
        self._orchestrator = orchestrator
        self._poll_interval = poll_interval_seconds
        self._batch_size = reconcile_batch_size
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._running = False

    def start(self) -> None:
        """Start the background sweeper."""
        if self._running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll_loop, daemon=True)
        self._thread.start()
        self._running = True
        logger.info("Payment sweeper started (poll interval: %.1fs)", self._poll_interval)

    def stop(self) -> None:
        """Stop the sweeper gracefully."""
        if not self._running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
        self._running = False
        logger.info("Payment sweeper stopped")

    def trigger_now(self) -> SweepResult:
        """Run one sweep immediately."""
        expiry = self._orchestrator.expire_stale()
        reconcile = self._orchestrator.reconcile(batch_size=self._batch_size)
        return SweepResult(expiry=expiry, reconcile=reconcile)

    @property
    def is_running(self) -> bool:
        return self._running

    def _poll_loop(self) -> None:
        """Background polling loop."""
        while not self._stop_event.wait(timeout=self._poll_interval):
            try:
                result = self.trigger_now()
                if result.total_changed > 0 or result.expiry.unapplied or result.reconcile.failed:
                    logger.info(
                        "Sweep: expired=%d completed=%d repaired=%d unapplied=%d still_failing=%d",
                        len(result.expiry.expired),
                        len(result.expiry.completed),
                        len(result.reconcile.repaired),
                        len(result.expiry.unapplied),
                        len(result.reconcile.failed),
                    )
            except Exception:
                logger.exception("Error in payment sweeper loop")
