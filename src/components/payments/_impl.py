"""
PaymentOrchestrator (C2) - drives one purchase attempt to a terminal state.

Key behaviors:
- Submitted state is the pending PaymentRecord, keyed by transaction_id,
  so callbacks, polls and the sweeper can resume any transaction
- One in-flight purchase per (user, item): process lock + ledger constraint
- Success grants via atomic set-union merge, retried with backoff on
  EntitlementWriteConflict; exhaustion surfaces PurchaseSucceededButNotApplied
- Unresolved intents fail after the configured timeout
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import timedelta
from uuid import uuid4

from src.adapters.clock import SystemClock
from src.core.ports.db import (
    DuplicatePendingPayment,
    EntitlementWriteConflict,
    ProfileNotFound,
)
from src.core.ports.payment import ProviderError, ProviderRequest
from src.domain.entities import (
    Course,
    PaymentRecord,
    PaymentStatus,
    PdfDocument,
    PurchaseIntent,
    PurchaseItem,
    UserProfile,
    VideoEpisode,
)

from .component import (
    backoff_delay,
    convert_amount,
    is_already_granted,
    item_for_course,
    item_for_unit,
    mark_submitted,
    merge_for,
    method_config,
    outcome_from_record,
    validate_target,
)
from .models import (
    AlreadyPurchased,
    DuplicatePurchaseInProgress,
    EnrollmentRequired,
    ExpiryReport,
    PaymentInitiationFailed,
    PaymentNotFound,
    PaymentProviderError,
    PaymentsConfig,
    PurchaseOutcome,
    PurchaseSucceededButNotApplied,
    ReconcileReport,
    Unauthenticated,
    UnsupportedPaymentMethod,
)
from .ports import PaymentLedgerPort, PaymentProviderPort, TimePort, UserProfileRepoPort

logger = logging.getLogger(__name__)


def new_transaction_id() -> str:
    return f"txn_{uuid4().hex}"


class PaymentOrchestrator:
    """
    Payment orchestration service.

    Non-blocking API (HTTP layer): submit_purchase, submit_course_purchase,
    resolve, poll, outcome. Blocking form: purchase, purchase_course.
    Batch: expire_stale, reconcile.
    """

    def __init__(
        self,
        *,
        profiles: UserProfileRepoPort,
        ledger: PaymentLedgerPort,
        providers: Mapping[str, PaymentProviderPort],
        config: PaymentsConfig | None = None,
        time_port: TimePort | None = None,
        sleep: Callable[[float], None] = time.sleep,
        free_episode_ordinal: int = 0,
    ) -> None:
        self._profiles = profiles
        self._ledger = ledger
        self._providers = dict(providers)
        self._config = config or PaymentsConfig()
        self._time = time_port or SystemClock()
        self._sleep = sleep
        self._free_episode_ordinal = free_episode_ordinal

        self._locks_guard = threading.Lock()
        self._item_locks: dict[tuple[str, str], threading.Lock] = {}

    @property
    def config(self) -> PaymentsConfig:
        return self._config

    # --- Submission (Created -> Submitted) ---

    def submit_purchase(
        self,
        user: UserProfile | None,
        course: Course,
        unit: PdfDocument | VideoEpisode,
        method: str,
        target: str | None = None,
    ) -> PurchaseOutcome:
        """Start a unit purchase and return once the provider accepted it."""
        if user is None:
            raise Unauthenticated()
        item = item_for_unit(course, unit, self._free_episode_ordinal)

        # Units are sold to enrolled users only
        current = self._profiles.get_user_profile(user.id) or user
        if not current.is_enrolled(course.id):
            raise EnrollmentRequired(user.id, course.id)
        return self._submit(current, item, method, target)

    def submit_course_purchase(
        self,
        user: UserProfile | None,
        course: Course,
        method: str,
        target: str | None = None,
    ) -> PurchaseOutcome:
        """Start a full course purchase. Completion grants enrollment."""
        if user is None:
            raise Unauthenticated()
        item = item_for_course(course)
        return self._submit(user, item, method, target)

    def _submit(
        self,
        user: UserProfile,
        item: PurchaseItem,
        method: str,
        target: str | None,
    ) -> PurchaseOutcome:
        cfg = method_config(self._config, method)
        provider = self._providers.get(method)
        if provider is None:
            raise UnsupportedPaymentMethod(method)
        normalized_target = validate_target(method, cfg, target)

        with self._item_lock(user.id, item.id):
            current = self._profiles.get_user_profile(user.id) or user
            if is_already_granted(current, item.kind, item.id):
                raise AlreadyPurchased(user.id, item.id)

            self._clear_stale_pending(user.id, item.id)

            now = self._time.now_utc()
            intent = PurchaseIntent(
                transaction_id=new_transaction_id(),
                user_id=user.id,
                item=item,
                amount=convert_amount(item.price, cfg),
                currency=cfg.currency,
                method=method,  # type: ignore[arg-type]
                target=normalized_target,
                created_at=now,
                expires_at=now + timedelta(minutes=self._config.intent_timeout_minutes),
            )

            try:
                initiation = provider.initiate(
                    ProviderRequest(
                        transaction_id=intent.transaction_id,
                        amount=intent.amount,
                        currency=intent.currency,
                        description=f"{item.kind.title()}: {item.title}",
                        target=intent.target,
                    )
                )
            except ProviderError as e:
                logger.warning(
                    "Payment initiation failed: method=%s user=%s item=%s error=%s",
                    method,
                    user.id,
                    item.id,
                    e,
                )
                raise PaymentInitiationFailed(method, getattr(e, "reason", str(e))) from e

            intent, record = mark_submitted(intent, initiation.provider_reference)
            try:
                self._ledger.append(record)
            except DuplicatePendingPayment as e:
                # Another process submitted first
                existing = self._ledger.find_pending(user.id, item.id)
                raise DuplicatePurchaseInProgress(
                    user.id, item.id, existing.transaction_id if existing else None
                ) from e

        logger.info(
            "Payment submitted: txn=%s method=%s user=%s item=%s/%s amount=%s %s",
            record.transaction_id,
            method,
            user.id,
            item.kind,
            item.id,
            record.amount,
            record.currency,
        )
        return outcome_from_record(
            record,
            checkout_url=initiation.checkout_url,
            instructions=initiation.instructions,
        )

    def _clear_stale_pending(self, user_id: str, item_id: str) -> None:
        """
        Refuse a second purchase while one is in flight.

        A pending record past its deadline is refreshed first: it either
        completes (the user already paid) or expires to failed.
        """
        existing = self._ledger.find_pending(user_id, item_id)
        if existing is None:
            return
        if not self._time.is_past_or_now(existing.expires_at):
            raise DuplicatePurchaseInProgress(user_id, item_id, existing.transaction_id)

        refreshed = self._refresh(existing)
        if refreshed.status == "pending":
            raise DuplicatePurchaseInProgress(user_id, item_id, existing.transaction_id)
        if refreshed.status == "completed":
            raise AlreadyPurchased(user_id, item_id)

    @contextmanager
    def _item_lock(self, user_id: str, item_id: str) -> Iterator[None]:
        """
        Hold the (user, item) submission lock, or fail fast.

        Entries only exist while held, so the table stays bounded by the
        number of submissions in progress.
        """
        key = (user_id, item_id)
        with self._locks_guard:
            lock = self._item_locks.setdefault(key, threading.Lock())
            acquired = lock.acquire(blocking=False)
        if not acquired:
            existing = self._ledger.find_pending(user_id, item_id)
            raise DuplicatePurchaseInProgress(
                user_id, item_id, existing.transaction_id if existing else None
            )
        try:
            yield
        finally:
            with self._locks_guard:
                self._item_locks.pop(key, None)
                lock.release()

    # --- Resolution (Submitted -> Completed | Failed) ---

    def resolve(
        self,
        transaction_id: str,
        status: PaymentStatus,
        reason: str | None = None,
    ) -> PurchaseOutcome:
        """
        Apply a provider outcome to a transaction.

        Safe to call any number of times and from any execution context:
        the record transitions once, and the grant is a set-union merge.

        Raises:
            PaymentNotFound: unknown transaction id
            PurchaseSucceededButNotApplied: success could not be granted
        """
        record = self._ledger.get(transaction_id)
        if record is None:
            raise PaymentNotFound(transaction_id)

        if status == "pending":
            return outcome_from_record(record)

        if record.status == "pending":
            updated = self._ledger.mark_terminal(
                transaction_id,
                status,
                self._time.now_utc(),
                failure_reason=None if status == "completed" else (reason or "declined"),
            )
            if updated is not None:
                record = updated
                logger.info(
                    "Payment %s: txn=%s user=%s item=%s reason=%s",
                    status,
                    transaction_id,
                    record.user_id,
                    record.item_id,
                    record.failure_reason,
                )
            else:
                # Lost the race to another context; use what it wrote
                record = self._ledger.get(transaction_id) or record

        if status == "completed" and record.status == "failed":
            logger.error(
                "Late payment confirmation: txn=%s user=%s item=%s was already failed (%s)",
                transaction_id,
                record.user_id,
                record.item_id,
                record.failure_reason,
            )
            raise PurchaseSucceededButNotApplied(
                transaction_id,
                f"payment confirmed after the attempt was closed ({record.failure_reason})",
            )

        if record.status == "completed":
            self._grant(record)

        return outcome_from_record(record)

    def poll(self, transaction_id: str) -> PurchaseOutcome:
        """
        Current outcome, asking the provider if still pending.

        For completed records the grant is re-applied if missing.
        """
        record = self._ledger.get(transaction_id)
        if record is None:
            raise PaymentNotFound(transaction_id)

        if record.status == "completed":
            profile = self._profiles.get_user_profile(record.user_id)
            if profile is None or not is_already_granted(profile, record.item_kind, record.item_id):
                self._grant(record)
            return outcome_from_record(record)

        if record.status == "pending":
            record = self._refresh(record)
        return outcome_from_record(record)

    def outcome(self, transaction_id: str) -> PurchaseOutcome:
        """Ledger view of a transaction. Never calls the provider."""
        return outcome_from_record(self.record(transaction_id))

    def record(self, transaction_id: str) -> PaymentRecord:
        record = self._ledger.get(transaction_id)
        if record is None:
            raise PaymentNotFound(transaction_id)
        return record

    def _refresh(self, record: PaymentRecord) -> PaymentRecord:
        """Ask the provider about a pending record and apply the answer."""
        provider = self._providers.get(record.provider)
        result = None
        if provider is not None and record.provider_reference:
            try:
                result = provider.check_status(record.provider_reference)
            except ProviderError as e:
                logger.warning("Status check failed: txn=%s error=%s", record.transaction_id, e)

        if result is not None and result.status != "pending":
            self.resolve(record.transaction_id, result.status, result.reason)
        elif self._time.is_past_or_now(record.expires_at):
            self.resolve(record.transaction_id, "failed", "expired")

        return self._ledger.get(record.transaction_id) or record

    # --- Blocking Form ---

    def purchase(
        self,
        user: UserProfile | None,
        course: Course,
        unit: PdfDocument | VideoEpisode,
        method: str,
        target: str | None = None,
    ) -> PurchaseOutcome:
        """
        Submit a unit purchase and wait for a terminal state.

        Raises:
            PaymentProviderError: the attempt failed (declined, cancelled, expired)
        """
        submitted = self.submit_purchase(user, course, unit, method, target)
        return self._await_terminal(submitted)

    def purchase_course(
        self,
        user: UserProfile | None,
        course: Course,
        method: str,
        target: str | None = None,
    ) -> PurchaseOutcome:
        submitted = self.submit_course_purchase(user, course, method, target)
        return self._await_terminal(submitted)

    def _await_terminal(self, submitted: PurchaseOutcome) -> PurchaseOutcome:
        current = submitted
        while not current.is_terminal:
            self._sleep(self._config.poll_interval_seconds)
            current = self.poll(submitted.transaction_id)

        if current.state == "failed":
            raise PaymentProviderError(current.transaction_id, current.failure_reason)
        return current

    # --- Entitlement Grant ---

    def _grant(self, record: PaymentRecord) -> UserProfile:
        """
        Apply a completed record to the owner's profile.

        Retries EntitlementWriteConflict with exponential backoff.
        """
        merge = merge_for(record)
        max_attempts = max(self._config.write_max_attempts, 1)
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                profile = self._profiles.atomic_merge_entitlement(record.user_id, merge)
            except EntitlementWriteConflict as e:
                last_error = e
                if attempt < max_attempts:
                    delay = backoff_delay(attempt, self._config.write_backoff_seconds)
                    logger.warning(
                        "Entitlement write conflict: txn=%s attempt=%d/%d retry_in=%.2fs",
                        record.transaction_id,
                        attempt,
                        max_attempts,
                        delay,
                    )
                    self._sleep(delay)
                continue
            except ProfileNotFound as e:
                last_error = e
                break
            else:
                logger.info(
                    "Entitlement granted: txn=%s user=%s %s=%s",
                    record.transaction_id,
                    record.user_id,
                    record.item_kind,
                    record.item_id,
                )
                return profile

        logger.error(
            "Purchase succeeded but not applied: txn=%s user=%s item=%s error=%s",
            record.transaction_id,
            record.user_id,
            record.item_id,
            last_error,
        )
        raise PurchaseSucceededButNotApplied(record.transaction_id, str(last_error))

    # --- Batch ---

    def expire_stale(self) -> ExpiryReport:
        """Close every pending record past its deadline."""
        expired: list[str] = []
        completed: list[str] = []
        unapplied: list[str] = []

        for record in self._ledger.list_pending_expired(self._time.now_utc()):
            try:
                refreshed = self._refresh(record)
            except PurchaseSucceededButNotApplied:
                unapplied.append(record.transaction_id)
                continue
            if refreshed.status == "completed":
                completed.append(record.transaction_id)
            elif refreshed.status == "failed":
                expired.append(record.transaction_id)

        if expired or completed or unapplied:
            logger.info(
                "Expiry sweep: expired=%d completed=%d unapplied=%d",
                len(expired),
                len(completed),
                len(unapplied),
            )
        return ExpiryReport(
            expired=tuple(expired),
            completed=tuple(completed),
            unapplied=tuple(unapplied),
        )

    def reconcile(self, batch_size: int = 1000) -> ReconcileReport:
        """
        Re-apply completed payments whose entitlement is missing.

        Walks the whole completed ledger, oldest first, `batch_size`
        records per page.
        """
        batch_size = max(batch_size, 1)
        checked = 0
        repaired: list[str] = []
        failed: list[str] = []

        page = self._ledger.list_completed_after(None, limit=batch_size)
        while page:
            for record in page:
                checked += 1
                profile = self._profiles.get_user_profile(record.user_id)
                if profile is not None and is_already_granted(profile, record.item_kind, record.item_id):
                    continue
                try:
                    self._grant(record)
                except PurchaseSucceededButNotApplied:
                    failed.append(record.transaction_id)
                else:
                    repaired.append(record.transaction_id)
            if len(page) < batch_size:
                break
            page = self._ledger.list_completed_after(page[-1], limit=batch_size)

        if repaired or failed:
            logger.info(
                "Reconciliation: checked=%d repaired=%d failed=%d",
                checked,
                len(repaired),
                len(failed),
            )
        return ReconcileReport(checked=checked, repaired=tuple(repaired), failed=tuple(failed))
