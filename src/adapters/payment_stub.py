"""
Payment stub adapter (dev/tests).

Stub implementation of PaymentProviderPort. One instance stands in for
one payment method (PayPal or InterSend mobile money). Payments stay
pending until settled by a helper, unless an automatic outcome is set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import uuid4

from src.core.ports.payment import (
    PaymentProviderPort,
    ProviderError,
    ProviderInitiation,
    ProviderRequest,
    ProviderResult,
    ProviderStatus,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)

_REFERENCE_PREFIX = {"paypal": "PAYPAL", "mobile_money": "MM"}


@dataclass
class _StubPayment:
    request: ProviderRequest
    status: ProviderStatus
    reason: str | None = None


@dataclass
class PaymentStubAdapter:
    """
    Scripted payment provider.

    This adapter satisfies the PaymentProviderPort protocol.
    """

    method: str = "paypal"
    auto_outcome: ProviderStatus = "pending"
    checkout_base_url: str = "https://sandbox.lumora.test/checkout"

    _payments: dict[str, _StubPayment] = field(default_factory=dict)
    _by_transaction: dict[str, str] = field(default_factory=dict)
    _initiation_errors: list[ProviderError] = field(default_factory=list)
    _status_errors: list[ProviderError] = field(default_factory=list)
    initiate_calls: int = 0

    def initiate(self, request: ProviderRequest) -> ProviderInitiation:
        """
        Accept a payment request.

        Raises any queued initiation error first (see fail_initiation).
        """
        self.initiate_calls += 1
        if self._initiation_errors:
            raise self._initiation_errors.pop(0)

        prefix = _REFERENCE_PREFIX.get(self.method, self.method.upper())
        reference = f"{prefix}-{uuid4().hex[:12]}"
        self._payments[reference] = _StubPayment(request=request, status=self.auto_outcome)
        self._by_transaction[request.transaction_id] = reference

        logger.debug(
            "PaymentStubAdapter.initiate: method=%s txn=%s ref=%s amount=%s %s",
            self.method,
            request.transaction_id,
            reference,
            request.amount,
            request.currency,
        )

        if self.method == "mobile_money":
            return ProviderInitiation(
                provider_reference=reference,
                instructions=(
                    f"Approve the {request.currency} {request.amount} payment prompt "
                    f"sent to {request.target}"
                ),
            )
        return ProviderInitiation(
            provider_reference=reference,
            checkout_url=f"{self.checkout_base_url}/{reference}",
        )

    def check_status(self, provider_reference: str) -> ProviderResult:
        """Report the scripted status of a payment."""
        if self._status_errors:
            raise self._status_errors.pop(0)

        payment = self._payments.get(provider_reference)
        if payment is None:
            # Started by another process; the stub cannot know its outcome
            return ProviderResult(
                status="pending",
                reason="unknown_reference",
                metadata={"adapter": "stub", "method": self.method},
            )
        return ProviderResult(
            status=payment.status,
            reason=payment.reason,
            metadata={"adapter": "stub", "method": self.method},
        )

    # --- Testing Helpers ---

    def settle(self, provider_reference: str, status: ProviderStatus, reason: str | None = None) -> None:
        """Set the outcome the provider will report for a payment."""
        payment = self._payments[provider_reference]
        payment.status = status
        payment.reason = reason

    def settle_transaction(
        self, transaction_id: str, status: ProviderStatus, reason: str | None = None
    ) -> None:
        """Settle by our transaction id instead of the provider reference."""
        self.settle(self._by_transaction[transaction_id], status, reason)

    def reference_for(self, transaction_id: str) -> str | None:
        return self._by_transaction.get(transaction_id)

    def fail_initiation(self, reason: str = "connection reset", times: int = 1) -> None:
        """Queue transient initiation failures."""
        self._initiation_errors.extend(
            ProviderUnavailable(self.method, reason) for _ in range(times)
        )

    def fail_status_checks(self, reason: str = "timeout", times: int = 1) -> None:
        """Queue transient status-check failures."""
        self._status_errors.extend(ProviderUnavailable(self.method, reason) for _ in range(times))


# Verify protocol compliance at module load time
def _verify_protocol_compliance() -> None:
    """Verify PaymentStubAdapter satisfies PaymentProviderPort protocol."""
    adapter: PaymentProviderPort = PaymentStubAdapter()
    _ = adapter.method


_verify_protocol_compliance()
