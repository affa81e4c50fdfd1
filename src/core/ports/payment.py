"""
Payment provider port interface (P8).

External interface for payment processors. Processors are opaque:
the service can start a payment and later learn its outcome, either
from a callback or by asking.

Implementations:
- PaymentStubAdapter: scripted outcomes (dev/tests), one per method
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal, Protocol

# --- Types ---

ProviderStatus = Literal["pending", "completed", "failed"]


# --- Models ---


@dataclass(frozen=True)
class ProviderRequest:
    """
    Payment request handed to a provider.

    Attributes:
        transaction_id: Our durable correlation key, echoed back by callbacks
        amount: Amount in the provider currency
        currency: ISO currency code
        description: Human readable purchase description
        target: Method-specific target (phone number for mobile money)
    """

    transaction_id: str
    amount: Decimal
    currency: str
    description: str
    target: str | None = None


@dataclass(frozen=True)
class ProviderInitiation:
    """Provider acknowledgement of a request."""

    provider_reference: str
    checkout_url: str | None = None
    instructions: str | None = None


@dataclass(frozen=True)
class ProviderResult:
    """Outcome reported by a provider."""

    status: ProviderStatus
    reason: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


# --- Errors ---


class ProviderError(Exception):
    """Base class for provider errors."""


class ProviderUnavailable(ProviderError):
    """Network or provider failure while talking to the processor."""

    def __init__(self, method: str, reason: str) -> None:
        self.method = method
        self.reason = reason
        super().__init__(f"Payment provider '{method}' unavailable: {reason}")


class ProviderRejected(ProviderError):
    """Provider refused the request (bad target, limits, ...)."""

    def __init__(self, method: str, reason: str) -> None:
        self.method = method
        self.reason = reason
        super().__init__(f"Payment provider '{method}' rejected request: {reason}")


# --- Port Interface ---


class PaymentProviderPort(Protocol):
    """
    Port for one payment method (P8).

    Both supported methods (card/wallet and mobile money) implement this
    same contract so the orchestrator is method-agnostic.
    """

    method: str

    def initiate(self, request: ProviderRequest) -> ProviderInitiation:
        """
        Start a payment.

        Raises:
            ProviderUnavailable: transient failure, nothing was created
            ProviderRejected: provider refused the request
        """
        ...

    def check_status(self, provider_reference: str) -> ProviderResult:
        """
        Ask the provider for the current outcome of a payment.

        Raises:
            ProviderUnavailable: transient failure
        """
        ...
