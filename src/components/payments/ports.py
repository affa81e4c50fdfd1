"""
Payments component port definitions (C2).

The orchestrator writes the ledger and the entitlement store and talks
to one provider per payment method.
"""

from __future__ import annotations

from src.core.ports.db import EntitlementMerge, PaymentLedgerPort, UserProfileRepoPort
from src.core.ports.payment import PaymentProviderPort
from src.core.ports.time import TimePort

__all__ = [
    "EntitlementMerge",
    "PaymentLedgerPort",
    "PaymentProviderPort",
    "TimePort",
    "UserProfileRepoPort",
]
