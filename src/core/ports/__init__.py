# lumora-lms: Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.db import (
    CourseCatalogPort,
    CourseNotFound,
    DuplicatePendingPayment,
    EntitlementMerge,
    EntitlementWriteConflict,
    PaymentLedgerPort,
    ProfileNotFound,
    StoreError,
    UserProfileRepoPort,
)
from src.core.ports.payment import (
    PaymentProviderPort,
    ProviderError,
    ProviderInitiation,
    ProviderRejected,
    ProviderRequest,
    ProviderResult,
    ProviderStatus,
    ProviderUnavailable,
)
from src.core.ports.time import TimePort

__all__ = [
    # Stores (P1)
    "CourseCatalogPort",
    "CourseNotFound",
    "DuplicatePendingPayment",
    "EntitlementMerge",
    "EntitlementWriteConflict",
    "PaymentLedgerPort",
    "ProfileNotFound",
    "StoreError",
    "UserProfileRepoPort",
    # Time (P3)
    "TimePort",
    # Payment providers (P8)
    "PaymentProviderPort",
    "ProviderError",
    "ProviderInitiation",
    "ProviderRejected",
    "ProviderRequest",
    "ProviderResult",
    "ProviderStatus",
    "ProviderUnavailable",
]
