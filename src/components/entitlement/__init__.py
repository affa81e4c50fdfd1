"""
Entitlement component (C1).

Public API for the content entitlement and paywall gate.
"""

from .component import (
    check_unit_access,
    evaluate,
    format_price,
    load_config_from_rules,
    paywall_info,
    preview_budget,
)
from .models import (
    Allow,
    Decision,
    DenyRequiresEnrollment,
    DenyRequiresPurchase,
    EntitlementError,
    InvalidCursor,
    PaywallConfig,
    PreviewBudget,
    UnitNotInCourse,
    decision_to_dict,
)
from .ports import CatalogReaderPort, ProfileReaderPort

__all__ = [
    # Functions
    "check_unit_access",
    "decision_to_dict",
    "evaluate",
    "format_price",
    "load_config_from_rules",
    "paywall_info",
    "preview_budget",
    # Models
    "Allow",
    "Decision",
    "DenyRequiresEnrollment",
    "DenyRequiresPurchase",
    "PaywallConfig",
    "PreviewBudget",
    # Errors
    "EntitlementError",
    "InvalidCursor",
    "UnitNotInCourse",
    # Ports
    "CatalogReaderPort",
    "ProfileReaderPort",
]
