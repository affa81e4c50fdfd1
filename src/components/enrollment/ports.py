"""
Enrollment component port definitions (C3).
"""

from __future__ import annotations

from src.core.ports.db import EntitlementMerge, UserProfileRepoPort

__all__ = ["EntitlementMerge", "UserProfileRepoPort"]
