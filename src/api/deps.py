import hmac
import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.adapters.clock import SystemClock
from src.adapters.payment_stub import PaymentStubAdapter
from src.adapters.sqlite.repos import (
    SQLiteCourseCatalog,
    SQLitePaymentLedger,
    SQLiteUserProfileRepo,
)
from src.api.auth_utils import user_id_from_token
from src.components import entitlement, payments
from src.components.entitlement import PaywallConfig
from src.components.payments import PaymentOrchestrator
from src.core.ports.db import (
    CourseCatalogPort,
    PaymentLedgerPort,
    UserProfileRepoPort,
)
from src.core.ports.payment import PaymentProviderPort
from src.domain.entities import UserProfile
from src.rules.loader import load_rules
from src.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("LMS_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "lms.db")
        self.rules_path = Path(os.environ.get("LMS_RULES_PATH", str(self.base_dir / "rules.yaml")))
        self.migrations_dir = self.base_dir / "migrations"
        self.webhook_secret = os.environ.get("LMS_PAYMENT_WEBHOOK_SECRET", "dev-webhook-secret")


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


def get_paywall_config(rules: Rules = Depends(get_rules)) -> PaywallConfig:
    return entitlement.load_config_from_rules(rules)


# --- Repos ---
def get_course_catalog(settings: Settings = Depends(get_settings)) -> CourseCatalogPort:
    return SQLiteCourseCatalog(settings.db_path)


def get_profile_repo(settings: Settings = Depends(get_settings)) -> UserProfileRepoPort:
    return SQLiteUserProfileRepo(settings.db_path)


def get_payment_ledger(settings: Settings = Depends(get_settings)) -> PaymentLedgerPort:
    return SQLitePaymentLedger(settings.db_path)


# Time adapter for deterministic time operations
_clock_instance: SystemClock | None = None


def get_clock() -> SystemClock:
    """Get clock singleton."""
    global _clock_instance
    if _clock_instance is None:
        _clock_instance = SystemClock()
    return _clock_instance


# --- Payment Providers ---

# Provider adapters hold payment state between the submit call and the
# callback or poll that resolves it, so they are process singletons.
_providers_instance: dict[str, PaymentProviderPort] | None = None


def get_payment_providers() -> dict[str, PaymentProviderPort]:
    """Get payment provider singletons, one per method."""
    global _providers_instance
    if _providers_instance is None:
        _providers_instance = {
            "paypal": PaymentStubAdapter(method="paypal"),
            "mobile_money": PaymentStubAdapter(method="mobile_money"),
        }
    return _providers_instance


# --- Component Services ---

# The orchestrator's per-item locks only guard duplicates within one
# instance, so it is a process singleton too.
_orchestrator_instance: PaymentOrchestrator | None = None


def build_payment_orchestrator(settings: Settings, rules: Rules) -> PaymentOrchestrator:
    return PaymentOrchestrator(
        profiles=SQLiteUserProfileRepo(settings.db_path),
        ledger=SQLitePaymentLedger(settings.db_path),
        providers=get_payment_providers(),
        config=payments.load_config_from_rules(rules),
        time_port=get_clock(),
        free_episode_ordinal=rules.paywall.free_episode_ordinal,
    )


def get_payment_orchestrator(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> PaymentOrchestrator:
    """Get payment orchestrator singleton."""
    global _orchestrator_instance
    if _orchestrator_instance is None:
        _orchestrator_instance = build_payment_orchestrator(settings, rules)
    return _orchestrator_instance


# --- Identity ---
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user_id_optional(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """
    Caller identity from the bearer token, or None for anonymous callers.

    A token that is present but invalid is rejected rather than treated
    as anonymous.
    """
    token = credentials.credentials if credentials else None

    # Cookie (HttpOnly) takes precedence over the header
    cookie_token = request.cookies.get("access_token")
    if cookie_token and cookie_token.startswith("Bearer "):
        token = cookie_token.split(" ", 1)[1]

    if not token:
        return None

    user_id = user_id_from_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "invalid_token", "message": "Invalid token"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_current_user_id(
    user_id: str | None = Depends(get_current_user_id_optional),
) -> str:
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "unauthenticated",
                "message": "Sign in to continue",
                "retry_affordance": "none",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_current_profile_optional(
    user_id: str | None = Depends(get_current_user_id_optional),
    profiles: UserProfileRepoPort = Depends(get_profile_repo),
) -> UserProfile | None:
    if user_id is None:
        return None
    return profiles.get_user_profile(user_id)


def get_current_profile(
    user_id: str = Depends(get_current_user_id),
    profiles: UserProfileRepoPort = Depends(get_profile_repo),
) -> UserProfile:
    profile = profiles.get_user_profile(user_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": "profile_not_found",
                "message": "Create your profile first (POST /api/me/profile)",
            },
        )
    return profile


def require_admin(profile: UserProfile = Depends(get_current_profile)) -> UserProfile:
    if profile.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "forbidden", "message": "Admin role required"},
        )
    return profile


# --- Provider Webhooks ---
def verify_webhook_secret(
    x_webhook_secret: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> None:
    """Shared-secret check for provider callbacks."""
    if not x_webhook_secret or not hmac.compare_digest(
        x_webhook_secret.encode(), settings.webhook_secret.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "invalid_webhook_secret", "message": "Invalid webhook secret"},
        )
