from decimal import Decimal

from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str

class PaywallRules(BaseModel):
    pdf_free_page_threshold: int = Field(default=10, ge=0)
    free_episode_ordinal: int = Field(default=0, ge=0)
    approaching_limit_pages: int = Field(default=2, ge=0)

class PaymentMethodRules(BaseModel):
    enabled: bool = True
    currency: str = "USD"
    rate: Decimal = Decimal("1")  # method currency units per catalog currency unit
    target_pattern: str | None = None  # regex the method target must match
    minor_units: int = Field(default=2, ge=0)

class PaymentsRules(BaseModel):
    catalog_currency: str = "USD"
    intent_timeout_minutes: int = Field(default=15, ge=1)
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    methods: dict[str, PaymentMethodRules]

class EntitlementWriteRules(BaseModel):
    max_attempts: int = Field(default=5, ge=1)
    backoff_seconds: list[float] = Field(default_factory=lambda: [0.1, 0.2, 0.4, 0.8])

class OpsRules(BaseModel):
    required_env: list[str] = Field(default_factory=list)
    run_sweeper: bool = False
    sweep_interval_seconds: float = Field(default=60.0, gt=0)

class Rules(BaseModel):
    project: ProjectRules
    paywall: PaywallRules
    payments: PaymentsRules
    entitlement_writes: EntitlementWriteRules
    ops: OpsRules
