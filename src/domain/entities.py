from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, Field

# --- Enums / Literals ---
RoleType = Literal["student", "teacher", "admin"]
UnitKind = Literal["pdf", "video"]
PurchaseKind = Literal["unit", "course"]
PaymentMethod = Literal["paypal", "mobile_money"]
PaymentStatus = Literal["pending", "completed", "failed"]
IntentState = Literal["created", "submitted"]


def utc_now() -> datetime:
    return datetime.now(UTC)


# --- Users ---


class UserProfile(BaseModel):
    """
    Entitlement store document for one user.

    The two sets are only ever grown through an atomic merge.
    """

    id: str
    role: RoleType = "student"
    display_name: str = ""
    enrolled_course_ids: frozenset[str] = Field(default_factory=frozenset)
    purchased_unit_ids: frozenset[str] = Field(default_factory=frozenset)
    created_at: datetime = Field(default_factory=utc_now)

    def is_enrolled(self, course_id: str) -> bool:
        return course_id in self.enrolled_course_ids

    def owns_unit(self, unit_id: str) -> bool:
        return unit_id in self.purchased_unit_ids


# --- Catalog ---


class PdfDocument(BaseModel):
    kind: Literal["pdf"] = "pdf"
    id: str
    title: str = ""
    total_pages: int = Field(ge=1)
    price: Decimal | None = None
    url: str | None = None


class VideoEpisode(BaseModel):
    kind: Literal["video"] = "video"
    id: str
    title: str = ""
    ordinal: int = Field(ge=0)
    price: Decimal | None = None
    url: str | None = None
    duration: str | None = None


ContentUnit = Annotated[PdfDocument | VideoEpisode, Field(discriminator="kind")]


class Course(BaseModel):
    id: str
    title: str
    instructor_id: str
    description: str = ""
    units: list[ContentUnit] = Field(default_factory=list)
    price: Decimal | None = None  # None or 0 means enrollment-only / free
    currency: str = "USD"
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_free(self) -> bool:
        return self.price is None or self.price <= 0

    def find_unit(self, unit_id: str) -> PdfDocument | VideoEpisode | None:
        for unit in self.units:
            if unit.id == unit_id:
                return unit
        return None

    def episodes(self) -> list[VideoEpisode]:
        return sorted(
            (u for u in self.units if isinstance(u, VideoEpisode)),
            key=lambda e: e.ordinal,
        )


# --- Payments ---


class PurchaseItem(BaseModel):
    """Something a user can pay for: one content unit or a whole course."""

    kind: PurchaseKind
    id: str
    course_id: str
    title: str = ""
    price: Decimal
    currency: str = "USD"


class PurchaseIntent(BaseModel):
    """Checkout in flight. Never persisted; the pending PaymentRecord is."""

    transaction_id: str
    user_id: str
    item: PurchaseItem
    amount: Decimal
    currency: str
    method: PaymentMethod
    target: str | None = None
    state: IntentState = "created"
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime


class PaymentRecord(BaseModel):
    """
    Append-only ledger entry.

    A record moves from pending to completed or failed exactly once and is
    immutable afterwards.
    """

    transaction_id: str
    provider: PaymentMethod
    provider_reference: str | None = None
    user_id: str
    item_kind: PurchaseKind
    item_id: str
    course_id: str
    amount: Decimal
    currency: str
    status: PaymentStatus = "pending"
    failure_reason: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    resolved_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")
