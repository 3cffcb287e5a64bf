"""Booking intent, result, and checkout data models."""

from enum import Enum
from typing import ClassVar, Literal, Optional, Union

from pydantic import BaseModel, Field, computed_field


class ServiceKind(str, Enum):
    """Which bookable service a message or command refers to."""
    NONE = "none"
    APPOINTMENT = "appointment"
    SUBSCRIPTION = "subscription"
    PITCH_DECK = "pitchdeck"


class Plan(str, Enum):
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"


class Project(str, Enum):
    GALOWCLUB = "GalowClub"
    PERSPECTIV = "Perspectiv"


class BookingStatus(str, Enum):
    """Explicit outcome of a booking attempt."""
    CONFIRMED = "confirmed"
    PENDING = "pending"
    SIMULATED = "simulated"
    REJECTED = "rejected"


class _Intent(BaseModel):
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ()

    def missing_fields(self) -> list[str]:
        """Required fields that are still absent."""
        return [name for name in self.REQUIRED_FIELDS if getattr(self, name) in (None, "")]

    def is_complete(self) -> bool:
        return not self.missing_fields()


class AppointmentIntent(_Intent):
    """One-on-one consultation request."""
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("date", "start_time", "duration_minutes")

    kind: Literal[ServiceKind.APPOINTMENT] = ServiceKind.APPOINTMENT
    date: Optional[str] = None
    start_time: Optional[str] = None
    duration_minutes: Optional[int] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class SubscriptionIntent(_Intent):
    """Monthly coaching plan request."""
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("plan",)

    kind: Literal[ServiceKind.SUBSCRIPTION] = ServiceKind.SUBSCRIPTION
    plan: Optional[Plan] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class PitchDeckIntent(_Intent):
    """Investor pitch deck request."""
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("project",)

    kind: Literal[ServiceKind.PITCH_DECK] = ServiceKind.PITCH_DECK
    project: Optional[Project] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None


BookingIntent = Union[AppointmentIntent, SubscriptionIntent, PitchDeckIntent]


class BookingResult(BaseModel):
    """Outcome of one execution attempt, surfaced to the chat transcript."""
    success: bool
    message: str
    status: BookingStatus
    kind: ServiceKind
    checkout_url: Optional[str] = None
    record_id: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def degraded(self) -> bool:
        """True when produced by a fallback path rather than a full confirmation."""
        return self.status in (BookingStatus.PENDING, BookingStatus.SIMULATED)


class CheckoutRequest(BaseModel):
    """Hosted checkout link request sent to the payment collaborator."""
    kind: ServiceKind
    product_name: str
    description: str
    amount_cents: int
    currency: str = "eur"
    recurring_interval: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    success_path: str
    cancel_path: str
    customer_email: Optional[str] = None


class CheckoutSession(BaseModel):
    """Created checkout session."""
    session_id: str
    url: str
