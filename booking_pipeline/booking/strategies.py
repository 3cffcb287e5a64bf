"""
Per-service booking strategies.

Each strategy knows, for one ServiceKind, how to validate an intent, price
it, build its hosted checkout request, shape its fallback database row,
word its outcome messages, and convert between the intent and its
assistant command block. The executor is kind-agnostic and drives these.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date as Date
from typing import Any, Optional
from urllib.parse import urlencode

from booking_pipeline.config import settings
from booking_pipeline.conversation.command_parser import CommandTag, is_not_provided
from booking_pipeline.conversation.slot_extractor import to_24_hour
from booking_pipeline.prompts import prompt_templates as templates
from booking_pipeline.schemas.booking_schema import (
    AppointmentIntent,
    BookingIntent,
    CheckoutRequest,
    PitchDeckIntent,
    ServiceKind,
    SubscriptionIntent,
)
from booking_pipeline.schemas.profile_schema import UserProfile
from booking_pipeline.tools.payments import sanitize_path
from booking_pipeline.tools.pricing import (
    ALLOWED_DURATIONS,
    PLAN_CATALOG,
    appointment_price,
    is_allowed_duration,
    match_plan,
    match_project,
    subscription_price,
    to_cents,
)

logger = logging.getLogger(__name__)

NOT_PROVIDED = "Not provided"


@dataclass(frozen=True)
class ResolvedContact:
    """Contact details after profile/intent precedence is applied."""
    name: str
    email: str
    phone: Optional[str]


def _present(value: Optional[str]) -> Optional[str]:
    return None if is_not_provided(value) else value.strip()


def resolve_contact(
    profile: Optional[UserProfile],
    name: Optional[str],
    email: Optional[str],
    phone: Optional[str],
) -> ResolvedContact:
    """Profile values win, then the intent's own values, then the sentinel."""
    profile = profile or UserProfile()
    return ResolvedContact(
        name=_present(profile.full_name) or _present(name) or NOT_PROVIDED,
        email=_present(profile.email) or _present(email) or NOT_PROVIDED,
        phone=_present(profile.phone) or _present(phone),
    )


def _metadata(values: dict[str, Any]) -> dict[str, str]:
    return {key: "" if value is None else str(value) for key, value in values.items()}


def _page_path(return_page: str, params: dict[str, Any]) -> str:
    page = sanitize_path(return_page, settings.payment.chat_page_path).split("?")[0]
    query = urlencode({k: v for k, v in params.items() if v is not None}, safe=":")
    return f"{page}?{query}"


def _parse_minutes(value: Optional[str]) -> Optional[int]:
    if is_not_provided(value):
        return None
    match = re.match(r"\s*(\d+)", value)
    return int(match.group(1)) if match else None


class BookingStrategy(ABC):
    """Base class for kind-specific booking behavior."""

    kind: ServiceKind
    tag: CommandTag
    table: str

    def validate(self, intent: BookingIntent) -> Optional[str]:
        """Return a user-facing rejection message, or None if executable."""
        missing = intent.missing_fields()
        if missing:
            return templates.missing_fields_question(missing)
        return None

    @abstractmethod
    def contact(self, intent: BookingIntent, profile: Optional[UserProfile]) -> ResolvedContact:
        ...

    @abstractmethod
    def price(self, intent: BookingIntent) -> float:
        ...

    def checkout_request(
        self,
        intent: BookingIntent,
        contact: ResolvedContact,
        user_id: Optional[str],
        return_page: str,
    ) -> Optional[CheckoutRequest]:
        """Hosted checkout for paid kinds; None when the kind has no payment step."""
        return None

    @abstractmethod
    def record(
        self, intent: BookingIntent, contact: ResolvedContact, user_id: Optional[str]
    ) -> dict[str, Any]:
        """Row written to the kind's table on the fallback (or primary) insert path."""

    @abstractmethod
    def confirmed_message(
        self, intent: BookingIntent, contact: ResolvedContact, checkout_url: Optional[str]
    ) -> str:
        ...

    @abstractmethod
    def pending_message(self, intent: BookingIntent, contact: ResolvedContact) -> str:
        ...

    @abstractmethod
    def simulated_message(self, intent: BookingIntent, contact: ResolvedContact) -> str:
        ...

    @abstractmethod
    def command_fields(self, intent: BookingIntent) -> dict[str, Optional[str]]:
        """Field map for rendering the intent as a command block."""

    @abstractmethod
    def intent_from_command(self, fields: dict[str, str]) -> BookingIntent:
        """Build an intent from a parsed command block."""


class AppointmentStrategy(BookingStrategy):
    kind = ServiceKind.APPOINTMENT
    tag = CommandTag.BOOK_APPOINTMENT
    table = settings.database.appointments_table

    def validate(self, intent: AppointmentIntent) -> Optional[str]:
        rejection = super().validate(intent)
        if rejection:
            return rejection
        try:
            Date.fromisoformat(intent.date)
        except ValueError:
            return templates.missing_fields_question(["date"])
        if to_24_hour(intent.start_time) is None:
            return templates.missing_fields_question(["start_time"])
        if not is_allowed_duration(intent.duration_minutes):
            logger.info(
                "Rejecting duration %s, allowed: %s", intent.duration_minutes, ALLOWED_DURATIONS
            )
            return templates.invalid_duration_message(intent.duration_minutes)
        return None

    def contact(self, intent: AppointmentIntent, profile: Optional[UserProfile]) -> ResolvedContact:
        return resolve_contact(
            profile, intent.contact_name, intent.contact_email, intent.contact_phone
        )

    def price(self, intent: AppointmentIntent) -> float:
        return appointment_price(intent.duration_minutes)

    def checkout_request(self, intent, contact, user_id, return_page) -> CheckoutRequest:
        return CheckoutRequest(
            kind=self.kind,
            product_name=f"Consultation ({intent.duration_minutes} minutes)",
            description=f"Appointment on {intent.date} at {intent.start_time}",
            amount_cents=to_cents(self.price(intent)),
            currency=settings.payment.currency,
            metadata=_metadata({
                "type": "appointment",
                "userId": user_id,
                "appointmentId": "pending",
                "durationMinutes": intent.duration_minutes,
                "date": intent.date,
                "startTime": intent.start_time,
                "contactName": contact.name,
                "contactEmail": contact.email,
                "contactPhone": contact.phone,
            }),
            success_path=_page_path(return_page, {
                "payment": "success",
                "type": "appointment",
                "date": intent.date,
                "time": intent.start_time,
                "duration": intent.duration_minutes,
            }),
            cancel_path=_page_path(return_page, {"payment": "cancelled", "type": "appointment"}),
            customer_email=contact.email if contact.email != NOT_PROVIDED else None,
        )

    def record(self, intent: AppointmentIntent, contact, user_id) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "duration_minutes": intent.duration_minutes,
            "contact_name": contact.name,
            "contact_email": contact.email,
            "contact_phone": contact.phone,
            "status": "pending",
            "stripe_payment_id": None,
            "appointment_start": f"{intent.date}T{intent.start_time}:00",
            "timezone": settings.brand.timezone,
        }

    def _contact_line(self, contact: ResolvedContact) -> str:
        return templates.contact_line(
            _present(contact.name), _present(contact.email), _present(contact.phone)
        )

    def confirmed_message(self, intent: AppointmentIntent, contact, checkout_url) -> str:
        return templates.appointment_confirmed(
            intent.date, intent.start_time, intent.duration_minutes,
            self.price(intent), self._contact_line(contact), checkout_url,
        )

    def pending_message(self, intent: AppointmentIntent, contact) -> str:
        return templates.appointment_pending(
            intent.date, intent.start_time, intent.duration_minutes,
            self.price(intent), self._contact_line(contact),
        )

    def simulated_message(self, intent: AppointmentIntent, contact) -> str:
        return templates.appointment_simulated(
            intent.date, intent.start_time, intent.duration_minutes,
            self.price(intent), self._contact_line(contact),
        )

    def command_fields(self, intent: AppointmentIntent) -> dict[str, Optional[str]]:
        return {
            "Date": intent.date,
            "Time": intent.start_time,
            "Duration": None if intent.duration_minutes is None else str(intent.duration_minutes),
            "Name": intent.contact_name,
            "Email": intent.contact_email,
            "Phone": intent.contact_phone,
        }

    def intent_from_command(self, fields: dict[str, str]) -> AppointmentIntent:
        raw_time = _present(fields.get("Time"))
        return AppointmentIntent(
            date=_present(fields.get("Date")),
            start_time=(to_24_hour(raw_time) or raw_time) if raw_time else None,
            duration_minutes=_parse_minutes(fields.get("Duration")),
            contact_name=_present(fields.get("Name")),
            contact_email=_present(fields.get("Email")),
            contact_phone=_present(fields.get("Phone")),
        )


class SubscriptionStrategy(BookingStrategy):
    kind = ServiceKind.SUBSCRIPTION
    tag = CommandTag.BOOK_SUBSCRIPTION
    table = settings.database.subscriptions_table

    def contact(self, intent: SubscriptionIntent, profile: Optional[UserProfile]) -> ResolvedContact:
        return resolve_contact(profile, intent.name, intent.email, intent.phone)

    def price(self, intent: SubscriptionIntent) -> float:
        return subscription_price(intent.plan)

    def checkout_request(self, intent, contact, user_id, return_page) -> CheckoutRequest:
        plan = intent.plan.value
        return CheckoutRequest(
            kind=self.kind,
            product_name=PLAN_CATALOG[intent.plan]["name"],
            description=f"Monthly coaching subscription - {plan} plan",
            amount_cents=to_cents(self.price(intent)),
            currency=settings.payment.currency,
            recurring_interval="month",
            metadata=_metadata({
                "type": "subscription",
                "userId": user_id,
                "plan": plan,
                "name": contact.name,
                "email": contact.email,
                "phone": contact.phone,
            }),
            success_path=_page_path(return_page, {
                "payment": "success", "type": "subscription", "plan": plan,
            }),
            cancel_path=_page_path(return_page, {"payment": "cancelled", "type": "subscription"}),
            customer_email=contact.email if contact.email != NOT_PROVIDED else None,
        )

    def record(self, intent: SubscriptionIntent, contact, user_id) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "plan_id": intent.plan.value,
            "status": "pending",
            "stripe_customer_id": None,
            "stripe_payment_id": None,
            "stripe_subscription_id": None,
        }

    def confirmed_message(self, intent: SubscriptionIntent, contact, checkout_url) -> str:
        return templates.subscription_confirmed(
            intent.plan.value, self.price(intent),
            _present(contact.name), _present(contact.email), checkout_url,
        )

    def pending_message(self, intent: SubscriptionIntent, contact) -> str:
        return templates.subscription_pending(intent.plan.value, self.price(intent))

    def simulated_message(self, intent: SubscriptionIntent, contact) -> str:
        return templates.subscription_simulated(intent.plan.value, self.price(intent))

    def command_fields(self, intent: SubscriptionIntent) -> dict[str, Optional[str]]:
        return {
            "Plan": intent.plan.value if intent.plan else None,
            "Name": intent.name,
            "Email": intent.email,
            "Phone": intent.phone,
        }

    def intent_from_command(self, fields: dict[str, str]) -> SubscriptionIntent:
        raw_plan = _present(fields.get("Plan"))
        return SubscriptionIntent(
            plan=match_plan(raw_plan) if raw_plan else None,
            name=_present(fields.get("Name")),
            email=_present(fields.get("Email")),
            phone=_present(fields.get("Phone")),
        )


class PitchDeckStrategy(BookingStrategy):
    kind = ServiceKind.PITCH_DECK
    tag = CommandTag.REQUEST_PITCH_DECK
    table = settings.database.pitch_requests_table

    def contact(self, intent: PitchDeckIntent, profile: Optional[UserProfile]) -> ResolvedContact:
        return resolve_contact(profile, intent.name, intent.email, intent.phone)

    def price(self, intent: PitchDeckIntent) -> float:
        return 0.0

    def record(self, intent: PitchDeckIntent, contact, user_id) -> dict[str, Any]:
        return {
            "project": intent.project.value,
            "user_id": user_id,
            "name": contact.name,
            "email": contact.email,
            "phone": contact.phone or NOT_PROVIDED,
            "role": _present(intent.role) or NOT_PROVIDED,
            "status": "submitted",
        }

    def confirmed_message(self, intent: PitchDeckIntent, contact, checkout_url) -> str:
        return templates.pitch_deck_confirmed(
            intent.project.value, _present(contact.name), _present(contact.email),
            _present(intent.role),
        )

    def pending_message(self, intent: PitchDeckIntent, contact) -> str:
        return self.confirmed_message(intent, contact, None)

    def simulated_message(self, intent: PitchDeckIntent, contact) -> str:
        return templates.pitch_deck_simulated(intent.project.value)

    def command_fields(self, intent: PitchDeckIntent) -> dict[str, Optional[str]]:
        return {
            "Project": intent.project.value if intent.project else None,
            "Name": intent.name,
            "Email": intent.email,
            "Phone": intent.phone,
            "Role": intent.role,
        }

    def intent_from_command(self, fields: dict[str, str]) -> PitchDeckIntent:
        raw_project = _present(fields.get("Project"))
        return PitchDeckIntent(
            project=match_project(raw_project) if raw_project else None,
            name=_present(fields.get("Name")),
            email=_present(fields.get("Email")),
            phone=_present(fields.get("Phone")),
            role=_present(fields.get("Role")),
        )
