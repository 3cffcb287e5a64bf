"""User-facing message templates for booking outcomes and follow-up questions."""

from typing import Optional

from booking_pipeline.utils import format_price

PAYMENT_LINK_TEXT = {
    "appointment": "🛒 Click here to complete payment and confirm your booking",
    "subscription": "🛒 Click here to complete payment and activate your subscription",
}

_CHECKOUT_FOOTER = "\n\n*This will redirect you to Stripe's secure checkout page.*"

FIELD_QUESTIONS = {
    "date": "which date works for you (e.g. tomorrow or 2025-09-22)",
    "start_time": "what time you'd like to start (e.g. 2pm or 14:00)",
    "duration_minutes": "how long the session should be (45, 60, 75, 90, 105 or 120 minutes)",
    "plan": "which plan you'd like: basic (€40/month), standard (€90/month) or premium (€230/month)",
    "project": "which pitch deck you're interested in: GalowClub or Perspectiv",
}


def contact_line(name: Optional[str], email: Optional[str], phone: Optional[str]) -> str:
    """' Contact: Jo · jo@x.com' built from whichever details are present."""
    parts = [p for p in (name, email, phone) if p]
    return f" Contact: {' · '.join(parts)}" if parts else ""


def _payment_block(kind: str, price: str, checkout_url: str) -> str:
    return (
        f"💰 **Price: {price}**\n\n💳 **Payment Required:**\n"
        f"[{PAYMENT_LINK_TEXT[kind]}]({checkout_url}){_CHECKOUT_FOOTER}"
    )


# --------------------------------------------------------------------- #
# Appointments
# --------------------------------------------------------------------- #

def appointment_confirmed(
    date: str, start_time: str, duration: int, price: float, contact: str, checkout_url: str
) -> str:
    return (
        f"✅ Perfect! I'll schedule your consultation for {date} at {start_time} "
        f"for {duration} minutes.{contact}\n\n"
        + _payment_block("appointment", format_price(price), checkout_url)
    )


def appointment_pending(date: str, start_time: str, duration: int, price: float, contact: str) -> str:
    return (
        f"Appointment recorded for {date} at {start_time} for {duration} minutes. "
        f"Price: {format_price(price)}.{contact}\n\n"
        "Payment setup failed, please contact support to complete your booking."
    )


def appointment_simulated(date: str, start_time: str, duration: int, price: float, contact: str) -> str:
    return (
        f"⚠️ SIMULATION MODE: Appointment would be booked for {date} at {start_time} "
        f"for {duration} minutes. Price: {format_price(price)}.{contact}\n\n"
        "💳 Payment required: To complete this booking, please contact support "
        "or use the manual booking form."
    )


# --------------------------------------------------------------------- #
# Subscriptions
# --------------------------------------------------------------------- #

def _identity_lines(name: Optional[str], email: Optional[str], role: Optional[str] = None) -> str:
    lines = ""
    if name:
        lines += f"\n\n👤 **Name:** {name}"
    if email:
        lines += f"\n📧 **Email:** {email}"
    if role:
        lines += f"\n💼 **Role:** {role}"
    return lines


def subscription_confirmed(
    plan: str, price: float, name: Optional[str], email: Optional[str], checkout_url: str
) -> str:
    return (
        f"✅ Perfect! I'll set up your {plan} coaching subscription."
        f"{_identity_lines(name, email)}\n\n"
        + _payment_block("subscription", format_price(price, "/month"), checkout_url)
    )


def subscription_pending(plan: str, price: float) -> str:
    return (
        f"Subscription recorded: {plan} ({format_price(price, '/month')}). "
        "Payment setup failed, please contact support to complete your subscription."
    )


def subscription_simulated(plan: str, price: float) -> str:
    return (
        f"⚠️ SIMULATION MODE: I understand you want the {plan} plan "
        f"({format_price(price, '/month')}), but I'm having technical difficulties with the "
        "booking system. Please contact support or try the manual subscription form."
    )


# --------------------------------------------------------------------- #
# Pitch decks
# --------------------------------------------------------------------- #

def pitch_deck_confirmed(
    project: str, name: Optional[str], email: Optional[str], role: Optional[str]
) -> str:
    return (
        f"✅ Perfect! Your {project} pitch deck request has been submitted."
        f"{_identity_lines(name, email, role)}\n\n"
        "📧 **Next Steps:** We'll send the pitch deck to your email address within 24 hours."
    )


def pitch_deck_simulated(project: str) -> str:
    return (
        f"⚠️ SIMULATION MODE: Your {project} pitch deck request could not be saved right now. "
        "Please try again later or contact support."
    )


# --------------------------------------------------------------------- #
# Follow-up questions and banners
# --------------------------------------------------------------------- #

def missing_fields_question(missing: list[str]) -> str:
    """Ask for exactly the fields that are still missing, nothing else."""
    questions = [FIELD_QUESTIONS.get(name, name.replace("_", " ")) for name in missing]
    if len(questions) == 1:
        return f"Could you tell me {questions[0]}?"
    return "Could you tell me " + ", ".join(questions[:-1]) + f" and {questions[-1]}?"


def invalid_duration_message(duration: Optional[int]) -> str:
    return (
        f"Sessions can't be {duration} minutes long. "
        f"Could you tell me {FIELD_QUESTIONS['duration_minutes']}?"
    )


def welcome_fallback(name: Optional[str] = None) -> str:
    greeting = f"Welcome, {name}!" if name else "Welcome!"
    return (
        f"👋 {greeting} I'm here to help you with Daniel's coaching services. "
        "What can I assist you with today?"
    )


def payment_success_banner(kind: Optional[str], plan: Optional[str] = None) -> Optional[str]:
    if kind == "appointment":
        return "🎉 Payment successful! Your consultation is confirmed. You'll receive a confirmation email shortly."
    if kind == "subscription":
        plan_name = plan or "coaching"
        return f"🎉 Payment successful! Your {plan_name} subscription is now active. Welcome aboard!"
    return None


PAYMENT_CANCELLED_BANNER = (
    "Payment was cancelled. No charges were made. "
    "Let me know if you'd like to try again or need help choosing."
)
