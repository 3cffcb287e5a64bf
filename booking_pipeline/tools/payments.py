"""
Hosted checkout links for paid bookings.

StripeCheckoutService creates real Stripe Checkout sessions;
MockCheckoutService keeps sessions in memory for the console demo and
tests. Both satisfy the PaymentLinkService protocol the executor depends on.
"""

import asyncio
import logging
import uuid
from typing import Optional, Protocol
from urllib.parse import urlsplit

import stripe

from booking_pipeline.config import settings
from booking_pipeline.schemas.booking_schema import CheckoutRequest, CheckoutSession

logger = logging.getLogger(__name__)


class PaymentLinkError(Exception):
    """Raised when a checkout link cannot be created."""


class PaymentLinkService(Protocol):
    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        ...


def sanitize_path(path: Optional[str], fallback: str) -> str:
    """Reduce a return path to a same-site relative path.

    Absolute URLs keep only their path, query and fragment; protocol-relative
    or unrooted paths are replaced by ``fallback``.

    Examples:
        >>> sanitize_path("https://evil.example/chatbot?x=1", "/chatbot")
        '/chatbot?x=1'
        >>> sanitize_path("//evil.example", "/chatbot")
        '/chatbot'
    """
    if not isinstance(path, str):
        return fallback
    if path.startswith(("http://", "https://")):
        try:
            parts = urlsplit(path)
        except ValueError:
            return fallback
        relative = parts.path or "/"
        if parts.query:
            relative += f"?{parts.query}"
        if parts.fragment:
            relative += f"#{parts.fragment}"
        return relative if relative.startswith("/") else fallback
    if not path.startswith("/") or path.startswith("//"):
        return fallback
    return path


def build_session_params(request: CheckoutRequest, site_url: str) -> dict:
    """Stripe Checkout session parameters for ``request``."""
    price_data: dict = {
        "currency": request.currency,
        "product_data": {
            "name": request.product_name,
            "description": request.description,
        },
        "unit_amount": request.amount_cents,
    }
    if request.recurring_interval:
        price_data["recurring"] = {"interval": request.recurring_interval}

    params = {
        "payment_method_types": ["card"],
        "line_items": [{"price_data": price_data, "quantity": 1}],
        "mode": "subscription" if request.recurring_interval else "payment",
        "success_url": f"{site_url}{request.success_path}",
        "cancel_url": f"{site_url}{request.cancel_path}",
        "metadata": dict(request.metadata),
    }
    if request.customer_email:
        params["customer_email"] = request.customer_email
    return params


class StripeCheckoutService:
    """Creates Stripe Checkout sessions."""

    def __init__(self, api_key: Optional[str] = None, site_url: Optional[str] = None) -> None:
        self._api_key = api_key if api_key is not None else settings.payment.stripe_secret_key
        self._site_url = (site_url or settings.payment.site_url).rstrip("/")

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        if not self._api_key:
            raise PaymentLinkError("Stripe secret key is not configured")

        params = build_session_params(request, self._site_url)
        logger.info(
            "Creating %s checkout: success_url=%s cancel_url=%s mode=%s",
            request.kind.value, params["success_url"], params["cancel_url"], params["mode"],
        )
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create, api_key=self._api_key, **params
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout creation failed: %s", exc)
            raise PaymentLinkError(str(exc)) from exc

        if not session.url:
            raise PaymentLinkError("Stripe returned a session without a URL")
        return CheckoutSession(session_id=session.id, url=session.url)


class MockCheckoutService:
    """In-memory checkout links for offline runs."""

    def __init__(self, base_url: str = "https://checkout.example.test/pay") -> None:
        self._base_url = base_url
        self.requests: list[CheckoutRequest] = []

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        self.requests.append(request)
        session_id = f"cs_test_{uuid.uuid4().hex[:12]}"
        logger.info("Mock checkout created: %s (%s cents)", session_id, request.amount_cents)
        return CheckoutSession(session_id=session_id, url=f"{self._base_url}/{session_id}")

    def reset(self) -> None:
        self.requests.clear()
