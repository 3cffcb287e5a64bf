"""Shared test fixtures and collaborator doubles."""

from datetime import date
from typing import Optional, Union

import pytest

from booking_pipeline.booking.executor import BookingExecutor
from booking_pipeline.booking.pipeline import ChatPipeline
from booking_pipeline.conversation.classifier import IntentClassifier
from booking_pipeline.conversation.slot_extractor import SlotExtractor
from booking_pipeline.schemas.booking_schema import CheckoutRequest, CheckoutSession
from booking_pipeline.schemas.profile_schema import UserProfile
from booking_pipeline.tools.chat_store import ChatStore
from booking_pipeline.tools.database import InMemoryRowStore, RowInsertError
from booking_pipeline.tools.llm import LLMServiceError
from booking_pipeline.tools.payments import MockCheckoutService, PaymentLinkError

# A Wednesday.
FIXED_TODAY = date(2025, 9, 17)
TOMORROW = "2025-09-18"

RLS_ERROR = RowInsertError("new row violates row-level security policy", code="42501")


class FailingCheckoutService:
    """Payment collaborator whose every call fails."""

    def __init__(self) -> None:
        self.requests: list[CheckoutRequest] = []

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        self.requests.append(request)
        raise PaymentLinkError("Stripe is unreachable")


class NetworkDownCheckoutService:
    """Payment collaborator failing with a plain network error."""

    def __init__(self) -> None:
        self.requests: list[CheckoutRequest] = []

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        self.requests.append(request)
        raise ConnectionError("network unreachable")


class CrashingRowStore:
    """Row store whose client blows up with an untyped error."""

    def __init__(self) -> None:
        self.attempts = 0

    async def insert(self, table: str, record: dict) -> dict:
        self.attempts += 1
        raise RuntimeError("auth client exploded")

    async def select(self, table: str, filters=None, order_by=None) -> list[dict]:
        raise RuntimeError("auth client exploded")


class FlakyRowStore(InMemoryRowStore):
    """In-memory store that raises the queued errors before succeeding."""

    def __init__(self, errors: Optional[list[RowInsertError]] = None) -> None:
        super().__init__()
        self.errors = list(errors or [])
        self.attempts: list[tuple[str, dict]] = []

    async def insert(self, table: str, record: dict) -> dict:
        self.attempts.append((table, dict(record)))
        if self.errors:
            raise self.errors.pop(0)
        return await super().insert(table, record)


class ScriptedOracle:
    """Completion oracle returning queued replies (or raising queued errors)."""

    def __init__(self, replies: Optional[list[Union[str, Exception]]] = None) -> None:
        self.replies = list(replies or [])
        self.calls: list[dict] = []

    async def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
    ) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": list(messages),
            "temperature": temperature,
        })
        reply = self.replies.pop(0) if self.replies else "How can I help?"
        if isinstance(reply, Exception):
            raise reply
        return reply


def quota_error() -> LLMServiceError:
    return LLMServiceError(
        "OpenAI API quota exceeded. Please check your billing settings.", kind="quota"
    )


@pytest.fixture
def extractor():
    return SlotExtractor(today=lambda: FIXED_TODAY)


@pytest.fixture
def classifier():
    return IntentClassifier()


@pytest.fixture
def checkout():
    return MockCheckoutService()


@pytest.fixture
def rows():
    return FlakyRowStore()


@pytest.fixture
def oracle():
    return ScriptedOracle()


@pytest.fixture
def profile():
    return UserProfile(full_name="Jo", email="jo@x.com")


@pytest.fixture
def executor(checkout, rows):
    return BookingExecutor(checkout, rows)


@pytest.fixture
def pipeline(oracle, executor, rows, classifier, extractor):
    return ChatPipeline(
        oracle=oracle,
        executor=executor,
        chat_store=ChatStore(rows),
        classifier=classifier,
        extractor=extractor,
    )
