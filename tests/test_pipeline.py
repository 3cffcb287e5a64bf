"""Tests for the chat pipeline: regex path, LLM path, session lifecycle."""

import asyncio

import pytest

from booking_pipeline.booking.executor import BookingExecutor
from booking_pipeline.booking.pipeline import (
    ChatPipeline,
    fills_open_fields,
    intake_context,
    merge_intents,
)
from booking_pipeline.config import settings
from booking_pipeline.conversation.state_machine import BookingState
from booking_pipeline.prompts.prompt_templates import (
    PAYMENT_CANCELLED_BANNER,
    payment_success_banner,
    welcome_fallback,
)
from booking_pipeline.prompts.system_prompts import CHAT_SYSTEM_PROMPT, INTAKE_SYSTEM_PROMPT
from booking_pipeline.schemas.booking_schema import (
    AppointmentIntent,
    BookingStatus,
    ServiceKind,
)
from booking_pipeline.schemas.chat_schema import ChatRole
from booking_pipeline.tools.chat_store import ChatStore
from tests.conftest import (
    TOMORROW,
    CrashingRowStore,
    NetworkDownCheckoutService,
    quota_error,
)

CONVERSATIONS = settings.database.conversations_table

SUBSCRIPTION_COMMAND_REPLY = (
    "Wonderful, let's get you started!\n\n"
    "**BOOK_SUBSCRIPTION**\n"
    "Plan: premium\n"
    "Name: not provided\n"
    "Email: not provided"
)


class BlockingOracle:
    """Oracle that waits until released, to hold a run in flight."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def complete(self, system_prompt, messages, temperature=None):
        self.entered.set()
        await self.release.wait()
        return "Done thinking."


class TestRegexPath:
    @pytest.mark.asyncio
    async def test_consultation_booked_without_llm(self, pipeline, oracle, checkout, rows, profile):
        session = await pipeline.open_session("u-1", profile)

        reply = await pipeline.handle_message(
            session, "book a consultation tomorrow at 2pm for 1 hour"
        )

        assert reply.accepted
        assert reply.kind == ServiceKind.APPOINTMENT
        assert reply.state == BookingState.CONFIRMED
        assert reply.booking.status == BookingStatus.CONFIRMED
        assert "€90.00" in reply.message.content
        assert oracle.calls == []
        assert checkout.requests[0].metadata["date"] == TOMORROW
        assert checkout.requests[0].metadata["contactEmail"] == "jo@x.com"

    @pytest.mark.asyncio
    async def test_time_range_booking(self, pipeline, checkout):
        session = await pipeline.open_session()
        reply = await pipeline.handle_message(session, "3pm until 4:30pm tomorrow, 1:1 session")

        assert reply.state == BookingState.CONFIRMED
        assert checkout.requests[0].metadata["durationMinutes"] == "90"
        assert "€135.00" in reply.message.content

    @pytest.mark.asyncio
    async def test_transcript_persisted(self, pipeline, rows):
        session = await pipeline.open_session("u-1")
        await pipeline.handle_message(session, "book a consultation tomorrow at 2pm for 1 hour")

        assert [m.role for m in session.transcript] == [ChatRole.USER, ChatRole.ASSISTANT]
        stored = rows.tables[CONVERSATIONS]
        assert [row["role"] for row in stored] == ["user", "assistant"]
        assert all(row["session_id"] == session.session_id for row in stored)


class TestFollowUps:
    @pytest.mark.asyncio
    async def test_missing_duration_then_answer(self, pipeline, oracle, checkout):
        session = await pipeline.open_session()

        first = await pipeline.handle_message(session, "book a consultation tomorrow at 2pm")
        assert first.state == BookingState.AWAITING_INPUT
        assert first.booking is None
        assert "how long" in first.message.content
        assert "which date" not in first.message.content
        assert session.pending_intent is not None

        second = await pipeline.handle_message(session, "for 90 minutes")
        assert second.state == BookingState.CONFIRMED
        assert "€135.00" in second.message.content
        assert session.pending_intent is None
        assert oracle.calls == []
        assert checkout.requests[0].metadata["startTime"] == "14:00"

    @pytest.mark.asyncio
    async def test_rejected_duration_kept_for_correction(self, pipeline, checkout):
        session = await pipeline.open_session()

        first = await pipeline.handle_message(
            session, "book a consultation tomorrow at 2pm for 50 minutes"
        )
        assert first.state == BookingState.REJECTED
        assert not first.booking.success
        assert checkout.requests == []

        second = await pipeline.handle_message(session, "ok, for 60 minutes then")
        assert second.state == BookingState.CONFIRMED
        assert "€90.00" in second.message.content

    @pytest.mark.asyncio
    async def test_unrelated_message_drops_pending(self, pipeline, oracle):
        session = await pipeline.open_session()
        await pipeline.handle_message(session, "book a consultation tomorrow at 2pm")

        reply = await pipeline.handle_message(session, "thanks, never mind")

        assert reply.booking is None
        assert session.pending_intent is None
        assert len(oracle.calls) == 1

    @pytest.mark.asyncio
    async def test_contact_details_alone_are_not_an_answer(self, pipeline, oracle):
        session = await pipeline.open_session()
        await pipeline.handle_message(session, "book a consultation tomorrow at 2pm")

        reply = await pipeline.handle_message(session, "my email is jo@x.com, what do you offer?")

        assert reply.booking is None
        assert reply.state is None
        assert session.pending_intent is None
        assert len(oracle.calls) == 1

    def test_fills_open_fields(self):
        pending = AppointmentIntent(date=TOMORROW, start_time="14:00")
        assert fills_open_fields(pending, AppointmentIntent(duration_minutes=60))
        assert not fills_open_fields(pending, AppointmentIntent(contact_email="jo@x.com"))

        rejected = AppointmentIntent(date=TOMORROW, start_time="14:00", duration_minutes=50)
        assert fills_open_fields(rejected, AppointmentIntent(start_time="15:00"))

    def test_merge_intents_keeps_existing_values(self):
        base = AppointmentIntent(date=TOMORROW, start_time="14:00")
        merged = merge_intents(base, AppointmentIntent(duration_minutes=60))
        assert (merged.date, merged.start_time, merged.duration_minutes) == (TOMORROW, "14:00", 60)


class TestLLMPath:
    @pytest.mark.asyncio
    async def test_informational_question_goes_to_llm(self, pipeline, oracle, checkout, profile):
        oracle.replies.append("The Premium plan includes weekly sessions.")
        session = await pipeline.open_session("u-1", profile)

        reply = await pipeline.handle_message(session, "what does the premium plan include?")

        assert reply.kind == ServiceKind.NONE
        assert reply.booking is None
        assert reply.message.content == "The Premium plan includes weekly sessions."
        assert checkout.requests == []
        call = oracle.calls[0]
        assert "USER PROFILE" in call["system_prompt"]
        assert "- Name: Jo" in call["system_prompt"]
        assert call["messages"][-1] == {
            "role": "user", "content": "what does the premium plan include?",
        }

    @pytest.mark.asyncio
    async def test_command_block_executed(self, pipeline, oracle, checkout):
        oracle.replies.append(SUBSCRIPTION_COMMAND_REPLY)
        session = await pipeline.open_session()

        reply = await pipeline.handle_message(session, "yes please, let's do that")

        assert reply.kind == ServiceKind.SUBSCRIPTION
        assert reply.state == BookingState.CONFIRMED
        assert "€230.00/month" in reply.message.content
        assert "**BOOK_SUBSCRIPTION**" not in reply.message.content
        assert checkout.requests[0].metadata["name"] == "Not provided"

    @pytest.mark.asyncio
    async def test_incomplete_command_asks_question(self, pipeline, oracle, checkout):
        oracle.replies.append("**BOOK_APPOINTMENT**\nDate: 2025-09-18\nName: not provided")
        session = await pipeline.open_session()

        reply = await pipeline.handle_message(session, "sounds good")

        assert reply.state == BookingState.AWAITING_INPUT
        assert "what time" in reply.message.content
        assert checkout.requests == []

    @pytest.mark.asyncio
    async def test_llm_failure_shown_to_user(self, pipeline, oracle):
        oracle.replies.append(quota_error())
        session = await pipeline.open_session()

        reply = await pipeline.handle_message(session, "hello")

        assert reply.accepted
        assert reply.message.content == (
            "OpenAI API quota exceeded. Please check your billing settings."
        )

    @pytest.mark.asyncio
    async def test_history_is_limited(self, pipeline, oracle):
        session = await pipeline.open_session()
        for i in range(settings.history_limit + 5):
            session.append(ChatRole.USER, f"message {i}")

        await pipeline.handle_message(session, "hello")

        assert len(oracle.calls[0]["messages"]) == settings.history_limit


class TestSubmissionGuards:
    @pytest.mark.asyncio
    async def test_busy_session_rejects(self, pipeline):
        session = await pipeline.open_session()
        session.busy = True
        reply = await pipeline.handle_message(session, "hello")
        assert not reply.accepted
        assert session.transcript == []

    @pytest.mark.asyncio
    async def test_concurrent_submission_rejected(self, executor, rows, classifier, extractor):
        oracle = BlockingOracle()
        pipeline = ChatPipeline(
            oracle=oracle, executor=executor, chat_store=ChatStore(rows),
            classifier=classifier, extractor=extractor,
        )
        session = await pipeline.open_session()

        first = asyncio.create_task(pipeline.handle_message(session, "hello"))
        await oracle.entered.wait()
        second = await pipeline.handle_message(session, "are you there?")
        oracle.release.set()
        first_reply = await first

        assert not second.accepted
        assert first_reply.accepted
        assert not session.busy
        assert [m.content for m in session.transcript] == ["hello", "Done thinking."]

    @pytest.mark.asyncio
    async def test_oracle_crash_becomes_message(self, pipeline, oracle):
        oracle.replies.append(RuntimeError("unexpected"))
        session = await pipeline.open_session()

        reply = await pipeline.handle_message(session, "hello")

        assert reply.accepted
        assert reply.message.content == "AI service error: unexpected"
        assert not session.busy

    @pytest.mark.asyncio
    async def test_crashing_collaborators_never_raise(self, oracle, classifier, extractor):
        rows = CrashingRowStore()
        pipeline = ChatPipeline(
            oracle=oracle,
            executor=BookingExecutor(NetworkDownCheckoutService(), rows),
            chat_store=ChatStore(rows),
            classifier=classifier,
            extractor=extractor,
        )
        session = await pipeline.open_session("u-1", session_id="stored")

        reply = await pipeline.handle_message(
            session, "book a consultation tomorrow at 2pm for 1 hour"
        )

        assert reply.accepted
        assert reply.booking.status == BookingStatus.SIMULATED
        assert "SIMULATION MODE" in reply.message.content
        assert not session.busy

    @pytest.mark.asyncio
    async def test_empty_and_closed(self, pipeline):
        session = await pipeline.open_session()
        assert not (await pipeline.handle_message(session, "   ")).accepted

        pipeline.close_session(session)
        assert not (await pipeline.handle_message(session, "hello")).accepted
        assert session.transcript == []


class TestWelcome:
    @pytest.mark.asyncio
    async def test_emitted_once(self, pipeline, oracle, profile):
        oracle.replies.append('"Hi Jo, what brings you here?"')
        session = await pipeline.open_session("u-1", profile)

        message = await pipeline.welcome(session)
        again = await pipeline.welcome(session)

        assert message.content == "Hi Jo, what brings you here?"
        assert again is None
        assert len(oracle.calls) == 1
        assert oracle.calls[0]["temperature"] == settings.model.welcome_temperature

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self, pipeline, oracle, profile):
        oracle.replies.append(quota_error())
        session = await pipeline.open_session("u-1", profile)

        message = await pipeline.welcome(session)

        assert message.content == welcome_fallback("Jo")

    @pytest.mark.asyncio
    async def test_not_sent_after_conversation_started(self, pipeline, oracle):
        session = await pipeline.open_session()
        await pipeline.handle_message(session, "hello")

        assert await pipeline.welcome(session) is None
        assert len(oracle.calls) == 1


class TestSessionResume:
    @pytest.mark.asyncio
    async def test_history_reloaded(self, pipeline, oracle):
        oracle.replies.append("Happy to help.")
        session = await pipeline.open_session("u-1")
        await pipeline.handle_message(session, "hello")
        pipeline.close_session(session)

        resumed = await pipeline.open_session("u-1", session_id=session.session_id)

        assert resumed.session_id == session.session_id
        assert [m.content for m in resumed.transcript] == ["hello", "Happy to help."]
        assert resumed.welcome_emitted
        assert await pipeline.welcome(resumed) is None

    @pytest.mark.asyncio
    async def test_unknown_session_starts_empty(self, pipeline):
        session = await pipeline.open_session("u-1", session_id="missing")
        assert session.transcript == []
        assert not session.welcome_emitted


class TestPaymentReturn:
    @pytest.mark.asyncio
    async def test_success_starts_intake_with_kickoff(self, pipeline, oracle, profile):
        oracle.replies.append("Payment received, thank you! What's the main goal for your session?")
        session = await pipeline.open_session("u-1", profile)

        message = await pipeline.payment_return(session, {
            "payment": "success", "type": "appointment",
            "date": TOMORROW, "time": "14:00", "duration": "60",
        })

        assert message.content.endswith("What's the main goal for your session?")
        assert session.intake_context == {
            "payment_status": "success", "service_type": "consultation",
            "date": TOMORROW, "time": "14:00", "duration": "60",
        }
        call = oracle.calls[0]
        assert call["system_prompt"].startswith(INTAKE_SYSTEM_PROMPT)
        assert "ONE open-ended question" in call["system_prompt"]
        assert "- Name: Jo" in call["system_prompt"]
        assert "- Service Type: consultation" in call["messages"][0]["content"]
        assert call["temperature"] == settings.model.kickoff_temperature

    @pytest.mark.asyncio
    async def test_kickoff_failure_falls_back_to_banner(self, pipeline, oracle):
        oracle.replies.append(quota_error())
        session = await pipeline.open_session()

        message = await pipeline.payment_return(
            session, {"payment": "success", "type": "subscription", "plan": "premium"}
        )

        assert message.content == payment_success_banner("subscription", "premium")
        assert "premium subscription is now active" in message.content
        assert session.intake_context["service_type"] == "coaching"

    @pytest.mark.asyncio
    async def test_intake_mode_drives_later_turns(self, pipeline, oracle):
        session = await pipeline.open_session()
        await pipeline.payment_return(
            session, {"payment": "success", "type": "subscription", "plan": "basic"}
        )
        oracle.replies.append("Thanks! What's getting in the way right now?")

        reply = await pipeline.handle_message(session, "I want to post more consistently")

        system_prompt = oracle.calls[-1]["system_prompt"]
        assert system_prompt.startswith(INTAKE_SYSTEM_PROMPT)
        assert "INTAKE CONTEXT" in system_prompt
        assert "- Plan: basic" in system_prompt
        assert CHAT_SYSTEM_PROMPT not in system_prompt
        assert reply.message.content == "Thanks! What's getting in the way right now?"

    @pytest.mark.asyncio
    async def test_cancelled_banner(self, pipeline, oracle):
        session = await pipeline.open_session()
        message = await pipeline.payment_return(session, {"payment": "cancelled"})
        assert message.content == PAYMENT_CANCELLED_BANNER
        assert session.intake_context is None
        assert oracle.calls == []

    @pytest.mark.asyncio
    async def test_unrelated_params_ignored(self, pipeline, oracle):
        session = await pipeline.open_session()
        assert await pipeline.payment_return(session, {}) is None
        assert await pipeline.payment_return(session, {"payment": "success", "type": "x"}) is None
        assert session.transcript == []
        assert oracle.calls == []

    def test_intake_context_skips_absent_params(self):
        assert intake_context({"payment": "success", "type": "subscription", "plan": ""}) == {
            "payment_status": "success", "service_type": "coaching",
        }



class TestSubscribers:
    @pytest.mark.asyncio
    async def test_assistant_messages_published(self, pipeline, oracle):
        received = []
        unsubscribe = pipeline.subscribe(lambda session, message: received.append(message.content))
        session = await pipeline.open_session()

        await pipeline.handle_message(session, "hello")
        unsubscribe()
        await pipeline.handle_message(session, "hello again")

        assert received == ["How can I help?"]

    @pytest.mark.asyncio
    async def test_async_and_failing_subscribers(self, pipeline):
        received = []

        async def collect(session, message):
            received.append(message.content)

        def explode(session, message):
            raise RuntimeError("listener bug")

        pipeline.subscribe(explode)
        pipeline.subscribe(collect)
        session = await pipeline.open_session()

        reply = await pipeline.handle_message(session, "hello")

        assert reply.accepted
        assert received == ["How can I help?"]
