"""
Chat pipeline: the single entry point between a chat surface and booking.

For every user message:
1. Reject it if another message of the same session is still in flight.
2. Append and persist the user message.
3. Regex path: a recognised booking phrasing is classified, its slots are
   extracted and, once complete, executed. Incomplete bookings get one
   follow-up question listing exactly the missing fields.
4. LLM path: everything else goes to the completion oracle, with the
   sales prompt or, after a successful payment, the intake prompt. A
   command block in its reply is interpreted and executed like a regex
   intent.
5. Append, persist and publish the assistant reply.

Collaborator failures never escape ``handle_message``; they end up as an
assistant message.

Usage:
    pipeline = ChatPipeline(oracle, executor, chat_store)
    session = await pipeline.open_session(user_id, profile)
    reply = await pipeline.handle_message(session, "book a consultation tomorrow at 2pm for 1 hour")
"""

import inspect
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel

from booking_pipeline.booking.executor import BookingExecutor
from booking_pipeline.booking.registry import strategy_for_tag
from booking_pipeline.config import settings
from booking_pipeline.conversation.classifier import IntentClassifier
from booking_pipeline.conversation.command_parser import find_command
from booking_pipeline.conversation.slot_extractor import SlotExtractor
from booking_pipeline.conversation.state_machine import (
    BookingState,
    BookingStateMachine,
    BookingTrigger,
)
from booking_pipeline.logging_context import get_session_logger, session_context
from booking_pipeline.prompts import prompt_templates as templates
from booking_pipeline.prompts.system_prompts import (
    CHAT_SYSTEM_PROMPT,
    INTAKE_SYSTEM_PROMPT,
    KICKOFF_REQUEST,
    KICKOFF_RULES,
    WELCOME_PROMPT,
    build_intake_note,
    build_profile_note,
)
from booking_pipeline.schemas.booking_schema import (
    BookingIntent,
    BookingResult,
    BookingStatus,
    ServiceKind,
)
from booking_pipeline.schemas.chat_schema import ChatMessage, ChatRole
from booking_pipeline.schemas.profile_schema import ChatSession, UserProfile
from booking_pipeline.tools.chat_store import ChatStore
from booking_pipeline.tools.llm import CompletionOracle, LLMServiceError, friendly_error

logger = get_session_logger(__name__)

Subscriber = Callable[[ChatSession, ChatMessage], Any]

WELCOME_REQUEST = "Start the conversation with a short, friendly welcome."

# Checkout "type" parameter -> service named in the intake conversation.
_INTAKE_SERVICE_TYPES = {"appointment": "consultation", "subscription": "coaching"}


class ChatReply(BaseModel):
    """What a submission produced. ``accepted`` is False for rejected submissions."""
    accepted: bool
    message: Optional[ChatMessage] = None
    booking: Optional[BookingResult] = None
    kind: ServiceKind = ServiceKind.NONE
    state: Optional[BookingState] = None


class _Turn(BaseModel):
    text: str
    booking: Optional[BookingResult] = None
    kind: ServiceKind = ServiceKind.NONE
    state: Optional[BookingState] = None


def merge_intents(base: BookingIntent, update: BookingIntent) -> BookingIntent:
    """Fill ``base`` with every field ``update`` actually carries."""
    values = {
        name: value
        for name, value in update.model_dump(exclude={"kind"}).items()
        if value not in (None, "")
    }
    return base.model_copy(update=values)


def fills_open_fields(pending: BookingIntent, update: BookingIntent) -> bool:
    """
    True when ``update`` answers something ``pending`` still needs.

    For an incomplete intent that is one of its missing fields; for a
    complete intent that failed validation any required field counts.
    """
    open_fields = pending.missing_fields() or list(pending.REQUIRED_FIELDS)
    return any(getattr(update, name) not in (None, "") for name in open_fields)


def intake_context(params: Mapping[str, str]) -> dict[str, str]:
    """Intake context from the checkout success redirect parameters."""
    kind = params.get("type", "")
    context = {"payment_status": "success", "service_type": _INTAKE_SERVICE_TYPES.get(kind, kind)}
    for key in ("plan", "date", "time", "duration"):
        if params.get(key):
            context[key] = params[key]
    return context


class ChatPipeline:
    """Orchestrates classification, extraction, execution and persistence."""

    def __init__(
        self,
        oracle: CompletionOracle,
        executor: BookingExecutor,
        chat_store: ChatStore,
        classifier: Optional[IntentClassifier] = None,
        extractor: Optional[SlotExtractor] = None,
        return_page: Optional[str] = None,
    ) -> None:
        self._oracle = oracle
        self._executor = executor
        self._store = chat_store
        self._classifier = classifier or IntentClassifier()
        self._extractor = extractor or SlotExtractor()
        self._return_page = return_page or settings.payment.chat_page_path
        self._subscribers: list[Subscriber] = []

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    async def open_session(
        self,
        user_id: Optional[str] = None,
        profile: Optional[UserProfile] = None,
        session_id: Optional[str] = None,
    ) -> ChatSession:
        """Create a session context, reloading stored history when resuming."""
        if session_id:
            session = ChatSession(session_id=session_id, user_id=user_id, profile=profile)
            history = await self._store.load_history(session_id, user_id)
            session.transcript.extend(history)
            session.welcome_emitted = bool(history)
        else:
            session = ChatSession(user_id=user_id, profile=profile)
        with session_context(session.session_id):
            logger.info("Session opened (%d stored messages)", len(session.transcript))
        return session

    def close_session(self, session: ChatSession) -> None:
        session.closed = True
        session.pending_intent = None
        with session_context(session.session_id):
            logger.info("Session closed after %d messages", len(session.transcript))

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Deliver every assistant message to ``callback``. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------ #
    # Message handling
    # ------------------------------------------------------------------ #

    async def handle_message(self, session: ChatSession, text: str) -> ChatReply:
        with session_context(session.session_id):
            return await self._handle(session, text)

    async def _handle(self, session: ChatSession, text: str) -> ChatReply:
        if session.closed:
            logger.warning("Message submitted to closed session %s", session.session_id)
            return ChatReply(accepted=False)
        if not text or not text.strip():
            return ChatReply(accepted=False)
        if session.busy:
            logger.info("Submission rejected: previous message still in flight")
            return ChatReply(accepted=False)

        session.busy = True
        try:
            text = text.strip()
            session.append(ChatRole.USER, text)
            await self._store.save_row(session, ChatRole.USER, text)

            turn = await self._respond(session, text)
            message = await self._emit(session, turn.text)
            return ChatReply(
                accepted=True,
                message=message,
                booking=turn.booking,
                kind=turn.kind,
                state=turn.state,
            )
        finally:
            session.busy = False

    async def _respond(self, session: ChatSession, text: str) -> _Turn:
        kind = self._classifier.classify(text)
        pending = session.pending_intent

        if kind != ServiceKind.NONE:
            intent = self._extractor.extract(text, kind)
            if pending is not None and pending.kind == kind:
                intent = merge_intents(pending, intent)
            logger.info("Regex path: %s", kind.value)
            return await self._run_attempt(session, intent)

        if pending is not None:
            update = self._extractor.extract(text, pending.kind)
            if fills_open_fields(pending, update):
                logger.info("Follow-up answer for pending %s booking", pending.kind.value)
                return await self._run_attempt(session, merge_intents(pending, update))
            session.pending_intent = None

        return await self._llm_turn(session)

    async def _run_attempt(self, session: ChatSession, intent: BookingIntent) -> _Turn:
        machine = BookingStateMachine()
        machine.transition(BookingTrigger.SLOTS_PARSED)

        if not intent.is_complete():
            machine.transition(BookingTrigger.SLOTS_INCOMPLETE)
            session.pending_intent = intent
            logger.info("Awaiting %s for %s", intent.missing_fields(), intent.kind.value)
            return _Turn(
                text=templates.missing_fields_question(intent.missing_fields()),
                kind=intent.kind,
                state=machine.current_state,
            )

        machine.transition(BookingTrigger.SLOTS_COMPLETE)
        result = await self._executor.execute(
            intent, session.user_id, session.profile, self._return_page
        )
        machine.record_outcome(result.status)
        session.pending_intent = intent if result.status == BookingStatus.REJECTED else None
        logger.info("Booking attempt finished: %s", " -> ".join(machine.get_state_trace()))
        return _Turn(text=result.message, booking=result, kind=intent.kind,
                     state=machine.current_state)

    @staticmethod
    def _system_prompt(session: ChatSession) -> str:
        if session.intake_context:
            base = INTAKE_SYSTEM_PROMPT + build_intake_note(session.intake_context)
        else:
            base = CHAT_SYSTEM_PROMPT
        return base + build_profile_note(session.user_id, session.profile)

    async def _llm_turn(self, session: ChatSession) -> _Turn:
        try:
            reply = await self._oracle.complete(
                self._system_prompt(session), session.history(limit=settings.history_limit)
            )
        except LLMServiceError as exc:
            logger.error("Completion failed (%s): %s", exc.kind, exc)
            return _Turn(text=exc.friendly_message)
        except Exception as exc:
            logger.exception("Completion oracle crashed")
            return _Turn(text=friendly_error(exc).friendly_message)

        command = find_command(reply)
        if command is None:
            return _Turn(text=reply)

        tag, fields = command
        strategy = strategy_for_tag(tag)
        logger.info("LLM path: %s command with fields %s", tag.value, sorted(fields))
        return await self._run_attempt(session, strategy.intent_from_command(fields))

    # ------------------------------------------------------------------ #
    # Assistant-initiated messages
    # ------------------------------------------------------------------ #

    async def welcome(self, session: ChatSession) -> Optional[ChatMessage]:
        """Emit the session's welcome message once, before anything else is said."""
        if session.welcome_emitted or session.transcript:
            return None
        session.welcome_emitted = True
        with session_context(session.session_id):
            return await self._welcome(session)

    async def _welcome(self, session: ChatSession) -> ChatMessage:
        name = session.profile.full_name if session.profile else None
        try:
            text = await self._oracle.complete(
                WELCOME_PROMPT + build_profile_note(session.user_id, session.profile),
                [{"role": ChatRole.USER.value, "content": WELCOME_REQUEST}],
                temperature=settings.model.welcome_temperature,
            )
            text = text.strip().strip('"').strip()
        except LLMServiceError as exc:
            logger.warning("Welcome generation failed, using fallback: %s", exc)
            text = ""
        except Exception:
            logger.exception("Completion oracle crashed during welcome, using fallback")
            text = ""
        return await self._emit(session, text or templates.welcome_fallback(name))

    async def payment_return(
        self, session: ChatSession, params: Mapping[str, str]
    ) -> Optional[ChatMessage]:
        """
        Turn checkout redirect parameters into an assistant message.

        A cancelled payment gets a static banner. A successful one switches
        the session to intake mode and opens it with a generated kickoff
        that confirms the purchase and asks one open-ended question; the
        static success banner stands in when the kickoff cannot be generated.
        """
        with session_context(session.session_id):
            return await self._payment_return(session, params)

    async def _payment_return(
        self, session: ChatSession, params: Mapping[str, str]
    ) -> Optional[ChatMessage]:
        payment = params.get("payment")
        if payment == "cancelled":
            logger.info("Payment return: cancelled (%s)", params.get("type"))
            return await self._emit(session, templates.PAYMENT_CANCELLED_BANNER)
        if payment != "success":
            return None

        banner = templates.payment_success_banner(params.get("type"), params.get("plan"))
        if banner is None:
            return None
        session.intake_context = intake_context(params)
        session.pending_intent = None
        logger.info("Payment return: success (%s), starting intake", params.get("type"))
        text = await self._intake_kickoff(session)
        return await self._emit(session, text or banner)

    async def _intake_kickoff(self, session: ChatSession) -> str:
        request = KICKOFF_REQUEST + build_intake_note(session.intake_context)
        try:
            text = await self._oracle.complete(
                INTAKE_SYSTEM_PROMPT + KICKOFF_RULES
                + build_profile_note(session.user_id, session.profile),
                [{"role": ChatRole.USER.value, "content": request}],
                temperature=settings.model.kickoff_temperature,
            )
        except LLMServiceError as exc:
            logger.warning("Intake kickoff failed, using banner: %s", exc)
            return ""
        except Exception:
            logger.exception("Completion oracle crashed during intake kickoff, using banner")
            return ""
        return (text or "").strip()

    async def _emit(self, session: ChatSession, text: str) -> ChatMessage:
        message = session.append(ChatRole.ASSISTANT, text)
        await self._store.save_row(session, ChatRole.ASSISTANT, text)
        for callback in list(self._subscribers):
            try:
                outcome = callback(session, message)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Subscriber %r failed", callback)
        return message
