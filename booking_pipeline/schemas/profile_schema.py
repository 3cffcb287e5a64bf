"""User profile model and per-conversation session context."""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel

from booking_pipeline.schemas.booking_schema import BookingIntent
from booking_pipeline.schemas.chat_schema import ChatMessage, ChatRole


class UserProfile(BaseModel):
    """Contact details the caller already knows about the user."""
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


def _new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ChatSession:
    """
    Explicit session context threaded through the pipeline.

    Created on the first pipeline invocation for a conversation and torn
    down when the conversation view goes away. The transcript is
    append-only; ``busy`` is the in-flight guard for the active run.
    ``pending_intent`` holds a partially filled booking awaiting the
    user's answer to a follow-up question. ``intake_context`` is set after
    a successful payment and switches the LLM path to intake questions.
    """
    session_id: str = field(default_factory=_new_session_id)
    user_id: Optional[str] = None
    profile: Optional[UserProfile] = None
    transcript: list[ChatMessage] = field(default_factory=list)
    busy: bool = False
    welcome_emitted: bool = False
    closed: bool = False
    pending_intent: Optional[BookingIntent] = None
    intake_context: Optional[dict[str, str]] = None

    def append(self, role: ChatRole, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self.transcript.append(message)
        return message

    def history(self, limit: Optional[int] = None) -> list[dict[str, str]]:
        """Transcript as role/content dicts for the completion oracle."""
        messages = self.transcript[-limit:] if limit else self.transcript
        return [{"role": m.role.value, "content": m.content} for m in messages]
