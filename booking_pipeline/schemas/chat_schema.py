"""Chat transcript schemas."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    """A single message in a chat transcript. Never mutated once appended."""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str
    created_at: datetime = Field(default_factory=_utcnow)


class ConversationSummary(BaseModel):
    """One row of a user's conversation list."""

    session_id: str
    title: str
    last_at: datetime
    message_count: int
