"""
Chat transcript persistence.

Every user and assistant message is written as one row of the
conversations table: ``{session_id, user_id, role, content}``. Reads and
writes are best effort; a failure of any kind is logged and the
conversation continues.
"""

import logging
from typing import Optional

from booking_pipeline.config import settings
from booking_pipeline.schemas.chat_schema import ChatMessage, ChatRole, ConversationSummary
from booking_pipeline.schemas.profile_schema import ChatSession
from booking_pipeline.tools.database import RowInsertError, RowStore
from booking_pipeline.utils import titleize

logger = logging.getLogger(__name__)

_ROLES = {role.value for role in ChatRole}


class ChatStore:
    """Reads and writes transcript rows through a RowStore."""

    def __init__(self, rows: RowStore, table: Optional[str] = None) -> None:
        self._rows = rows
        self._table = table or settings.database.conversations_table

    async def save_row(self, session: ChatSession, role: ChatRole, content: str) -> bool:
        """Persist one message. Returns False when nothing was written."""
        if not session.session_id or not content or not content.strip():
            return False
        record = {
            "session_id": session.session_id,
            "user_id": session.user_id,
            "role": role.value,
            "content": content,
        }
        try:
            await self._rows.insert(self._table, record)
        except RowInsertError as exc:
            logger.error("Failed to save chat row (code=%s): %s", exc.code, exc)
            return False
        except Exception:
            logger.exception("Row store crashed while saving a chat row")
            return False
        logger.debug("Saved %s row (%d chars)", role.value, len(content))
        return True

    async def load_history(self, session_id: str, user_id: Optional[str] = None) -> list[ChatMessage]:
        """Stored user/assistant messages of a session, oldest first."""
        filters = {"session_id": session_id}
        if user_id:
            filters["user_id"] = user_id
        try:
            rows = await self._rows.select(self._table, filters=filters, order_by="created_at")
        except RowInsertError as exc:
            logger.error("Failed to load chat history: %s", exc)
            return []
        except Exception:
            logger.exception("Row store crashed while loading chat history")
            return []

        return [
            ChatMessage(role=ChatRole(row["role"]), content=row["content"], created_at=row["created_at"])
            for row in rows
            if row.get("role") in _ROLES
        ]

    async def conversation_summaries(self, user_id: str) -> list[ConversationSummary]:
        """
        One summary per session of ``user_id``, newest first.

        The title comes from the first user message of each session.

        Raises:
            RowInsertError: If the rows cannot be read.
        """
        rows = await self._rows.select(
            self._table, filters={"user_id": user_id}, order_by="created_at"
        )

        grouped: dict[str, dict] = {}
        for row in rows:
            group = grouped.setdefault(row["session_id"], {
                "title_seed": None,
                "last_at": row["created_at"],
                "message_count": 0,
            })
            group["message_count"] += 1
            group["last_at"] = row["created_at"]
            if group["title_seed"] is None and row.get("role") == ChatRole.USER.value:
                group["title_seed"] = row.get("content")

        summaries = [
            ConversationSummary(
                session_id=session_id,
                title=titleize(group["title_seed"] or ""),
                last_at=group["last_at"],
                message_count=group["message_count"],
            )
            for session_id, group in grouped.items()
        ]
        summaries.sort(key=lambda s: s.last_at, reverse=True)
        return summaries
