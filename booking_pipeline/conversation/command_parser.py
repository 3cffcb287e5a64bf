"""
Command blocks embedded in assistant replies.

The assistant is instructed to end a booking reply with a block such as:

    **BOOK_SUBSCRIPTION**
    Plan: premium
    Name: Jo
    Email: jo@x.com

``parse_command`` turns that block back into a field map and
``render_command_block`` produces it, so the two round-trip.
"""

import logging
import re
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

NOT_PROVIDED = "not provided"


class CommandTag(str, Enum):
    BOOK_APPOINTMENT = "BOOK_APPOINTMENT"
    BOOK_SUBSCRIPTION = "BOOK_SUBSCRIPTION"
    REQUEST_PITCH_DECK = "REQUEST_PITCH_DECK"

    @property
    def marker(self) -> str:
        return f"**{self.value}**"


def parse_command(reply: str, tag: CommandTag) -> Optional[dict[str, str]]:
    """
    Extract the key/value fields following ``**TAG**`` in ``reply``.

    Everything after the first occurrence of the marker is scanned line by
    line. Blank lines, lines containing ``**`` and lines without a colon
    (or starting with one) are skipped. Each remaining line is split at its
    first colon; pairs with an empty key or value are dropped.

    Returns:
        The field map (possibly empty), or None when the marker is absent.
    """
    start = reply.find(tag.marker)
    if start == -1:
        return None

    fields: dict[str, str] = {}
    for line in reply[start + len(tag.marker):].split("\n"):
        if not line.strip() or "**" in line:
            continue
        colon = line.find(":")
        if colon <= 0:
            continue
        key = line[:colon].strip()
        value = line[colon + 1:].strip()
        if key and value:
            fields[key] = value

    logger.debug("Parsed %s command with fields %s", tag.value, sorted(fields))
    return fields


def find_command(reply: str) -> Optional[tuple[CommandTag, dict[str, str]]]:
    """Return the first command block present in ``reply``, if any."""
    found = [(reply.find(tag.marker), tag) for tag in CommandTag if tag.marker in reply]
    if not found:
        return None
    _, tag = min(found, key=lambda item: item[0])
    fields = parse_command(reply, tag)
    return tag, fields or {}


def render_command_block(tag: CommandTag, fields: dict[str, Optional[str]]) -> str:
    """
    Render ``fields`` as a command block that ``parse_command`` reads back.

    Empty values are omitted. Whitespace inside values is collapsed onto a
    single line.

    Raises:
        ValueError: If a key contains a colon, a newline or ``**``, or a
            value contains ``**``.
    """
    lines = [tag.marker]
    for key, value in fields.items():
        clean_key = key.strip()
        if not clean_key or ":" in clean_key or "\n" in clean_key or "**" in clean_key:
            raise ValueError(f"Invalid command field name: {key!r}")
        if value is None:
            continue
        clean_value = re.sub(r"\s+", " ", str(value)).strip()
        if not clean_value:
            continue
        if "**" in clean_value:
            raise ValueError(f"Invalid value for command field {key!r}: {value!r}")
        lines.append(f"{clean_key}: {clean_value}")
    return "\n".join(lines)


def is_not_provided(value: Optional[str]) -> bool:
    """True for absent values and the assistant's 'not provided' placeholder."""
    return value is None or not value.strip() or value.strip().lower() == NOT_PROVIDED
