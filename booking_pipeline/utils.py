"""Shared utilities used across the booking pipeline."""

import re

MAX_TITLE_LENGTH = 40


def format_price(amount: float, suffix: str = "") -> str:
    """Format a euro amount with two decimals.

    Examples:
        >>> format_price(90)
        '€90.00'
        >>> format_price(230, "/month")
        '€230.00/month'
    """
    return f"€{amount:.2f}{suffix}"


def titleize(text: str) -> str:
    """Turn the first user message of a conversation into a short title.

    Examples:
        >>> titleize("  book a   session ")
        'Book a session'
        >>> titleize("")
        'Conversation'
    """
    one_line = re.sub(r"\s+", " ", text or "").strip()
    if not one_line:
        return "Conversation"
    capitalized = one_line[0].upper() + one_line[1:]
    if len(capitalized) > MAX_TITLE_LENGTH:
        return capitalized[: MAX_TITLE_LENGTH - 3].rstrip() + "…"
    return capitalized
