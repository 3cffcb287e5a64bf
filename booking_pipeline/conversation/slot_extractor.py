"""
Slot extraction from free-text booking messages.

Pulls dates, times, durations, plan tiers, projects, roles and contact
details out of a message with pattern matching and normalizes them:
relative dates become ISO dates, 12-hour times become ``HH:MM``, and a
time range ("3pm until 4:30pm") yields both a start time and a duration.

Extraction never raises. Absent or unparseable fields are simply left
unset; ``intent.missing_fields()`` decides whether the result is
executable.

Usage:
    extractor = SlotExtractor()
    intent = extractor.extract("book a consultation tomorrow at 2pm for 1 hour",
                               ServiceKind.APPOINTMENT)
"""

import logging
import re
from datetime import date, timedelta
from typing import Callable, Optional

from booking_pipeline.schemas.booking_schema import (
    AppointmentIntent,
    BookingIntent,
    PitchDeckIntent,
    ServiceKind,
    SubscriptionIntent,
)
from booking_pipeline.tools.pricing import match_plan, match_project

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
DEFAULT_DURATION_MINUTES = 60
MIN_PHONE_DIGITS = 9
MAX_PHONE_DIGITS = 15

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_WEEKDAY = "|".join(WEEKDAYS)

_ABSOLUTE_DATE = r"\d{4}[-/]\d{1,2}[-/]\d{1,2}|\d{1,2}[-/]\d{1,2}[-/]\d{4}"
_CLOCK = r"(?<![\d:])(?:\d{1,2}(?::\d{2})?\s*(?:am|pm)\b|\d{1,2}:\d{2}(?!\d))"

DATE_PATTERN = re.compile(
    rf"(?<!\d)({_ABSOLUTE_DATE}|\btoday\b|\btomorrow\b|\byesterday\b|\b(?:next|this|on)\s+(?:{_WEEKDAY})\b)",
    re.IGNORECASE,
)
ABSOLUTE_DATE_PATTERN = re.compile(rf"(?<!\d)(?:{_ABSOLUTE_DATE})(?!\d)")
TIME_RANGE_PATTERN = re.compile(
    rf"(?:from\s+)?({_CLOCK})\s*(?:until|till|to|-)\s*({_CLOCK})", re.IGNORECASE
)
SINGLE_TIME_PATTERN = re.compile(rf"\b(?:at|for|from)\s+({_CLOCK})", re.IGNORECASE)
COMPOUND_DURATION_PATTERN = re.compile(
    r"\b(?:for|lasting)\s+(\d+)\s*(?:hours?|hrs?|h)\s*(?:and\s+)?(\d+)\s*(?:minutes?|mins?|m)\b",
    re.IGNORECASE,
)
DURATION_PATTERN = re.compile(
    r"\b(?:for|lasting)\s+(\d+(?:\.\d+)?)\s*(minutes?|mins?|hours?|hrs?|h)\b", re.IGNORECASE
)
AN_HOUR_PATTERN = re.compile(r"\b(?:for|lasting)\s+(?:an|one)\s+hour\b", re.IGNORECASE)
PLAN_PATTERN = re.compile(r"\b(basic|standard|premium)\b", re.IGNORECASE)
PROJECT_PATTERN = re.compile(r"\b(galowclub|perspectiv)\b", re.IGNORECASE)
ROLE_PATTERN = re.compile(
    r"(?:\b(?:role|title|position)\s*(?:is|:)?|\bi'?m an?|\bi am an?)\s+([a-z][a-z \-]*)",
    re.IGNORECASE,
)
NAME_PATTERN = re.compile(
    r"(?i:\bmy name is|\bname is|\bname:|\bcall me|\bi'm|\bi am)\s+"
    r"([A-Z][a-zA-Z'\-]*(?:\s+[A-Z][a-zA-Z'\-]*)*)"
)
EMAIL_PATTERN = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
PHONE_CANDIDATE_PATTERN = re.compile(r"(?<![\w@.])\+?\(?\d[\d\s\-()]{7,}\d")
_ROLE_STOP_WORDS = re.compile(r"\s+(?:and|but|with|who|from|at|for)\b.*$", re.IGNORECASE)


def to_24_hour(value: str) -> Optional[str]:
    """Normalize a 12h or 24h clock value to ``HH:MM``.

    Examples:
        >>> to_24_hour("2pm")
        '14:00'
        >>> to_24_hour("12:30 am")
        '00:30'
        >>> to_24_hour("9:05")
        '09:05'
    """
    text = value.strip().lower().replace(" ", "")
    meridiem = None
    if text.endswith(("am", "pm")):
        meridiem, text = text[-2:], text[:-2]
    hours_str, _, minutes_str = text.partition(":")
    try:
        hours = int(hours_str)
        minutes = int(minutes_str) if minutes_str else 0
    except ValueError:
        return None

    if meridiem:
        if not 1 <= hours <= 12:
            return None
        if meridiem == "pm" and hours != 12:
            hours += 12
        elif meridiem == "am" and hours == 12:
            hours = 0
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return None
    return f"{hours:02d}:{minutes:02d}"


def _clock_minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def duration_between(start: str, end: str) -> int:
    """Minutes from ``start`` to ``end`` (both ``HH:MM``), rolling past midnight.

    A non-positive span falls back to the default duration.
    """
    duration = _clock_minutes(end) - _clock_minutes(start)
    if duration < 0:
        duration += MINUTES_PER_DAY
    if duration <= 0:
        logger.debug("Empty time range %s-%s, using default duration", start, end)
        return DEFAULT_DURATION_MINUTES
    return duration


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


class SlotExtractor:
    """Extracts structured booking fields from a single message."""

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self._today = today

    # ------------------------------------------------------------------ #
    # Dates and times
    # ------------------------------------------------------------------ #

    def parse_date(self, token: str) -> Optional[str]:
        """Resolve an absolute, relative or weekday date token to ``YYYY-MM-DD``."""
        text = token.strip().lower()
        today = self._today()

        relative = {"today": 0, "tomorrow": 1, "yesterday": -1}
        if text in relative:
            return (today + timedelta(days=relative[text])).isoformat()

        words = text.split()
        if len(words) == 2 and words[1] in WEEKDAYS:
            delta = (WEEKDAYS.index(words[1]) - today.weekday()) % 7
            if words[0] != "this" and delta == 0:
                delta = 7
            return (today + timedelta(days=delta)).isoformat()

        parts = re.split(r"[-/]", text)
        if len(parts) != 3 or not all(p.isdigit() for p in parts):
            return None
        if len(parts[0]) == 4:
            parsed = _safe_date(int(parts[0]), int(parts[1]), int(parts[2]))
        else:
            first, second, year = int(parts[0]), int(parts[1]), int(parts[2])
            # Month first unless that cannot be a month.
            if first > 12 >= second:
                first, second = second, first
            parsed = _safe_date(year, first, second)
        return parsed.isoformat() if parsed else None

    def extract_date(self, message: str) -> Optional[str]:
        match = DATE_PATTERN.search(message)
        return self.parse_date(match.group(1)) if match else None

    def extract_times(self, message: str) -> tuple[Optional[str], Optional[int]]:
        """Return (start_time, duration derived from a range or None)."""
        range_match = TIME_RANGE_PATTERN.search(message)
        if range_match:
            start = to_24_hour(range_match.group(1))
            end = to_24_hour(range_match.group(2))
            if start and end:
                return start, duration_between(start, end)
            if start:
                return start, None

        single = SINGLE_TIME_PATTERN.search(message)
        if single:
            return to_24_hour(single.group(1)), None
        return None, None

    def extract_duration(self, message: str) -> Optional[int]:
        """Explicit duration phrase in minutes ("for 90 minutes", "for 1.5 hours")."""
        compound = COMPOUND_DURATION_PATTERN.search(message)
        if compound:
            return int(compound.group(1)) * 60 + int(compound.group(2))

        match = DURATION_PATTERN.search(message)
        if match:
            amount = float(match.group(1))
            unit = match.group(2).lower()
            if unit.startswith("h"):
                amount *= 60
            return int(round(amount))

        if AN_HOUR_PATTERN.search(message):
            return 60
        return None

    # ------------------------------------------------------------------ #
    # Contact details
    # ------------------------------------------------------------------ #

    def extract_name(self, message: str) -> Optional[str]:
        match = NAME_PATTERN.search(message)
        return match.group(1).strip() if match else None

    def extract_email(self, message: str) -> Optional[str]:
        match = EMAIL_PATTERN.search(message)
        return match.group(1) if match else None

    def extract_phone(self, message: str) -> Optional[str]:
        without_dates = ABSOLUTE_DATE_PATTERN.sub(" | ", message)
        for candidate in PHONE_CANDIDATE_PATTERN.finditer(without_dates):
            digits = re.sub(r"\D", "", candidate.group(0))
            if MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
                return candidate.group(0).strip()
        return None

    def extract_contact(self, message: str) -> dict[str, Optional[str]]:
        return {
            "name": self.extract_name(message),
            "email": self.extract_email(message),
            "phone": self.extract_phone(message),
        }

    def extract_role(self, message: str) -> Optional[str]:
        match = ROLE_PATTERN.search(message)
        if not match:
            return None
        role = _ROLE_STOP_WORDS.sub("", match.group(1)).strip(" -")
        return role or None

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    def extract(self, message: str, kind: ServiceKind) -> Optional[BookingIntent]:
        """Build a (possibly partial) intent of ``kind`` from ``message``."""
        contact = self.extract_contact(message)

        if kind == ServiceKind.APPOINTMENT:
            start_time, range_duration = self.extract_times(message)
            duration = range_duration if range_duration else self.extract_duration(message)
            intent: BookingIntent = AppointmentIntent(
                date=self.extract_date(message),
                start_time=start_time,
                duration_minutes=duration,
                contact_name=contact["name"],
                contact_email=contact["email"],
                contact_phone=contact["phone"],
            )
        elif kind == ServiceKind.SUBSCRIPTION:
            plan_match = PLAN_PATTERN.search(message)
            intent = SubscriptionIntent(
                plan=match_plan(plan_match.group(1)) if plan_match else None,
                **contact,
            )
        elif kind == ServiceKind.PITCH_DECK:
            project_match = PROJECT_PATTERN.search(message)
            intent = PitchDeckIntent(
                project=match_project(project_match.group(1)) if project_match else None,
                role=self.extract_role(message),
                **contact,
            )
        else:
            return None

        logger.debug("Extracted %s slots: %s", kind.value, intent.model_dump(exclude_none=True))
        return intent
