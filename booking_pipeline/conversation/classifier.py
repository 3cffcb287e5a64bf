"""
Booking-intent classifier for free-text chat messages.

Three pattern sets, one per bookable service, composed into a single
IntentClassifier:
1. AppointmentPatterns: one-on-one consultations
2. SubscriptionPatterns: monthly coaching plans
3. PitchDeckPatterns: investor pitch deck requests

Informational phrasing from any set is checked before booking phrasing,
so FAQ-style questions ("what does the premium plan include?") are left
for the LLM and never trigger a booking.
"""

import logging
import re
from typing import Pattern

from booking_pipeline.schemas.booking_schema import ServiceKind

logger = logging.getLogger(__name__)

_I = re.IGNORECASE


def _compile(patterns: list[str]) -> list[Pattern[str]]:
    return [re.compile(p, _I) for p in patterns]


_TIME = r"\d{1,2}(?::\d{2})?\s*(?:am|pm)|\d{1,2}:\d{2}"
_WHEN = r"tomorrow|today|next week|this week|\d{1,2}:\d{2}|\d{1,2}\s*(?:am|pm)"
_SESSION_NOUN = r"appointment|meeting|consultation|session|call"


class _PatternSet:
    kind: ServiceKind
    EXCLUDED_TERMS: list[str] = []
    INFORMATIONAL: list[Pattern[str]] = []
    BOOKING: list[Pattern[str]] = []

    def is_excluded(self, message: str) -> bool:
        # Terms match at a word start only: "understand" is not "standard".
        return any(re.search(rf"\b{re.escape(term)}", message, _I) for term in self.EXCLUDED_TERMS)


class AppointmentPatterns(_PatternSet):
    """Consultation booking phrasing."""

    kind = ServiceKind.APPOINTMENT

    # Messages mentioning these belong to the subscription flow.
    EXCLUDED_TERMS = ["coaching", "subscription", "subscribe", "premium", "basic", "standard"]

    INFORMATIONAL = _compile([
        r"what.*(?:subject|topic|cover|include|about|offer|service|consultation|session)",
        r"how.*(?:work|process|consultation|session)",
        r"tell me about",
        r"explain",
        r"describe",
        r"can you.*(?:tell|explain|describe)",
        r"which.*(?:subject|topic|service)",
        r"do you.*(?:cover|offer|provide)",
        r"what kind of",
        r"what type of",
        r"information about",
        r"learn about",
        r"know about",
        r"details about",
    ])

    BOOKING = _compile([
        r"(?:want to|would like to|need to|can i).*(?:schedule|book|reserve|arrange)",
        rf"(?:schedule|book|reserve|arrange).*(?:{_SESSION_NOUN})",
        rf"(?:schedule|book|reserve).*(?:for|on|at).*(?:{_WHEN})",
        r"(?:available|free).*(?:for|on).*(?:appointment|meeting|consultation)",
        rf"(?:appointment|meeting|consultation).*(?:for|on|at).*(?:{_WHEN})",
        r"(?:set up|organize).*(?:appointment|meeting|consultation|session)",
        r"i (?:want to|would like to|need to).*(?:have|get).*(?:appointment|consultation|meeting|session)",
        rf"(?:{_TIME})\s*(?:until|till|to|-)\s*(?:{_TIME}).*(?:{_SESSION_NOUN})",
        rf"(?:{_SESSION_NOUN}).*(?:{_TIME})\s*(?:until|till|to|-)\s*(?:{_TIME})",
    ])


class SubscriptionPatterns(_PatternSet):
    """Coaching plan subscription phrasing."""

    kind = ServiceKind.SUBSCRIPTION

    INFORMATIONAL = _compile([
        r"what.*(?:coaching|plan|subscription|offer|include|cover)",
        r"how.*(?:coaching|plan|subscription|work)",
        r"tell me about.*(?:coaching|plan|subscription)",
        r"explain.*(?:coaching|plan|subscription)",
        r"describe.*(?:coaching|plan|subscription)",
        r"can you.*(?:tell|explain|describe).*(?:coaching|plan|subscription)",
        r"which.*(?:coaching|plan|subscription)",
        r"do you.*(?:offer|provide).*(?:coaching|plan)",
        r"what kind of.*(?:coaching|plan)",
        r"what type of.*(?:coaching|plan)",
        r"information about.*(?:coaching|plan)",
        r"learn about.*(?:coaching|plan)",
        r"know about.*(?:coaching|plan)",
        r"details about.*(?:coaching|plan)",
        r"difference between.*(?:plan|coaching)",
        r"compare.*(?:plan|coaching)",
    ])

    BOOKING = _compile([
        r"(?:want to|would like to|need to|can i).*(?:subscribe|sign up|join).*(?:coaching|plan)",
        r"(?:subscribe|sign up|join).*(?:to|for).*(?:coaching|plan|premium|basic|standard)",
        r"(?:want|would like|need|get).*(?:premium|basic|standard).*(?:coaching|plan)",
        r"(?:premium|basic|standard).*(?:coaching|plan).*(?:please|subscription)",
        r"i (?:want|would like|need).*(?:premium|basic|standard)",
        r"(?:get|start).*(?:coaching|subscription|plan)",
        r"(?:monthly|pay|payment).*(?:coaching|plan)",
        r"(?:coaching|plan).*(?:monthly|subscription)",
    ])


class PitchDeckPatterns(_PatternSet):
    """Investor pitch deck request phrasing."""

    kind = ServiceKind.PITCH_DECK

    INFORMATIONAL = _compile([
        r"what.*(?:galowclub|perspectiv|pitch|project)",
        r"how.*(?:galowclub|perspectiv|work)",
        r"tell me about.*(?:galowclub|perspectiv|pitch)",
        r"explain.*(?:galowclub|perspectiv|pitch)",
        r"describe.*(?:galowclub|perspectiv|pitch)",
        r"can you.*(?:tell|explain|describe).*(?:galowclub|perspectiv|pitch)",
        r"information about.*(?:galowclub|perspectiv|pitch)",
        r"learn about.*(?:galowclub|perspectiv)",
        r"know about.*(?:galowclub|perspectiv)",
        r"details about.*(?:galowclub|perspectiv)",
    ])

    BOOKING = _compile([
        r"(?:want to|would like to|need to|can i).*(?:request|get|receive|see).*(?:pitch deck|pitchdeck)",
        r"(?:request|get|receive|see).*(?:pitch deck|pitchdeck)",
        r"(?:want to|would like to|need to|can i).*(?:request|get|receive|see).*(?:galowclub|perspectiv)",
        r"(?:request|get|receive|see).*(?:galowclub|perspectiv).*(?:pitch|deck)",
        r"(?:galowclub|perspectiv).*(?:pitch deck|pitchdeck).*(?:please|request)",
        r"i (?:want|would like|need).*(?:galowclub|perspectiv).*(?:pitch|deck)",
        r"(?:interested in|looking at).*(?:galowclub|perspectiv|investment)",
        r"(?:invest|funding|investor).*(?:galowclub|perspectiv)",
    ])


class IntentClassifier:
    """Decides which service, if any, a chat message is trying to book."""

    def __init__(self) -> None:
        self.pattern_sets = [AppointmentPatterns(), SubscriptionPatterns(), PitchDeckPatterns()]

    def is_informational(self, message: str) -> bool:
        for patterns in self.pattern_sets:
            for pattern in patterns.INFORMATIONAL:
                if pattern.search(message):
                    logger.debug("Informational phrasing matched: %s", pattern.pattern)
                    return True
        return False

    def classify(self, message: str) -> ServiceKind:
        """Return the booking kind expressed by ``message``, or ServiceKind.NONE."""
        if not message or not message.strip():
            return ServiceKind.NONE
        if self.is_informational(message):
            return ServiceKind.NONE

        for patterns in self.pattern_sets:
            if patterns.is_excluded(message):
                logger.debug("Skipping %s: excluded vocabulary present", patterns.kind.value)
                continue
            if any(p.search(message) for p in patterns.BOOKING):
                logger.debug("Booking intent detected: %s", patterns.kind.value)
                return patterns.kind

        return ServiceKind.NONE
