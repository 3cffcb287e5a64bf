"""Pricing table and catalog of bookable plans and projects."""

import logging
from typing import Optional

from booking_pipeline.schemas.booking_schema import Plan, Project

logger = logging.getLogger(__name__)

HOURLY_RATE_EUR = 90
ALLOWED_DURATIONS: tuple[int, ...] = (45, 60, 75, 90, 105, 120)

PLAN_CATALOG: dict[Plan, dict] = {
    Plan.BASIC: {
        "name": "Basic Coaching Plan",
        "monthly_price": 40,
        "description": "Monthly check-ins, email support, basic resources.",
    },
    Plan.STANDARD: {
        "name": "Standard Coaching Plan",
        "monthly_price": 90,
        "description": "Bi-weekly sessions, priority support, advanced resources.",
    },
    Plan.PREMIUM: {
        "name": "Premium Coaching Plan",
        "monthly_price": 230,
        "description": "Weekly sessions, 24/7 support, full resource access, personalized action plans.",
    },
}

PROJECT_CATALOG: dict[Project, str] = {
    Project.GALOWCLUB: "Fitness and wellness platform focused on community-driven health transformation.",
    Project.PERSPECTIV: "AI-powered analytics tool for business intelligence and data insights.",
}


def appointment_price(duration_minutes: int) -> float:
    """Price of a consultation, pro-rated from the hourly rate and rounded to cents."""
    return round(HOURLY_RATE_EUR * duration_minutes / 60, 2)


def subscription_price(plan: Plan) -> float:
    """Monthly price of a coaching plan."""
    return float(PLAN_CATALOG[plan]["monthly_price"])


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def is_allowed_duration(duration_minutes: Optional[int]) -> bool:
    return duration_minutes in ALLOWED_DURATIONS


def match_plan(query: str) -> Optional[Plan]:
    """Match free text to a plan tier. Returns None if no match."""
    normalized = query.lower().strip()
    for plan in Plan:
        if plan.value in normalized:
            return plan
    return None


def match_project(query: str) -> Optional[Project]:
    """Match free text to a project, returning the canonical casing."""
    normalized = query.lower().replace(" ", "")
    for project in Project:
        if project.value.lower() in normalized:
            return project
    return None
