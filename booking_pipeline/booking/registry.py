"""
Strategy registry: tagged-variant dispatch from ServiceKind to strategy.

The executor and pipeline never branch on the kind themselves; they look
the strategy up here, so adding a service means registering one class.
"""

import logging
from typing import Callable

from booking_pipeline.booking.strategies import (
    AppointmentStrategy,
    BookingStrategy,
    PitchDeckStrategy,
    SubscriptionStrategy,
)
from booking_pipeline.conversation.command_parser import CommandTag
from booking_pipeline.schemas.booking_schema import ServiceKind

logger = logging.getLogger(__name__)

_STRATEGY_REGISTRY: dict[ServiceKind, BookingStrategy] = {}


def register_strategy(factory: Callable[[], BookingStrategy]) -> None:
    """Register a strategy instance under its kind."""
    strategy = factory()
    _STRATEGY_REGISTRY[strategy.kind] = strategy
    logger.debug("Strategy registered: %s", strategy.kind.value)


def get_strategy(kind: ServiceKind) -> BookingStrategy:
    """Return the strategy for ``kind``.

    Raises:
        KeyError: If no strategy is registered for the kind.
    """
    if kind not in _STRATEGY_REGISTRY:
        registered = [k.value for k in _STRATEGY_REGISTRY]
        raise KeyError(f"No strategy for '{kind.value}'. Available: {registered}")
    return _STRATEGY_REGISTRY[kind]


def strategy_for_tag(tag: CommandTag) -> BookingStrategy:
    """Return the strategy whose command block uses ``tag``."""
    for strategy in _STRATEGY_REGISTRY.values():
        if strategy.tag == tag:
            return strategy
    raise KeyError(f"No strategy for command '{tag.value}'")


def get_registered_kinds() -> list[ServiceKind]:
    return list(_STRATEGY_REGISTRY.keys())


def _auto_register() -> None:
    """Register the built-in strategies. Called once at import time."""
    register_strategy(AppointmentStrategy)
    register_strategy(SubscriptionStrategy)
    register_strategy(PitchDeckStrategy)


_auto_register()
