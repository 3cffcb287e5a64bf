from booking_pipeline.conversation.classifier import IntentClassifier
from booking_pipeline.conversation.command_parser import (
    CommandTag,
    find_command,
    parse_command,
    render_command_block,
)
from booking_pipeline.conversation.slot_extractor import SlotExtractor
from booking_pipeline.conversation.state_machine import (
    BookingState,
    BookingStateMachine,
    BookingTrigger,
    InvalidTransitionError,
)

__all__ = [
    "IntentClassifier",
    "SlotExtractor",
    "CommandTag",
    "parse_command",
    "find_command",
    "render_command_block",
    "BookingStateMachine",
    "BookingState",
    "BookingTrigger",
    "InvalidTransitionError",
]
