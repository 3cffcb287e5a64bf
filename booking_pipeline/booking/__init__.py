from booking_pipeline.booking.executor import BookingExecutor
from booking_pipeline.booking.pipeline import ChatPipeline, ChatReply
from booking_pipeline.booking.registry import get_registered_kinds, get_strategy, register_strategy

__all__ = [
    "BookingExecutor",
    "ChatPipeline",
    "ChatReply",
    "get_strategy",
    "register_strategy",
    "get_registered_kinds",
]
