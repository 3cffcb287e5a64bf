"""
Chat booking pipeline entry point.

Wires the pipeline to its production collaborators (OpenAI, Stripe
Checkout, Supabase) and runs an interactive terminal chat. Console mode
runs the offline demo instead.

Usage:
    Live chat:    python main.py chat [--user-id ID] [--name NAME] [--email EMAIL]
    Resume:       python main.py chat --session-id SESSION
    Console mode: python main.py console
    History:      python main.py history --user-id ID
"""

import argparse
import asyncio
import logging

from booking_pipeline.booking.executor import BookingExecutor
from booking_pipeline.booking.pipeline import ChatPipeline
from booking_pipeline.config import settings
from booking_pipeline.schemas.profile_schema import UserProfile
from booking_pipeline.tools.chat_store import ChatStore
from booking_pipeline.tools.database import SupabaseRowStore
from booking_pipeline.tools.llm import OpenAIChatOracle
from booking_pipeline.tools.payments import StripeCheckoutService

logger = logging.getLogger(__name__)


def _build_pipeline() -> tuple[ChatPipeline, ChatStore]:
    """Build a pipeline backed by the configured external services."""
    rows = SupabaseRowStore()
    chat_store = ChatStore(rows)
    pipeline = ChatPipeline(
        oracle=OpenAIChatOracle(),
        executor=BookingExecutor(StripeCheckoutService(), rows),
        chat_store=chat_store,
    )
    return pipeline, chat_store


async def _run_chat(args: argparse.Namespace) -> None:
    pipeline, _ = _build_pipeline()
    profile = None
    if args.name or args.email or args.phone:
        profile = UserProfile(full_name=args.name, email=args.email, phone=args.phone)

    session = await pipeline.open_session(args.user_id, profile, session_id=args.session_id)
    pipeline.subscribe(lambda _session, message: print(f"\n{message.content}"))
    for message in session.transcript:
        print(f"[{message.role.value}] {message.content}")

    await pipeline.welcome(session)
    logger.info("Chat started for %s", settings.brand.coach_name)
    try:
        while True:
            text = (await asyncio.to_thread(input, "\n> ")).strip()
            if text.lower() in ("quit", "exit", "q"):
                break
            await pipeline.handle_message(session, text)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        pipeline.close_session(session)


async def _show_history(args: argparse.Namespace) -> None:
    _, chat_store = _build_pipeline()
    for summary in await chat_store.conversation_summaries(args.user_id):
        print(
            f"{summary.last_at:%d/%m/%Y, %H:%M:%S}  {summary.title}  "
            f"({summary.message_count} messages)  {summary.session_id}"
        )


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    asyncio.run(ConsoleSession().run())


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat booking pipeline")
    parser.add_argument("mode", choices=["chat", "console", "history"], nargs="?", default="chat")
    parser.add_argument("--user-id", default=None)
    parser.add_argument("--session-id", default=None)
    parser.add_argument("--name", default=None)
    parser.add_argument("--email", default=None)
    parser.add_argument("--phone", default=None)
    args = parser.parse_args()

    if args.mode == "console":
        _run_console_mode()
    elif args.mode == "history":
        if not args.user_id:
            parser.error("history requires --user-id")
        asyncio.run(_show_history(args))
    else:
        asyncio.run(_run_chat(args))


if __name__ == "__main__":
    main()
