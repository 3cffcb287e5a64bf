"""
Offline console demo: runs booking conversations without any API keys.

Uses the real classifier, extractor, executor and pipeline with in-memory
collaborators and a scripted stand-in for the chat model. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario subscription
    python console_demo.py --scenario fallback
"""

import argparse
import asyncio
from typing import Optional

from booking_pipeline.booking.executor import BookingExecutor
from booking_pipeline.booking.pipeline import ChatPipeline, ChatReply
from booking_pipeline.config import settings
from booking_pipeline.conversation.command_parser import CommandTag, render_command_block
from booking_pipeline.schemas.booking_schema import CheckoutRequest, CheckoutSession
from booking_pipeline.schemas.chat_schema import ChatMessage
from booking_pipeline.schemas.profile_schema import ChatSession, UserProfile
from booking_pipeline.tools.chat_store import ChatStore
from booking_pipeline.tools.database import InMemoryRowStore
from booking_pipeline.tools.payments import MockCheckoutService, PaymentLinkError

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class ScriptedOracle:
    """Keyword-driven replies standing in for the chat model."""

    async def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
    ) -> str:
        last = messages[-1]["content"].lower() if messages else ""
        if "welcome" in last:
            return "Welcome! What are you working on?"
        if last.startswith(("what", "which", "tell me")):
            return (
                "The Premium plan (€230/month) includes weekly sessions, 24/7 support, "
                "full resource access and personalized action plans."
            )
        for plan in ("basic", "standard", "premium"):
            if plan in last and any(w in last for w in ("plan", "subscri", "coaching")):
                return f"Setting up your {plan.title()} coaching subscription...\n\n" + (
                    render_command_block(CommandTag.BOOK_SUBSCRIPTION, {
                        "Plan": plan, "Name": "not provided", "Email": "not provided",
                    })
                )
        if "galowclub" in last or "perspectiv" in last:
            project = "GalowClub" if "galowclub" in last else "Perspectiv"
            return f"Requesting the {project} pitch deck...\n\n" + render_command_block(
                CommandTag.REQUEST_PITCH_DECK, {"Project": project, "Role": "Investor"}
            )
        return (
            f"{settings.brand.coach_name} offers one-on-one consultations, monthly coaching "
            "plans and investor pitch decks. What would you like to know more about?"
        )


class FailingCheckoutService:
    """Checkout collaborator that is always down."""

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        raise PaymentLinkError("Stripe is unreachable")


class ConsoleSession:
    """Drives the chat pipeline from the terminal."""

    SCENARIOS: dict[str, list[str]] = {
        "booking": [
            "I'd like to book a consultation tomorrow at 2pm",
            "for 90 minutes",
        ],
        "range": [
            "3pm until 4:30pm tomorrow, 1:1 session",
        ],
        "subscription": [
            "what does the premium plan include?",
            "I'd love premium coaching, how do I pay?",
        ],
        "pitchdeck": [
            "I want to request the GalowClub pitch deck",
        ],
        "fallback": [
            "book a consultation tomorrow at 10:00 for 1 hour",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, payments_down: bool = False) -> None:
        self.rows = InMemoryRowStore()
        payments = FailingCheckoutService() if payments_down else MockCheckoutService()
        self.pipeline = ChatPipeline(
            oracle=ScriptedOracle(),
            executor=BookingExecutor(payments, self.rows),
            chat_store=ChatStore(self.rows),
        )
        self.pipeline.subscribe(self._print_assistant)
        self.profile = UserProfile(full_name="Jo Doe", email="jo@example.com")

    def _print_assistant(self, session: ChatSession, message: ChatMessage) -> None:
        print(f"{GREEN}{BOLD}[Assistant]{RESET} {GREEN}{message.content}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _log_reply(self, reply: ChatReply) -> None:
        if reply.state is not None:
            self.system_log(f"Kind: {reply.kind.value}  State: {reply.state.value}")
        if reply.booking is not None:
            self.system_log(
                f"Status: {reply.booking.status.value}  degraded={reply.booking.degraded}"
            )

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  CHAT BOOKING PIPELINE - {title}{RESET}")
        print(f"{BOLD}  Coach: {settings.brand.coach_name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        session = await self.pipeline.open_session("demo-user", self.profile)
        await self.pipeline.welcome(session)
        for step in steps:
            print(f"\n{BLUE}[User] {RESET}{step}")
            self._log_reply(await self.pipeline.handle_message(session, step))

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        for table, rows in self.rows.tables.items():
            print(f"{DIM}  {table}: {len(rows)} rows{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        self.pipeline.close_session(session)

    async def run(self) -> None:
        self._banner("Console Demo (type 'quit' to exit)")
        session = await self.pipeline.open_session("demo-user", self.profile)
        await self.pipeline.welcome(session)

        while True:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[User] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                break
            if len(user_input) > self.MAX_INPUT_LENGTH:
                print(f"{YELLOW}That was quite long. Could you keep it brief?{RESET}")
                continue
            self._log_reply(await self.pipeline.handle_message(session, user_input))

        self.pipeline.close_session(session)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession(payments_down=args.scenario == "fallback")
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
