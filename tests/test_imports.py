"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""

import pytest


class TestSchemaImports:
    def test_import_booking_schema(self):
        from booking_pipeline.schemas.booking_schema import (
            BookingResult, BookingStatus, ServiceKind,
        )
        result = BookingResult(
            success=True, message="x", status=BookingStatus.SIMULATED, kind=ServiceKind.APPOINTMENT
        )
        assert result.degraded
        assert ServiceKind.PITCH_DECK == "pitchdeck"

    def test_import_profile_schema(self):
        from booking_pipeline.schemas.profile_schema import ChatSession
        session = ChatSession()
        assert session.session_id
        assert not session.busy
        assert session.pending_intent is None


class TestConversationImports:
    def test_conversation_package_reexports(self):
        from booking_pipeline.conversation import (
            BookingState, BookingStateMachine, CommandTag, IntentClassifier, SlotExtractor,
        )
        assert BookingStateMachine().current_state == BookingState.CLASSIFIED
        assert CommandTag.BOOK_APPOINTMENT.marker == "**BOOK_APPOINTMENT**"
        assert IntentClassifier is not None
        assert SlotExtractor is not None


class TestToolImports:
    def test_import_collaborators(self):
        from booking_pipeline.tools.chat_store import ChatStore
        from booking_pipeline.tools.database import InMemoryRowStore, SupabaseRowStore
        from booking_pipeline.tools.llm import OpenAIChatOracle
        from booking_pipeline.tools.payments import MockCheckoutService, StripeCheckoutService
        assert callable(ChatStore)
        assert callable(InMemoryRowStore) and callable(SupabaseRowStore)
        assert callable(OpenAIChatOracle)
        assert callable(MockCheckoutService) and callable(StripeCheckoutService)


class TestPromptImports:
    def test_system_prompt_carries_command_formats(self):
        from booking_pipeline.prompts.system_prompts import CHAT_SYSTEM_PROMPT
        for marker in ("**BOOK_APPOINTMENT**", "**BOOK_SUBSCRIPTION**", "**REQUEST_PITCH_DECK**"):
            assert marker in CHAT_SYSTEM_PROMPT
        assert "€90/hour" in CHAT_SYSTEM_PROMPT

    def test_profile_note(self):
        from booking_pipeline.prompts.system_prompts import build_profile_note
        from booking_pipeline.schemas.profile_schema import UserProfile
        note = build_profile_note("u-1", UserProfile(full_name="Jo"))
        assert note.startswith("\n\nUSER PROFILE")
        assert "- Email: Not provided" in note
        assert note.endswith("User ID: u-1")
        assert build_profile_note(None, None) == ""


class TestStrategyRegistry:
    def test_registry_has_all_kinds(self):
        from booking_pipeline.booking import get_registered_kinds
        from booking_pipeline.schemas.booking_schema import ServiceKind
        assert set(get_registered_kinds()) == {
            ServiceKind.APPOINTMENT, ServiceKind.SUBSCRIPTION, ServiceKind.PITCH_DECK,
        }

    def test_unknown_kind_raises(self):
        from booking_pipeline.booking import get_strategy
        from booking_pipeline.schemas.booking_schema import ServiceKind
        with pytest.raises(KeyError, match="No strategy"):
            get_strategy(ServiceKind.NONE)


class TestConfigImport:
    def test_import_config(self):
        from booking_pipeline.config import settings
        assert settings.brand.coach_name
        assert settings.model.llm_model
        assert settings.history_limit >= 1


class TestConsoleDemo:
    def test_console_session_imports(self):
        from console_demo import ConsoleSession
        session = ConsoleSession()
        assert session.rows.tables == {}
        assert set(ConsoleSession.SCENARIOS) == {
            "booking", "range", "subscription", "pitchdeck", "fallback",
        }

    @pytest.mark.asyncio
    async def test_booking_scenario_runs_offline(self, capsys):
        from booking_pipeline.config import settings
        from console_demo import ConsoleSession
        session = ConsoleSession()
        await session.run_scenario("booking")
        assert "Scenario 'booking' complete." in capsys.readouterr().out
        assert len(session.rows.tables[settings.database.conversations_table]) == 5
