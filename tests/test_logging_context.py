"""Tests for session-id log correlation."""

import asyncio
import io
import logging

import pytest

from booking_pipeline.booking.executor import BookingExecutor
from booking_pipeline.logging_context import (
    LOG_FORMAT,
    NO_SESSION,
    SessionIdFilter,
    get_session_id,
    get_session_logger,
    install_session_filter,
    session_context,
)
from booking_pipeline.schemas.booking_schema import AppointmentIntent
from tests.conftest import TOMORROW, FailingCheckoutService, FlakyRowStore


def _stream_handler() -> tuple[logging.Handler, io.StringIO]:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler, stream


class TestSessionContext:
    def test_restores_previous_id(self):
        before = get_session_id()
        with session_context("outer"):
            with session_context("inner"):
                assert get_session_id() == "inner"
            assert get_session_id() == "outer"
        assert get_session_id() == before

    @pytest.mark.asyncio
    async def test_tasks_keep_their_own_id(self):
        async def run(session_id):
            with session_context(session_id):
                await asyncio.sleep(0)
                return get_session_id()

        results = await asyncio.gather(run("s1"), run("s2"))
        assert results == ["s1", "s2"]


class TestSessionLogger:
    def test_filter_attached_once(self):
        logger = get_session_logger("tests.session_logger")
        get_session_logger("tests.session_logger")
        assert sum(isinstance(f, SessionIdFilter) for f in logger.filters) == 1

    def test_explicit_id_is_kept(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        record.session_id = "given"
        with session_context("ambient"):
            SessionIdFilter().filter(record)
        assert record.session_id == "given"

    @pytest.mark.asyncio
    async def test_executor_records_carry_session_id(self, caplog):
        executor = BookingExecutor(FailingCheckoutService(), FlakyRowStore())
        intent = AppointmentIntent(date=TOMORROW, start_time="14:00", duration_minutes=60)

        with caplog.at_level(logging.INFO, logger="booking_pipeline.booking.executor"):
            with session_context("s-42"):
                await executor.execute(intent)

        records = [r for r in caplog.records if r.name == "booking_pipeline.booking.executor"]
        assert records
        assert all(r.session_id == "s-42" for r in records)
        assert "[s-42]" in logging.Formatter(LOG_FORMAT).format(records[0])


class TestHandlerFilter:
    def test_plain_logger_output_shows_session_id(self):
        handler, stream = _stream_handler()
        install_session_filter([handler])
        install_session_filter([handler])
        logger = logging.getLogger("tests.plain_logger")
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
        try:
            with session_context("abc-123"):
                logger.info("hello")
            logger.info("outside")
        finally:
            logger.removeHandler(handler)

        lines = stream.getvalue().splitlines()
        assert "[tests.plain_logger] [abc-123] INFO: hello" in lines[0]
        assert f"[{NO_SESSION}] INFO: outside" in lines[1]
        assert sum(isinstance(f, SessionIdFilter) for f in handler.filters) == 1
