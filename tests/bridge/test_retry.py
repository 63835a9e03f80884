"""
Tests for the resume-then-fresh retry policy.
"""
import io

import pytest

from agent_bridge.core.constants import ERROR_MESSAGE_MAX_LENGTH, PROCESS_CRASH_MESSAGE
from agent_bridge.core.exceptions import EmitterError
from agent_bridge.core.output import OutputEmitter
from agent_bridge.core.retry import RetryController, TurnOutcome, clean_error_message
from agent_bridge.core.session_driver import SessionDriver

from conftest import FakeUpstream, read_lines


def _controller(emitter: OutputEmitter, upstream: FakeUpstream) -> RetryController:
    driver = SessionDriver(
        emitter,
        options_factory=upstream.options_factory,
        open_stream=upstream.open_stream,
    )
    return RetryController(driver, emitter)


def _turn(session_id: str, text: str = "") -> list[dict]:
    messages: list[dict] = [{"type": "system", "subtype": "init", "session_id": session_id}]
    if text:
        messages.append({"type": "assistant", "message": {"content": [{"type": "text", "text": text}]}})
    messages.append({"type": "result", "session_id": session_id})
    return messages


class TestCleanErrorMessage:
    """Tests for user-facing error text."""

    @pytest.mark.unit
    def test_process_crash_is_explained(self) -> None:
        message = clean_error_message(RuntimeError("Command failed\nprocess exited with code 137"))

        assert message == PROCESS_CRASH_MESSAGE.format(code="137")

    @pytest.mark.unit
    def test_first_line_only(self) -> None:
        assert clean_error_message(RuntimeError("first line\nsecond line")) == "first line"

    @pytest.mark.unit
    def test_long_message_is_cut(self) -> None:
        message = clean_error_message(RuntimeError("e" * 500))

        assert message == "e" * ERROR_MESSAGE_MAX_LENGTH + "..."

    @pytest.mark.unit
    def test_empty_message_uses_exception_name(self) -> None:
        assert clean_error_message(TimeoutError()) == "TimeoutError"


class TestRetryController:
    """Tests for RetryController.handle_query."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fresh_turn_completes(self, emitter: OutputEmitter, sink: io.StringIO) -> None:
        upstream = FakeUpstream((_turn("s1", "Hello"), None))

        outcome = await _controller(emitter, upstream).handle_query("hi")

        assert outcome is TurnOutcome.COMPLETED
        assert read_lines(sink) == [
            {"type": "session-init", "sessionId": "s1"},
            {"type": "done", "sessionId": "s1", "fullText": "Hello"},
        ]
        assert upstream.option_calls == [("hi", None, None, False)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_resume_succeeds(self, emitter: OutputEmitter, sink: io.StringIO) -> None:
        upstream = FakeUpstream((_turn("s1"), None))

        outcome = await _controller(emitter, upstream).handle_query("hi", "s1", "/w")

        assert outcome is TurnOutcome.COMPLETED
        assert [line["type"] for line in read_lines(sink)] == ["session-init", "done"]
        assert upstream.option_calls == [("hi", "s1", "/w", True)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_resume_failure_recovers_with_fresh_session(
        self, emitter: OutputEmitter, sink: io.StringIO
    ) -> None:
        """A failed resume reports, resets, and succeeds as a new session."""
        upstream = FakeUpstream(
            ([], RuntimeError("No conversation found with session ID: s-old")),
            (_turn("s-new", "Fresh answer"), None),
        )

        outcome = await _controller(emitter, upstream).handle_query("hi", "s-old", "/w")

        assert outcome is TurnOutcome.RECOVERED
        assert read_lines(sink) == [
            {
                "type": "error",
                "error": "Session resume failed: No conversation found with session ID: s-old. "
                         "Starting fresh session...",
            },
            {"type": "session-reset"},
            {"type": "session-init", "sessionId": "s-new"},
            {"type": "done", "sessionId": "s-new", "fullText": "Fresh answer"},
        ]
        assert upstream.option_calls == [
            ("hi", "s-old", "/w", True),
            ("hi", None, "/w", False),
        ]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_double_failure_ends_with_empty_done(
        self, emitter: OutputEmitter, sink: io.StringIO
    ) -> None:
        """Both attempts failing yields two errors and an empty done, nothing more."""
        upstream = FakeUpstream(
            ([], RuntimeError("resume broke")),
            ([], RuntimeError("fresh broke too")),
        )

        outcome = await _controller(emitter, upstream).handle_query("hi", "s-old")

        assert outcome is TurnOutcome.FAILED
        lines = read_lines(sink)
        assert [line["type"] for line in lines] == ["error", "session-reset", "error", "done"]
        assert lines[2] == {"type": "error", "error": "fresh broke too"}
        assert lines[3] == {"type": "done", "sessionId": "", "fullText": ""}
        assert len(upstream.stream_calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fresh_failure_is_not_retried(
        self, emitter: OutputEmitter, sink: io.StringIO
    ) -> None:
        upstream = FakeUpstream(([], RuntimeError("network down")))

        outcome = await _controller(emitter, upstream).handle_query("hi", None)

        assert outcome is TurnOutcome.FAILED
        assert read_lines(sink) == [
            {"type": "error", "error": "network down"},
            {"type": "done", "sessionId": "", "fullText": ""},
        ]
        assert len(upstream.stream_calls) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_session_id_starts_fresh(self, emitter: OutputEmitter) -> None:
        upstream = FakeUpstream((_turn("s1"), None))

        await _controller(emitter, upstream).handle_query("hi", "")

        assert upstream.option_calls == [("hi", None, None, False)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_in_band_error_does_not_trigger_retry(
        self, emitter: OutputEmitter, sink: io.StringIO
    ) -> None:
        """Errors reported inside a completed stream are not failures."""
        upstream = FakeUpstream((
            [{"type": "error", "error": "budget exceeded"}, {"type": "result", "session_id": "s1"}],
            None,
        ))

        outcome = await _controller(emitter, upstream).handle_query("hi", "s1")

        assert outcome is TurnOutcome.COMPLETED
        assert [line["type"] for line in read_lines(sink)] == ["error", "done"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("attempts", [
        [(_turn("s1"), None)],
        [([], RuntimeError("a")), (_turn("s2"), None)],
        [([], RuntimeError("a")), ([], RuntimeError("b"))],
    ])
    async def test_exactly_one_done_and_it_is_last(
        self, attempts: list, emitter: OutputEmitter, sink: io.StringIO
    ) -> None:
        upstream = FakeUpstream(*attempts)

        await _controller(emitter, upstream).handle_query("hi", "s1")

        types = [line["type"] for line in read_lines(sink)]
        assert types.count("done") == 1
        assert types[-1] == "done"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_ids_still_end_with_done(
        self, emitter: OutputEmitter, sink: io.StringIO
    ) -> None:
        """An integer tool id or session id does not break the turn."""
        upstream = FakeUpstream(([
            {"type": "system", "subtype": "init", "session_id": "s1"},
            {"type": "assistant", "message": {"content": [{"type": "tool_use", "id": 7, "name": "ls"}]}},
            {"type": "result", "session_id": 12},
        ], None))

        outcome = await _controller(emitter, upstream).handle_query("p")

        lines = read_lines(sink)
        assert outcome is TurnOutcome.COMPLETED
        assert lines[1] == {"type": "tool-start", "id": "7", "name": "ls", "input": {}}
        assert lines[-1] == {"type": "done", "sessionId": "12", "fullText": ""}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_emitter_failure_propagates(self) -> None:
        closed = io.StringIO()
        closed.close()
        emitter = OutputEmitter(closed)
        upstream = FakeUpstream(([], RuntimeError("boom")))

        with pytest.raises(EmitterError):
            await _controller(emitter, upstream).handle_query("hi")
