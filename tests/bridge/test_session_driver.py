"""
Tests for the single-attempt session driver.
"""
import io

import pytest

from agent_bridge.core import session_driver
from agent_bridge.core.constants import DEFAULT_MODEL
from agent_bridge.core.exceptions import EmitterError, StreamFailureError
from agent_bridge.core.output import OutputEmitter
from agent_bridge.core.session_driver import SessionDriver

from conftest import FakeUpstream, read_lines


def _driver(emitter: OutputEmitter, upstream: FakeUpstream) -> SessionDriver:
    return SessionDriver(
        emitter,
        options_factory=upstream.options_factory,
        open_stream=upstream.open_stream,
    )


class TestSessionDriver:
    """Tests for SessionDriver.run_turn."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_successful_turn_returns_accumulator(
        self, emitter: OutputEmitter, sink: io.StringIO
    ) -> None:
        upstream = FakeUpstream(([
            {"type": "system", "subtype": "init", "session_id": "s1"},
            {"type": "assistant", "message": {"content": [{"type": "text", "text": "Hi"}]}},
            {"type": "result", "session_id": "s1", "total_cost_usd": 0.5},
        ], None))

        result = await _driver(emitter, upstream).run_turn("hello", None, "/work", resume=False)

        assert result.session_id == "s1"
        assert result.response_text == "Hi"
        assert result.cost_usd == 0.5
        assert read_lines(sink) == [{"type": "session-init", "sessionId": "s1"}]
        assert upstream.option_calls == [("hello", None, "/work", False)]
        assert upstream.stream_calls == [("hello", {"resume": None, "cwd": "/work"})]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_known_session_id_seeds_result(self, emitter: OutputEmitter) -> None:
        """A resumed turn reports the requested id if upstream never repeats it."""
        upstream = FakeUpstream(([], None))

        result = await _driver(emitter, upstream).run_turn("p", "s-old", None, resume=True)

        assert result.session_id == "s-old"
        assert upstream.option_calls == [("p", "s-old", None, True)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stream_failure_is_wrapped(self, emitter: OutputEmitter, sink: io.StringIO) -> None:
        """Events before the failure stay emitted; the failure is raised."""
        upstream = FakeUpstream((
            [{"type": "system", "subtype": "init", "session_id": "s1"}],
            RuntimeError("Command failed: process exited with code 1"),
        ))

        with pytest.raises(StreamFailureError) as exc_info:
            await _driver(emitter, upstream).run_turn("p", None, None, resume=False)

        assert "process exited with code 1" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert read_lines(sink) == [{"type": "session-init", "sessionId": "s1"}]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_failure_uses_exception_name(self, emitter: OutputEmitter) -> None:
        upstream = FakeUpstream(([], ConnectionError()))

        with pytest.raises(StreamFailureError, match="ConnectionError"):
            await _driver(emitter, upstream).run_turn("p", None, None, resume=False)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_options_failure_is_wrapped(self, emitter: OutputEmitter) -> None:
        def broken_options(*_args: object) -> None:
            raise ValueError("bad options")

        driver = SessionDriver(emitter, options_factory=broken_options)

        with pytest.raises(StreamFailureError, match="bad options"):
            await driver.run_turn("p", None, None, resume=False)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_emitter_error_is_not_wrapped(self) -> None:
        """A broken output channel propagates unchanged."""
        closed = io.StringIO()
        closed.close()
        upstream = FakeUpstream(([{"type": "system", "subtype": "init", "session_id": "s1"}], None))

        with pytest.raises(EmitterError):
            await _driver(OutputEmitter(closed), upstream).run_turn("p", None, None, resume=False)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_each_turn_has_fresh_tool_state(
        self, emitter: OutputEmitter, sink: io.StringIO
    ) -> None:
        """A tool id seen in one attempt is not deduplicated in the next."""
        tool_use = {"type": "assistant", "message": {"content": [{"type": "tool_use", "id": "t1", "name": "ls"}]}}
        upstream = FakeUpstream(([tool_use], None), ([tool_use], None))
        driver = _driver(emitter, upstream)

        await driver.run_turn("p", None, None, resume=False)
        await driver.run_turn("p", None, None, resume=False)

        starts = [line for line in read_lines(sink) if line["type"] == "tool-start"]
        assert len(starts) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_default_collaborators_are_module_level(
        self, emitter: OutputEmitter, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without injected collaborators the SDK stream and options builder are used."""
        upstream = FakeUpstream(([{"type": "result", "session_id": "s7"}], None))
        built: list[tuple] = []

        def fake_build_options(prompt, session_id, cwd, resume, settings):
            built.append((prompt, session_id, cwd, resume, settings.model))
            return {"fake": True}

        monkeypatch.setattr(session_driver, "build_options", fake_build_options)
        monkeypatch.setattr(session_driver, "open_sdk_stream", upstream.open_stream)

        result = await SessionDriver(emitter).run_turn("p", "s7", "/w", resume=True)

        assert result.session_id == "s7"
        assert built == [("p", "s7", "/w", True, DEFAULT_MODEL)]
        assert upstream.stream_calls == [("p", {"fake": True})]
