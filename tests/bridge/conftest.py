"""
Pytest configuration and fixtures for bridge tests.

Provides fixtures for:
- An in-memory protocol sink and emitter
- A scripted fake upstream that replaces the Claude Agent SDK stream
"""
import io
import json
import sys
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import pytest

# Add project root to path before importing project modules
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from agent_bridge.core.output import OutputEmitter  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests (fast, no external dependencies)"
    )


def read_lines(sink: io.StringIO) -> list[dict[str, Any]]:
    """Decode every protocol line written to the sink."""
    return [json.loads(line) for line in sink.getvalue().splitlines()]


class FakeUpstream:
    """
    Scripted replacement for the SDK stream.

    Each call to open_stream consumes the next attempt script: a list of
    messages, optionally followed by an exception raised mid-iteration.
    """

    def __init__(self, *attempts: tuple[list[Any], Optional[BaseException]]) -> None:
        self._attempts = list(attempts)
        self.option_calls: list[tuple[str, Optional[str], Optional[str], bool]] = []
        self.stream_calls: list[tuple[str, Any]] = []

    def options_factory(
        self,
        prompt: str,
        session_id: Optional[str],
        cwd: Optional[str],
        resume: bool,
    ) -> dict[str, Any]:
        self.option_calls.append((prompt, session_id, cwd, resume))
        return {"resume": session_id if resume else None, "cwd": cwd}

    def open_stream(self, prompt: str, options: Any) -> AsyncIterator[Any]:
        self.stream_calls.append((prompt, options))
        messages, error = self._attempts.pop(0)

        async def _stream() -> AsyncIterator[Any]:
            for message in messages:
                yield message
            if error is not None:
                raise error

        return _stream()


@pytest.fixture
def sink() -> io.StringIO:
    """In-memory stdout replacement."""
    return io.StringIO()


@pytest.fixture
def emitter(sink: io.StringIO) -> OutputEmitter:
    """Emitter writing to the in-memory sink."""
    return OutputEmitter(sink)
