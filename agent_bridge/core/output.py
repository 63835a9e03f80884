"""
Line protocol output for the agent bridge.

Every event is serialized to one JSON object, written to the sink followed by
a newline and flushed before emit() returns. A remote consumer renders these
lines live, so there is no buffering layer that could delay, coalesce or
reorder them.

Usage:
    from .output import OutputEmitter

    emitter = OutputEmitter()
    emitter.session_init("sess-123")
    emitter.done(session_id="sess-123", full_text="Hello")
"""
import logging
import sys
from typing import Any, Optional, TextIO

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from .exceptions import EmitterError
from .schemas import (
    DoneEvent,
    ErrorEvent,
    OutputEvent,
    SessionInitEvent,
    SessionResetEvent,
    SystemStatusEvent,
    TextDeltaEvent,
    TokenUsage,
    ToolResultEvent,
    ToolStartEvent,
)

logger = logging.getLogger(__name__)


class OutputEmitter:
    """
    Writes output events as newline-delimited JSON.

    Args:
        stream: Text sink for protocol lines. Defaults to sys.stdout.
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._done_emitted = False
        self._lines_written = 0

    @property
    def done_emitted(self) -> bool:
        """Whether the terminal done event has been written."""
        return self._done_emitted

    @property
    def lines_written(self) -> int:
        return self._lines_written

    def emit(self, event: OutputEvent) -> None:
        """
        Serialize and write a single event.

        Args:
            event: The output event to write.

        Raises:
            EmitterError: If the event cannot be serialized or written.
        """
        try:
            line = event.model_dump_json(by_alias=True, exclude_none=True)
        except PydanticSerializationError as e:
            raise EmitterError(f"Cannot serialize {event.type} event: {e}") from e

        try:
            self._stream.write(line + "\n")
            self._stream.flush()
        except (OSError, ValueError) as e:
            raise EmitterError(f"Cannot write {event.type} event: {e}") from e

        self._lines_written += 1
        if isinstance(event, DoneEvent):
            self._done_emitted = True
        logger.debug(f"Emitted {event.type}")

    def _build_and_emit(self, model: type, **fields: Any) -> None:
        try:
            event = model(**fields)
        except ValidationError as e:
            raise EmitterError(f"Invalid {model.__name__}: {e}") from e
        self.emit(event)

    def session_init(self, session_id: str) -> None:
        self._build_and_emit(SessionInitEvent, session_id=session_id)

    def text_delta(self, text: str) -> None:
        self._build_and_emit(TextDeltaEvent, text=text)

    def tool_start(self, tool_id: str, name: str, tool_input: dict[str, Any]) -> None:
        self._build_and_emit(ToolStartEvent, id=tool_id, name=name, input=tool_input)

    def tool_result(self, tool_id: str, name: str, output: str) -> None:
        self._build_and_emit(ToolResultEvent, id=tool_id, name=name, output=output)

    def session_reset(self) -> None:
        self._build_and_emit(SessionResetEvent)

    def system_status(self, status: str) -> None:
        self._build_and_emit(SystemStatusEvent, status=status)

    def error(self, message: str) -> None:
        self._build_and_emit(ErrorEvent, error=message)

    def done(
        self,
        session_id: str = "",
        full_text: str = "",
        usage: Optional[TokenUsage] = None,
        cost_usd: Optional[float] = None,
    ) -> None:
        """Write the terminal event (empty-but-valid when called without arguments)."""
        self._build_and_emit(
            DoneEvent,
            session_id=session_id,
            full_text=full_text,
            usage=usage,
            cost_usd=cost_usd,
        )
