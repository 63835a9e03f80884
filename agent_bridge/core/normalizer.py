"""
Event normalizer for the agent bridge.

Bridges parsed upstream events to the output line protocol. One normalizer
lives for exactly one turn and owns that turn's accumulator and tool record.

Usage:
    normalizer = EventNormalizer(emitter, session_id="sess-1")
    async for message in stream:
        normalizer.process_message(message)
    result = normalizer.accumulator
"""
import json
import logging
import time
from typing import Any, Optional

from .constants import (
    BUDGET_CEILING_MESSAGE,
    STATUS_COMPACTING,
    TOOL_OUTPUT_MAX_LENGTH,
    UNKNOWN_SDK_ERROR,
    UNKNOWN_TOOL_NAME,
)
from .output import OutputEmitter
from .schemas import TokenUsage, TurnAccumulator
from .tool_identity import ToolCallRecord, ToolIdentityResolver
from .upstream import (
    AssistantTurn,
    StreamDelta,
    SystemInit,
    SystemNotice,
    ToolInvocation,
    ToolOutput,
    TurnResult,
    UpstreamError,
    UpstreamEvent,
    parse_message,
)

logger = logging.getLogger(__name__)


def classify_error_message(message: str) -> str:
    """Replace budget-ceiling errors with the user-facing message."""
    if "budget" in message.lower():
        return BUDGET_CEILING_MESSAGE
    return message


def format_tool_output(output: Any, content: Any = None) -> str:
    """
    Render tool output for the wire.

    Strings pass through, anything else is JSON-encoded. The result is
    hard-capped at TOOL_OUTPUT_MAX_LENGTH characters.
    """
    value = output if output is not None else content
    if value is None:
        text = ""
    elif isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return text[:TOOL_OUTPUT_MAX_LENGTH]


def _error_to_text(error: Any) -> str:
    if isinstance(error, str):
        return error
    if error is None:
        return ""
    return json.dumps(error, ensure_ascii=False, default=str)


class EventNormalizer:
    """
    Dispatches upstream events to output emitter calls.

    Args:
        emitter: Output emitter shared by the whole invocation.
        session_id: Session id known before the stream starts ("" if none).
        record: Tool record for this turn. A fresh one is created if omitted.
    """

    def __init__(
        self,
        emitter: OutputEmitter,
        session_id: Optional[str] = None,
        record: Optional[ToolCallRecord] = None,
    ) -> None:
        self._emitter = emitter
        self._resolver = ToolIdentityResolver(record)
        self._accumulator = TurnAccumulator(session_id=session_id or "")

    @property
    def accumulator(self) -> TurnAccumulator:
        return self._accumulator

    @property
    def resolver(self) -> ToolIdentityResolver:
        return self._resolver

    def process_message(self, message: Any) -> None:
        """
        Process a single SDK message.

        Args:
            message: Typed SDK message or raw dict message.
        """
        parsed = parse_message(message)
        if parsed.has_parent_marker:
            self._resolver.update_parent(parsed.parent_tool_use_id)
        for event in parsed.events:
            self.handle_event(event)

    def handle_event(self, event: UpstreamEvent) -> None:
        """Dispatch one parsed upstream event."""
        if isinstance(event, SystemInit):
            self._handle_system_init(event)
        elif isinstance(event, SystemNotice):
            self._handle_system_notice(event)
        elif isinstance(event, StreamDelta):
            self._handle_stream_delta(event)
        elif isinstance(event, AssistantTurn):
            self._handle_assistant_turn(event)
        elif isinstance(event, ToolOutput):
            self._handle_tool_output(event)
        elif isinstance(event, TurnResult):
            self._handle_turn_result(event)
        elif isinstance(event, UpstreamError):
            self._handle_error(event)

    def _handle_system_init(self, event: SystemInit) -> None:
        self._accumulator.session_id = event.session_id
        logger.info(f"Upstream session initialized: {event.session_id}")
        self._emitter.session_init(event.session_id)

    def _handle_system_notice(self, event: SystemNotice) -> None:
        raw = f"{event.subtype} {json.dumps(event.data, default=str)}".lower()
        if "compact" in raw:
            logger.info("Upstream is compacting context")
            self._emitter.system_status(STATUS_COMPACTING)
        else:
            logger.debug(f"System event: {event.subtype}")

    def _handle_stream_delta(self, event: StreamDelta) -> None:
        self._accumulator.response_text += event.text
        self._emitter.text_delta(event.text)

    def _handle_assistant_turn(self, event: AssistantTurn) -> None:
        texts: list[str] = []
        for block in event.blocks:
            if isinstance(block, ToolInvocation):
                self._start_tool(block)
            else:
                texts.append(block.text)
        # The assistant message is authoritative for the turn's text
        self._accumulator.response_text = "".join(texts)

    def _start_tool(self, block: ToolInvocation) -> None:
        original_id = block.id or f"tool-{int(time.time() * 1000)}"
        name = block.name or UNKNOWN_TOOL_NAME
        resolution = self._resolver.resolve_for_start(original_id, name)
        if resolution.is_duplicate:
            return
        self._emitter.tool_start(
            resolution.composite_id,
            name,
            block.input if isinstance(block.input, dict) else {},
        )

    def _handle_tool_output(self, event: ToolOutput) -> None:
        composite_id = self._resolver.resolve_for_result(event.tool_use_id)
        name = event.name or self._resolver.name_for(composite_id) or UNKNOWN_TOOL_NAME
        self._emitter.tool_result(
            composite_id,
            name,
            format_tool_output(event.output, event.content),
        )

    def _handle_turn_result(self, event: TurnResult) -> None:
        if event.session_id:
            self._accumulator.session_id = event.session_id
        usage = TokenUsage.from_sdk_usage(event.usage)
        if usage is not None:
            self._accumulator.usage = usage
        cost = event.total_cost_usd
        if isinstance(cost, (int, float)) and not isinstance(cost, bool):
            self._accumulator.cost_usd = float(cost)

        # Budget exhaustion can also arrive as an errored result
        if event.is_error:
            message = _error_to_text(event.error) or UNKNOWN_SDK_ERROR
            logger.warning(f"Upstream turn ended with error: {message}")
            self._emitter.error(classify_error_message(message))

    def _handle_error(self, event: UpstreamError) -> None:
        message = event.message or UNKNOWN_SDK_ERROR
        logger.warning(f"Upstream error event: {message}")
        # Reported in-band only; the stream is consumed to its end
        self._emitter.error(classify_error_message(message))
