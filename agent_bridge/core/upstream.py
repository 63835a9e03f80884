"""
Upstream message boundary.

Converts Claude Agent SDK messages into a small closed set of upstream
events before anything else in the bridge looks at them. Both the SDK's
typed message classes and raw dict messages (the CLI's stream-json shape)
are accepted; everything the bridge does not understand is dropped here.

Usage:
    from .upstream import parse_message

    parsed = parse_message(message)
    if parsed.has_parent_marker:
        resolver.update_parent(parsed.parent_tool_use_id)
    for event in parsed.events:
        ...
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from claude_agent_sdk import (
    AssistantMessage,
    ResultMessage,
    SystemMessage,
    UserMessage,
)
from claude_agent_sdk.types import (
    StreamEvent,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)

logger = logging.getLogger(__name__)

_SYSTEM_ERROR_SUBTYPES = ("error", "api_error", "server_error")


@dataclass(frozen=True)
class SystemInit:
    session_id: str


@dataclass(frozen=True)
class SystemNotice:
    """Any system message other than init (status changes, compaction)."""
    subtype: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StreamDelta:
    text: str


@dataclass(frozen=True)
class TextContent:
    text: str


@dataclass(frozen=True)
class ToolInvocation:
    id: Optional[str]
    name: Optional[str]
    input: Optional[dict[str, Any]]


@dataclass(frozen=True)
class AssistantTurn:
    blocks: tuple[Union[TextContent, ToolInvocation], ...] = ()


@dataclass(frozen=True)
class ToolOutput:
    tool_use_id: str
    name: Optional[str] = None
    output: Any = None
    content: Any = None


@dataclass(frozen=True)
class TurnResult:
    session_id: Optional[str] = None
    usage: Optional[dict[str, Any]] = None
    total_cost_usd: Any = None
    is_error: bool = False
    error: Any = None


@dataclass(frozen=True)
class UpstreamError:
    message: str


UpstreamEvent = Union[
    SystemInit,
    SystemNotice,
    StreamDelta,
    AssistantTurn,
    ToolOutput,
    TurnResult,
    UpstreamError,
]


@dataclass(frozen=True)
class ParsedMessage:
    """
    Events extracted from one SDK message.

    has_parent_marker is True whenever the message carried a
    parent_tool_use_id field, even if its value is None (which reverts to
    top level).
    """
    events: tuple[UpstreamEvent, ...] = ()
    has_parent_marker: bool = False
    parent_tool_use_id: Optional[str] = None


def parse_message(message: Any) -> ParsedMessage:
    """
    Convert one SDK message into upstream events.

    Args:
        message: A claude_agent_sdk message instance or a raw dict message.

    Returns:
        ParsedMessage. Unknown shapes yield no events.
    """
    if isinstance(message, dict):
        return _parse_dict_message(message)
    return _parse_sdk_message(message)


# =============================================================================
# Typed SDK messages
# =============================================================================

def _parse_sdk_message(message: Any) -> ParsedMessage:
    if isinstance(message, SystemMessage):
        return ParsedMessage(events=_system_events(message.subtype, message.data or {}))

    if isinstance(message, StreamEvent):
        return _with_parent(message, _stream_events(message.event))

    if isinstance(message, AssistantMessage):
        blocks: list[Union[TextContent, ToolInvocation]] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                blocks.append(TextContent(block.text))
            elif isinstance(block, ToolUseBlock):
                blocks.append(ToolInvocation(block.id, block.name, block.input))
        error = getattr(message, "error", None)
        if not error:
            return _with_parent(message, (AssistantTurn(tuple(blocks)),))
        # An errored message still reports whatever content it carried
        turn: tuple[UpstreamEvent, ...] = (AssistantTurn(tuple(blocks)),) if blocks else ()
        return _with_parent(message, turn + (UpstreamError(f"Assistant error: {error}"),))

    if isinstance(message, UserMessage):
        events: list[UpstreamEvent] = []
        if isinstance(message.content, list):
            for block in message.content:
                if isinstance(block, ToolResultBlock):
                    events.append(ToolOutput(block.tool_use_id, content=block.content))
        return _with_parent(message, tuple(events))

    if isinstance(message, ResultMessage):
        error = None
        if message.is_error:
            error = getattr(message, "error", None) or message.result or message.subtype
        return ParsedMessage(events=(
            TurnResult(
                session_id=message.session_id,
                usage=message.usage,
                total_cost_usd=message.total_cost_usd,
                is_error=bool(message.is_error),
                error=error,
            ),
        ))

    logger.debug(f"Ignoring unknown upstream message type {type(message).__name__}")
    return ParsedMessage()


def _with_parent(message: Any, events: tuple[UpstreamEvent, ...]) -> ParsedMessage:
    if not hasattr(message, "parent_tool_use_id"):
        return ParsedMessage(events=events)
    return ParsedMessage(
        events=events,
        has_parent_marker=True,
        parent_tool_use_id=message.parent_tool_use_id,
    )


# =============================================================================
# Raw dict messages
# =============================================================================

def _parse_dict_message(message: dict[str, Any]) -> ParsedMessage:
    msg_type = message.get("type")
    events: tuple[UpstreamEvent, ...] = ()

    if msg_type == "system":
        data = {k: v for k, v in message.items() if k not in ("type", "subtype")}
        events = _system_events(_as_text(message.get("subtype")) or "", data)
    elif msg_type == "stream_event":
        events = _stream_events(message.get("event"))
    elif msg_type == "assistant":
        events = _assistant_dict_events(message.get("message"))
    elif msg_type == "user":
        events = _user_dict_events(message.get("message"))
    elif msg_type == "tool_result":
        events = (_tool_output_from_dict(message),)
    elif msg_type == "result":
        events = (
            TurnResult(
                session_id=_as_text(message.get("session_id")),
                usage=message.get("usage"),
                total_cost_usd=message.get("total_cost_usd"),
                is_error=bool(message.get("is_error")),
                error=message.get("error"),
            ),
        )
    elif msg_type == "error":
        error = message.get("error") or message.get("errorText") or message.get("message")
        events = (UpstreamError(_error_text(error)),)
    else:
        logger.debug(f"Ignoring unknown upstream message type {msg_type!r}")

    if "parent_tool_use_id" in message:
        return ParsedMessage(
            events=events,
            has_parent_marker=True,
            parent_tool_use_id=_as_text(message["parent_tool_use_id"]),
        )
    return ParsedMessage(events=events)


def _assistant_dict_events(payload: Any) -> tuple[UpstreamEvent, ...]:
    if not isinstance(payload, dict) or not isinstance(payload.get("content"), list):
        return ()
    blocks: list[Union[TextContent, ToolInvocation]] = []
    for block in payload["content"]:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            blocks.append(TextContent(_as_text(block.get("text")) or ""))
        elif block_type == "tool_use":
            tool_input = block.get("input")
            blocks.append(
                ToolInvocation(
                    _as_text(block.get("id")),
                    _as_text(block.get("name")),
                    tool_input if isinstance(tool_input, dict) else None,
                )
            )
    return (AssistantTurn(tuple(blocks)),)


def _user_dict_events(payload: Any) -> tuple[UpstreamEvent, ...]:
    if not isinstance(payload, dict) or not isinstance(payload.get("content"), list):
        return ()
    return tuple(
        _tool_output_from_dict(block)
        for block in payload["content"]
        if isinstance(block, dict) and block.get("type") == "tool_result"
    )


def _tool_output_from_dict(payload: dict[str, Any]) -> ToolOutput:
    return ToolOutput(
        tool_use_id=_as_text(payload.get("tool_use_id")) or _as_text(payload.get("id")) or "",
        name=_as_text(payload.get("name")) or _as_text(payload.get("tool_name")),
        output=payload.get("output"),
        content=payload.get("content"),
    )


# =============================================================================
# Shared shapes
# =============================================================================

def _system_events(subtype: str, data: dict[str, Any]) -> tuple[UpstreamEvent, ...]:
    if subtype == "init":
        session_id = _as_text(data.get("session_id"))
        if session_id:
            return (SystemInit(session_id),)
        return ()
    if subtype in _SYSTEM_ERROR_SUBTYPES:
        return (UpstreamError(_error_text(data.get("message") or data.get("error"))),)
    return (SystemNotice(subtype, dict(data)),)


def _stream_events(raw_event: Any) -> tuple[UpstreamEvent, ...]:
    """Extract text deltas and tool results from a raw streaming event."""
    if not isinstance(raw_event, dict):
        return ()

    event_type = raw_event.get("type")
    if event_type == "content_block_delta":
        delta = raw_event.get("delta")
        if isinstance(delta, dict) and delta.get("type") == "text_delta":
            text = delta.get("text")
            if isinstance(text, str):
                return (StreamDelta(text),)
    elif event_type == "tool_result":
        return (_tool_output_from_dict(raw_event),)
    return ()


def _as_text(value: Any) -> Optional[str]:
    """
    Coerce an id, name or session id from a raw message to a string.

    Integers and floats are stringified; anything that is not a scalar
    (dicts, lists, booleans) is dropped so the caller's default applies.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _error_text(error: Any) -> str:
    if isinstance(error, str) and error:
        return error
    if error:
        return str(error)
    return ""
