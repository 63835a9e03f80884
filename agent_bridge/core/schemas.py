"""
Data models for the agent bridge.

Contains the Pydantic models of the output line protocol and the per-turn
accumulator returned by the session driver.
"""
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ProtocolModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class TokenUsage(ProtocolModel):
    """
    Token usage reported for a turn.

    Mapped from the SDK's ``input_tokens``/``output_tokens`` fields.
    """
    input_tokens: int = Field(default=0, alias="inputTokens")
    output_tokens: int = Field(default=0, alias="outputTokens")

    @classmethod
    def from_sdk_usage(cls, usage: Optional[dict[str, Any]]) -> Optional["TokenUsage"]:
        """
        Create TokenUsage from the SDK usage dictionary.

        Args:
            usage: Usage dictionary from ResultMessage, or None.

        Returns:
            TokenUsage instance, or None if no usage was reported.
        """
        if not isinstance(usage, dict):
            return None
        return cls(
            input_tokens=_as_int(usage.get("input_tokens")),
            output_tokens=_as_int(usage.get("output_tokens")),
        )


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value) if value is not None else 0
    except (TypeError, ValueError):
        return 0


class SessionInitEvent(ProtocolModel):
    type: Literal["session-init"] = "session-init"
    session_id: str = Field(alias="sessionId")


class TextDeltaEvent(ProtocolModel):
    type: Literal["text-delta"] = "text-delta"
    text: str


class ToolStartEvent(ProtocolModel):
    type: Literal["tool-start"] = "tool-start"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultEvent(ProtocolModel):
    type: Literal["tool-result"] = "tool-result"
    id: str
    name: str
    output: str


class SessionResetEvent(ProtocolModel):
    type: Literal["session-reset"] = "session-reset"


class SystemStatusEvent(ProtocolModel):
    type: Literal["system-status"] = "system-status"
    status: str


class ErrorEvent(ProtocolModel):
    type: Literal["error"] = "error"
    error: str


class DoneEvent(ProtocolModel):
    """Terminal event. Exactly one is written per bridge invocation."""
    type: Literal["done"] = "done"
    session_id: str = Field(alias="sessionId")
    full_text: str = Field(alias="fullText")
    usage: Optional[TokenUsage] = None
    cost_usd: Optional[float] = Field(default=None, alias="costUsd")


OutputEvent = Union[
    SessionInitEvent,
    TextDeltaEvent,
    ToolStartEvent,
    ToolResultEvent,
    SessionResetEvent,
    SystemStatusEvent,
    ErrorEvent,
    DoneEvent,
]


@dataclass
class TurnAccumulator:
    """
    Running results of one turn.

    Created at turn start by the session driver and returned when the
    upstream stream ends. Never shared between turns.
    """
    session_id: str = ""
    response_text: str = ""
    usage: Optional[TokenUsage] = None
    cost_usd: Optional[float] = None

    def to_done_event(self) -> DoneEvent:
        """Build the terminal event describing this turn."""
        return DoneEvent(
            session_id=self.session_id,
            full_text=self.response_text,
            usage=self.usage,
            cost_usd=self.cost_usd,
        )
