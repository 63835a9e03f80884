"""
Core modules for the agent bridge.

This package contains the stream transducer and its retry policy:
- constants.py: Centralized constants (protocol values, log formats, defaults)
- exceptions.py: Custom exceptions
- logging_config.py: stderr/file logging configuration
- output.py: Line protocol emitter
- schemas.py: Pydantic models of the output protocol and the turn accumulator
- tool_identity.py: Composite tool ids, dedup and result re-addressing
- upstream.py: SDK message to upstream event conversion
- normalizer.py: Upstream event to output event dispatch
- options.py: ClaudeAgentOptions construction
- session_driver.py: One upstream attempt
- retry.py: Resume-then-fresh retry policy

Modules that depend on claude_agent_sdk (upstream, normalizer, options,
session_driver, retry) are not re-exported here. Import them from their
modules; the entry point imports them lazily so it can report a missing SDK
on the protocol channel.
"""
from .constants import (
    BUDGET_CEILING_MESSAGE,
    TOOL_OUTPUT_MAX_LENGTH,
    OutputEventType,
)
from .exceptions import (
    BridgeError,
    EmitterError,
    StreamFailureError,
)
from .logging_config import setup_bridge_logging
from .output import OutputEmitter
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
    TurnAccumulator,
)
from .tool_identity import (
    StartResolution,
    ToolCallRecord,
    ToolIdentityResolver,
    make_composite_id,
)

__all__ = [
    # Constants
    "BUDGET_CEILING_MESSAGE",
    "TOOL_OUTPUT_MAX_LENGTH",
    "OutputEventType",
    # Exceptions
    "BridgeError",
    "EmitterError",
    "StreamFailureError",
    # Logging
    "setup_bridge_logging",
    # Output
    "OutputEmitter",
    # Schemas
    "DoneEvent",
    "ErrorEvent",
    "OutputEvent",
    "SessionInitEvent",
    "SessionResetEvent",
    "SystemStatusEvent",
    "TextDeltaEvent",
    "TokenUsage",
    "ToolResultEvent",
    "ToolStartEvent",
    "TurnAccumulator",
    # Tool identity
    "StartResolution",
    "ToolCallRecord",
    "ToolIdentityResolver",
    "make_composite_id",
]
