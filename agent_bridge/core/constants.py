"""
Centralized constants for the agent bridge.

All magic numbers, strings, and protocol values are defined here.
This ensures consistency across modules and makes maintenance easier.

Usage:
    from .constants import (
        BUDGET_CEILING_MESSAGE,
        OutputEventType,
        TOOL_OUTPUT_MAX_LENGTH,
        LOG_FORMAT_FILE,
    )
"""
from enum import StrEnum


# =============================================================================
# Logging Constants
# =============================================================================

# Log format for file-based logging
LOG_FORMAT_FILE: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Log format for colored console (using colorlog)
LOG_FORMAT_COLORED: str = (
    "%(log_color)s%(levelname)-8s%(reset)s %(cyan)s%(name)s%(reset)s: %(message)s"
)

# Rotating file handler settings
LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT: int = 5

# Log file names
LOG_FILE_BRIDGE: str = "agent_bridge.log"

DEFAULT_LOG_LEVEL: str = "INFO"

COLORLOG_COLORS: dict[str, str] = {
    "DEBUG": "white",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


# =============================================================================
# Wire Protocol
# =============================================================================

class OutputEventType(StrEnum):
    """Discriminator values of the line protocol written to stdout."""
    SESSION_INIT = "session-init"
    TEXT_DELTA = "text-delta"
    TOOL_START = "tool-start"
    TOOL_RESULT = "tool-result"
    SESSION_RESET = "session-reset"
    SYSTEM_STATUS = "system-status"
    ERROR = "error"
    DONE = "done"


# Hard cap on tool-result output forwarded to the consumer
TOOL_OUTPUT_MAX_LENGTH: int = 500

# Cap on the first line of an upstream exception shown to the consumer
ERROR_MESSAGE_MAX_LENGTH: int = 200

UNKNOWN_TOOL_NAME: str = "unknown"
UNKNOWN_SDK_ERROR: str = "Unknown SDK error"

STATUS_COMPACTING: str = "compacting"

BUDGET_CEILING_MESSAGE: str = (
    "Budget ceiling reached. Your per-session spend limit was hit. "
    "Increase or clear it in Settings → Command Center."
)

PROCESS_CRASH_MESSAGE: str = (
    "Claude Code process crashed (exit code {code}). "
    "This usually means the session state is stale or the sandbox restarted."
)

SESSION_RESUME_FAILED_MESSAGE: str = (
    "Session resume failed: {reason}. Starting fresh session..."
)

USAGE_MESSAGE: str = "Usage: agent-bridge <prompt> [sessionId] [cwd]"


# =============================================================================
# Upstream Options Defaults
# =============================================================================

DEFAULT_MODEL: str = "claude-sonnet-4-6"
DEFAULT_WORKSPACE_DIR: str = "/workspace"
DEFAULT_CLAUDE_CONFIG_DIR: str = "/root/.claude"
AUTO_CONTEXT_PATH: str = "/tmp/vf-auto-context.md"

BASE_SYSTEM_APPEND: str = (
    "You are working in a cloud sandbox. Always create, edit, and manage files "
    "in /workspace (your cwd). Never use /tmp unless explicitly asked."
)

# Tools blocked in plan (read-only research) mode
PLAN_MODE_BLOCKED_TOOLS: tuple[str, ...] = ("Bash", "Write", "Edit", "NotebookEdit")

# Internal transport variables never forwarded to the SDK's CLI process
STRIP_FROM_SDK_ENV: frozenset[str] = frozenset({
    "CLAUDE_MCP_SERVERS",
    "VF_SESSION_MODE",
    "VF_AUTO_CONTEXT",
})


class SessionMode(StrEnum):
    """Session mode requested by the orchestrator."""
    AGENT = "agent"
    PLAN = "plan"


class AutonomyMode(StrEnum):
    """How much the agent may do without asking."""
    CONSERVATIVE = "conservative"
    STANDARD = "standard"
    AUTONOMOUS = "autonomous"


# SDK permission mode for each autonomy level (plan mode overrides all)
AUTONOMY_PERMISSION_MODES: dict[str, str] = {
    AutonomyMode.CONSERVATIVE: "default",
    AutonomyMode.STANDARD: "acceptEdits",
    AutonomyMode.AUTONOMOUS: "bypassPermissions",
}
