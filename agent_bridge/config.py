"""
Global configuration for the agent bridge.

This module defines directory paths, the BridgeSettings model and the
BridgeConfigLoader class which merges bridge.yaml, environment variables
and CLI overrides.

Usage:
    from agent_bridge.config import BridgeConfigLoader, ConfigValidationError

    loader = BridgeConfigLoader()
    loader.apply_cli_overrides(log_level="DEBUG")
    settings = loader.load()
"""
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .core.constants import (
    DEFAULT_CLAUDE_CONFIG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MODEL,
    AutonomyMode,
    SessionMode,
)

logger = logging.getLogger(__name__)


class ConfigNotFoundError(Exception):
    """Raised when an explicitly requested configuration file is not found."""
    pass


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


# BRIDGE_DIR is the root of the project.
# Allow override via AGENT_BRIDGE_ROOT so containers can mount config elsewhere.
_bridge_root_override = os.environ.get("AGENT_BRIDGE_ROOT")
if _bridge_root_override:
    BRIDGE_DIR: Path = Path(_bridge_root_override).resolve()
else:
    # config.py is at ROOT/agent_bridge/config.py, so parent.parent = ROOT/
    BRIDGE_DIR = Path(__file__).parent.parent.resolve()

CONFIG_DIR: Path = BRIDGE_DIR / "config"

BRIDGE_CONFIG_FILE: Path = CONFIG_DIR / "bridge.yaml"
ENV_FILE: Path = CONFIG_DIR / ".env"

# Environment variable -> settings field
ENV_OVERRIDES: dict[str, str] = {
    "VF_MODEL": "model",
    "VF_SESSION_MODE": "session_mode",
    "VF_AUTONOMY_MODE": "autonomy_mode",
    "VF_AGENCY_MODE": "agency_mode",
    "VF_MAX_BUDGET_USD": "max_budget_usd",
    "VF_AUTO_CONTEXT": "auto_context",
    "CLAUDE_MCP_SERVERS": "mcp_servers",
    "CLAUDE_CONFIG_DIR": "claude_config_dir",
    "CLAUDE_CODE_OAUTH_TOKEN": "oauth_token",
    "BRIDGE_LOG_LEVEL": "log_level",
    "BRIDGE_LOG_DIR": "log_dir",
}


class BridgeSettings(BaseModel):
    """
    Settings that shape the upstream request and the bridge's own logging.

    The core never reads these directly; they are consumed by the options
    builder and the entry point.
    """
    model: str = Field(
        default=DEFAULT_MODEL,
        description="Claude model used for the session"
    )
    session_mode: str = Field(
        default=SessionMode.AGENT.value,
        description="'agent' for normal work, 'plan' for read-only research"
    )
    autonomy_mode: str = Field(
        default=AutonomyMode.AUTONOMOUS.value,
        description="conservative, standard or autonomous"
    )
    agency_mode: bool = Field(
        default=False,
        description="Start every query fresh instead of continuing the conversation"
    )
    max_budget_usd: Optional[float] = Field(
        default=None,
        description="Per-session spend ceiling enforced by the SDK"
    )
    auto_context: bool = Field(
        default=True,
        description="Append the cached workspace auto-context to the system prompt"
    )
    mcp_servers: Optional[str] = Field(
        default=None,
        description="JSON object of MCP server definitions"
    )
    claude_config_dir: str = Field(
        default=DEFAULT_CLAUDE_CONFIG_DIR,
        description="Claude configuration directory (agents are loaded from here)"
    )
    oauth_token: Optional[str] = Field(
        default=None,
        description="OAuth token forwarded to the SDK's CLI process"
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        description="Logging level for stderr and file logging"
    )
    log_dir: Optional[str] = Field(
        default=None,
        description="Directory for the rotating log file; file logging is off when unset"
    )

    @property
    def is_plan_mode(self) -> bool:
        return self.session_mode == SessionMode.PLAN


class BridgeConfigLoader:
    """
    Loads bridge settings from bridge.yaml, the environment and CLI overrides.

    Precedence (lowest to highest): model defaults, the ``bridge`` section of
    the YAML file, environment variables, CLI overrides. The YAML file is
    optional unless a path was passed explicitly.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Initialize the configuration loader.

        Args:
            config_path: Path to bridge.yaml. Defaults to CONFIG_DIR/bridge.yaml.
            environ: Environment mapping. Defaults to os.environ.
        """
        self._explicit_path = config_path is not None
        self._config_path = config_path or BRIDGE_CONFIG_FILE
        self._environ = environ if environ is not None else os.environ
        self._cli_overrides: dict[str, Any] = {}

    def _load_file_config(self) -> dict[str, Any]:
        """Load the bridge section of the YAML file, if present."""
        if not self._config_path.exists():
            if self._explicit_path:
                raise ConfigNotFoundError(
                    f"Bridge configuration not found: {self._config_path}"
                )
            logger.debug(f"No bridge configuration at {self._config_path}, using defaults")
            return {}

        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationError(
                f"Failed to parse bridge configuration {self._config_path}: {e}"
            ) from e

        if data is None:
            raise ConfigValidationError(
                f"Bridge configuration file is empty: {self._config_path}"
            )
        if not isinstance(data, dict) or not isinstance(data.get("bridge"), dict):
            raise ConfigValidationError(
                f"No 'bridge' section found in {self._config_path}"
            )
        return dict(data["bridge"])

    def _load_env_config(self) -> dict[str, Any]:
        """Collect non-empty environment overrides."""
        values: dict[str, Any] = {}
        for env_name, field_name in ENV_OVERRIDES.items():
            value = self._environ.get(env_name)
            if value:
                values[field_name] = value
        return values

    def apply_cli_overrides(self, **kwargs: Any) -> None:
        """
        Apply CLI argument overrides to the configuration.

        Args:
            **kwargs: Settings values to override. None values are ignored.
        """
        for key, value in kwargs.items():
            if value is not None:
                self._cli_overrides[key] = value
                logger.debug(f"CLI override: {key}={value}")

    def load(self) -> BridgeSettings:
        """
        Merge all configuration sources into validated settings.

        Returns:
            BridgeSettings instance.

        Raises:
            ConfigNotFoundError: If an explicit config path does not exist.
            ConfigValidationError: If the file or merged values are invalid.
        """
        merged = self._load_file_config()
        merged.update(self._load_env_config())
        merged.update(self._cli_overrides)

        try:
            settings = BridgeSettings(**merged)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid bridge configuration: {e}") from e

        logger.debug(
            f"Settings loaded: model={settings.model}, "
            f"session_mode={settings.session_mode}, "
            f"autonomy_mode={settings.autonomy_mode}"
        )
        return settings

    @property
    def config_path(self) -> Path:
        """Return the path to the bridge config file."""
        return self._config_path
