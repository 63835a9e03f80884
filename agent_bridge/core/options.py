"""
Upstream request options for the agent bridge.

Builds ClaudeAgentOptions from BridgeSettings: model, permission mode,
sub-agent definitions discovered on disk, MCP servers, budget ceiling,
system prompt and the environment handed to the SDK's CLI process.
The core treats the result as an opaque options bag.
"""
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from claude_agent_sdk import AgentDefinition, ClaudeAgentOptions

from ..config import BridgeSettings
from .constants import (
    AUTO_CONTEXT_PATH,
    AUTONOMY_PERMISSION_MODES,
    BASE_SYSTEM_APPEND,
    DEFAULT_WORKSPACE_DIR,
    PLAN_MODE_BLOCKED_TOOLS,
    STRIP_FROM_SDK_ENV,
)

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"^---\r?\n(.*?)\r?\n---\r?\n?(.*)$", re.DOTALL)


def _parse_agent_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """
    Split an agent markdown file into frontmatter and body.

    Expected format:
        ---
        name: reviewer
        description: Reviews diffs.
        tools: Read, Grep
        ---

        You are a meticulous reviewer...

    Returns:
        Tuple of (frontmatter dict, body). Frontmatter is empty when absent
        or unparseable.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse agent frontmatter: {e}")
        return {}, match.group(2)
    return (meta if isinstance(meta, dict) else {}), match.group(2)


def _split_tools(value: Any) -> Optional[list[str]]:
    if isinstance(value, list):
        tools = [str(t).strip() for t in value]
    elif isinstance(value, str):
        tools = [t.strip() for t in value.split(",")]
    else:
        return None
    return [t for t in tools if t] or None


def load_agents_from_disk(claude_config_dir: Path) -> dict[str, AgentDefinition]:
    """
    Load sub-agent definitions from <claude_config_dir>/agents/*.md.

    Setting sources do not discover agents, so they are passed explicitly.

    Args:
        claude_config_dir: Claude configuration directory.

    Returns:
        Mapping of agent name to AgentDefinition.
    """
    agents_dir = claude_config_dir / "agents"
    agents: dict[str, AgentDefinition] = {}
    if not agents_dir.is_dir():
        return agents

    for agent_file in sorted(agents_dir.glob("*.md")):
        try:
            content = agent_file.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to read agent file {agent_file}: {e}")
            continue

        meta, body = _parse_agent_frontmatter(content)
        name = str(meta.get("name") or agent_file.stem)
        agents[name] = AgentDefinition(
            description=str(meta.get("description") or ""),
            prompt=body.strip(),
            tools=_split_tools(meta.get("tools")),
            model=meta.get("model"),
        )

    if agents:
        logger.info(f"Loaded {len(agents)} agent(s): {', '.join(agents)}")
    return agents


def parse_mcp_servers(raw: Optional[str]) -> Optional[dict[str, Any]]:
    """Parse the MCP server map. Invalid JSON is logged and ignored."""
    if not raw:
        return None
    try:
        servers = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse CLAUDE_MCP_SERVERS: {e}")
        return None
    if not isinstance(servers, dict):
        logger.warning("CLAUDE_MCP_SERVERS is not a JSON object, ignoring")
        return None
    if servers:
        logger.info(f"Loaded {len(servers)} MCP server(s): {', '.join(servers)}")
    return servers


def resolve_permission_mode(settings: BridgeSettings) -> str:
    """Plan mode always wins; otherwise map the autonomy level."""
    if settings.is_plan_mode:
        return "plan"
    return AUTONOMY_PERMISSION_MODES.get(settings.autonomy_mode, "bypassPermissions")


def build_system_prompt_append(
    auto_context: bool,
    context_path: Path = Path(AUTO_CONTEXT_PATH),
) -> str:
    """Base sandbox instructions plus the cached workspace auto-context."""
    if not auto_context:
        return BASE_SYSTEM_APPEND
    try:
        ctx = context_path.read_text(encoding="utf-8").strip() if context_path.exists() else ""
    except OSError as e:
        logger.warning(f"Failed to read auto-context: {e}")
        return BASE_SYSTEM_APPEND
    if ctx:
        logger.info(f"Auto-context loaded ({len(ctx)} chars)")
        return f"{BASE_SYSTEM_APPEND}\n\n{ctx}"
    return BASE_SYSTEM_APPEND


def build_sdk_env(
    settings: BridgeSettings,
    environ: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Environment for the SDK's CLI process, minus internal transport keys."""
    source = environ if environ is not None else os.environ
    env = {k: v for k, v in source.items() if k not in STRIP_FROM_SDK_ENV}
    if settings.oauth_token:
        env["CLAUDE_CODE_OAUTH_TOKEN"] = settings.oauth_token
    env["CLAUDE_CONFIG_DIR"] = settings.claude_config_dir
    env["IS_SANDBOX"] = "1"
    return env


def build_options(
    prompt: str,
    session_id: Optional[str],
    cwd: Optional[str],
    resume: bool,
    settings: BridgeSettings,
    environ: Optional[Mapping[str, str]] = None,
) -> ClaudeAgentOptions:
    """
    Build ClaudeAgentOptions for one upstream attempt.

    Args:
        prompt: User prompt (unused by the options themselves).
        session_id: Upstream session id, if known.
        cwd: Working directory. Defaults to /workspace.
        resume: Resume session_id instead of starting fresh.
        settings: Bridge settings.
        environ: Environment override (tests). Defaults to os.environ.

    Returns:
        ClaudeAgentOptions configured for the attempt.
    """
    _ = prompt
    permission_mode = resolve_permission_mode(settings)
    if settings.is_plan_mode:
        logger.info("Running in PLAN mode (read-only)")
    else:
        logger.info(f"Autonomy: {settings.autonomy_mode} -> permission_mode: {permission_mode}")
    if settings.agency_mode:
        logger.info("Running in AGENCY mode (fresh session, no continue)")

    max_budget = settings.max_budget_usd
    if max_budget is not None and max_budget > 0:
        logger.info(f"Budget ceiling: ${max_budget}")
    else:
        max_budget = None

    resume_id = session_id if resume and session_id else None

    return ClaudeAgentOptions(
        model=settings.model,
        cwd=cwd or DEFAULT_WORKSPACE_DIR,
        setting_sources=["user", "project"],
        agents=load_agents_from_disk(Path(settings.claude_config_dir)) or None,
        mcp_servers=parse_mcp_servers(settings.mcp_servers) or {},
        max_budget_usd=max_budget,
        include_partial_messages=True,
        permission_mode=permission_mode,
        disallowed_tools=list(PLAN_MODE_BLOCKED_TOOLS) if settings.is_plan_mode else [],
        continue_conversation=not settings.agency_mode,
        system_prompt={
            "type": "preset",
            "preset": "claude_code",
            "append": build_system_prompt_append(settings.auto_context),
        },
        env=build_sdk_env(settings, environ),
        resume=resume_id,
    )
