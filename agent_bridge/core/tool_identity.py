"""
Tool identity resolution for nested agent tool calls.

The SDK may report the same tool invocation more than once (streamed
partial and final assistant message), and sub-agents may reuse tool ids
that their parent also uses. Tool ids are therefore namespaced by the
currently active parent tool use:

    composite_id = "<parent_id>:<original_id>"   (inside a sub-agent)
    composite_id = "<original_id>"               (top level)

One ToolCallRecord belongs to exactly one turn.
"""
import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)


def make_composite_id(original_id: str, parent_id: Optional[str]) -> str:
    """Namespace a tool id by the active parent tool use, if any."""
    return f"{parent_id}:{original_id}" if parent_id else original_id


class StartResolution(NamedTuple):
    composite_id: str
    is_duplicate: bool


@dataclass
class ToolCallRecord:
    """Per-turn tool bookkeeping."""
    emitted_composite_ids: set[str] = field(default_factory=set)
    original_to_composite: dict[str, str] = field(default_factory=dict)
    tool_names: dict[str, str] = field(default_factory=dict)
    current_parent_id: Optional[str] = None


class ToolIdentityResolver:
    """
    Computes composite tool ids, suppresses duplicate tool starts and
    re-addresses tool results.

    Args:
        record: Turn-owned state. A fresh record is created if omitted.
    """

    def __init__(self, record: Optional[ToolCallRecord] = None) -> None:
        self._record = record if record is not None else ToolCallRecord()

    @property
    def record(self) -> ToolCallRecord:
        return self._record

    @property
    def current_parent_id(self) -> Optional[str]:
        return self._record.current_parent_id

    def update_parent(self, parent_id: Optional[str]) -> None:
        """
        Replace the active parent tool use.

        There is no stack: the last announced parent wins, and None reverts
        to top level.
        """
        if parent_id != self._record.current_parent_id:
            logger.debug(f"Active parent tool use: {parent_id!r}")
        self._record.current_parent_id = parent_id

    def resolve_for_start(self, original_id: str, name: Optional[str] = None) -> StartResolution:
        """
        Resolve the composite id for a tool invocation.

        Args:
            original_id: Tool use id reported by the SDK.
            name: Tool name, remembered for the matching result.

        Returns:
            StartResolution. When is_duplicate is True the caller must not
            emit a tool-start.
        """
        composite_id = make_composite_id(original_id, self._record.current_parent_id)
        if composite_id in self._record.emitted_composite_ids:
            logger.debug(f"Suppressing duplicate tool start {composite_id}")
            return StartResolution(composite_id, True)

        self._record.emitted_composite_ids.add(composite_id)
        self._record.original_to_composite[original_id] = composite_id
        if name:
            self._record.tool_names[composite_id] = name
        return StartResolution(composite_id, False)

    def resolve_for_result(self, original_id: str) -> str:
        """
        Map a tool result back to the composite id used at start.

        The active parent is tried first, so results from sub-agents that
        reuse the same tool id are routed to their own start. Otherwise the
        most recent start with that id is used, and finally the original id
        when the start was never seen.
        """
        scoped_id = make_composite_id(original_id, self._record.current_parent_id)
        if scoped_id in self._record.emitted_composite_ids:
            return scoped_id

        composite_id = self._record.original_to_composite.get(original_id)
        if composite_id is None:
            logger.debug(f"Tool result for unknown tool use {original_id!r}")
            return original_id
        return composite_id

    def name_for(self, composite_id: str) -> Optional[str]:
        """Tool name recorded at start for a composite id, if any."""
        return self._record.tool_names.get(composite_id)
