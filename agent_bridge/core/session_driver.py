"""
Session driver for the agent bridge.

Runs one upstream attempt: builds the request options, opens the SDK stream
and drives a fresh EventNormalizer over every message until the stream ends.
This is the only component that raises on upstream failure.
"""
import logging
from typing import Any, AsyncIterator, Callable, Optional

from claude_agent_sdk import query

from ..config import BridgeSettings
from .exceptions import EmitterError, StreamFailureError
from .normalizer import EventNormalizer
from .options import build_options
from .output import OutputEmitter
from .schemas import TurnAccumulator

logger = logging.getLogger(__name__)

# (prompt, session_id, cwd, resume) -> options bag
OptionsFactory = Callable[[str, Optional[str], Optional[str], bool], Any]

# (prompt, options) -> async iterator of SDK messages
StreamOpener = Callable[[str, Any], AsyncIterator[Any]]


def open_sdk_stream(prompt: str, options: Any) -> AsyncIterator[Any]:
    """Open the Claude Agent SDK message stream."""
    return query(prompt=prompt, options=options)


class SessionDriver:
    """
    Drives one upstream turn at a time.

    Args:
        emitter: Output emitter for protocol lines.
        settings: Bridge settings used by the default options factory.
        options_factory: Builds the options bag for an attempt.
        open_stream: Opens the upstream message stream.
    """

    def __init__(
        self,
        emitter: OutputEmitter,
        settings: Optional[BridgeSettings] = None,
        options_factory: Optional[OptionsFactory] = None,
        open_stream: Optional[StreamOpener] = None,
    ) -> None:
        self._emitter = emitter
        self._settings = settings or BridgeSettings()
        self._options_factory = options_factory or self._default_options
        self._open_stream = open_stream or open_sdk_stream

    def _default_options(
        self,
        prompt: str,
        session_id: Optional[str],
        cwd: Optional[str],
        resume: bool,
    ) -> Any:
        return build_options(prompt, session_id, cwd, resume, self._settings)

    async def run_turn(
        self,
        prompt: str,
        session_id: Optional[str],
        cwd: Optional[str],
        resume: bool,
    ) -> TurnAccumulator:
        """
        Run one upstream attempt to completion.

        Args:
            prompt: User prompt.
            session_id: Upstream session id to resume, if any.
            cwd: Working directory for the agent.
            resume: Whether to resume session_id.

        Returns:
            The finalized TurnAccumulator.

        Raises:
            StreamFailureError: If building options, opening or iterating
                the stream fails.
            EmitterError: If a protocol line cannot be written.
        """
        normalizer = EventNormalizer(self._emitter, session_id=session_id)
        logger.info(
            f"Starting upstream turn (session={session_id or 'new'}, "
            f"resume={resume}, cwd={cwd or 'default'})"
        )

        message_count = 0
        try:
            options = self._options_factory(prompt, session_id, cwd, resume)
            async for message in self._open_stream(prompt, options):
                message_count += 1
                normalizer.process_message(message)
        except EmitterError:
            raise
        except Exception as e:
            logger.warning(
                f"Upstream stream failed after {message_count} message(s): "
                f"{type(e).__name__}: {e}"
            )
            raise StreamFailureError(str(e) or type(e).__name__) from e

        result = normalizer.accumulator
        logger.info(
            f"Upstream turn complete: {message_count} message(s), "
            f"session={result.session_id or 'none'}"
        )
        return result
