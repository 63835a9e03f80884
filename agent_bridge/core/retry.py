"""
Retry policy for the agent bridge.

Resume the requested session; if that attempt fails, tell the consumer the
session was reset and retry once as a brand-new session. A second failure
is reported and the turn is closed with an empty done. At most two upstream
attempts are made per invocation and they never overlap.
"""
import logging
import re
from enum import StrEnum
from typing import Optional

from .constants import (
    ERROR_MESSAGE_MAX_LENGTH,
    PROCESS_CRASH_MESSAGE,
    SESSION_RESUME_FAILED_MESSAGE,
)
from .exceptions import EmitterError
from .output import OutputEmitter
from .schemas import TurnAccumulator
from .session_driver import SessionDriver

logger = logging.getLogger(__name__)

_PROCESS_EXIT_RE = re.compile(r"process exited with code (\d+)", re.IGNORECASE)


class TurnOutcome(StrEnum):
    """How a bridge invocation ended."""
    COMPLETED = "COMPLETED"   # First attempt succeeded
    RECOVERED = "RECOVERED"   # Resume failed, fresh session succeeded
    FAILED = "FAILED"         # No attempt succeeded


def clean_error_message(error: BaseException) -> str:
    """
    Turn an upstream exception into a short user-facing message.

    A crashed CLI process gets a fixed explanation; anything else is cut to
    its first line, at most ERROR_MESSAGE_MAX_LENGTH characters.
    """
    raw = str(error) or type(error).__name__
    match = _PROCESS_EXIT_RE.search(raw)
    if match:
        return PROCESS_CRASH_MESSAGE.format(code=match.group(1))
    first_line = raw.split("\n")[0].strip()
    if len(first_line) > ERROR_MESSAGE_MAX_LENGTH:
        return first_line[:ERROR_MESSAGE_MAX_LENGTH] + "..."
    return first_line


class RetryController:
    """
    Top-level turn policy.

    Guarantees that every call to handle_query ends with exactly one done
    event. Only EmitterError escapes; it means the protocol channel itself
    is broken.

    Args:
        driver: Session driver running individual attempts.
        emitter: Output emitter shared with the driver.
    """

    def __init__(self, driver: SessionDriver, emitter: OutputEmitter) -> None:
        self._driver = driver
        self._emitter = emitter

    async def handle_query(
        self,
        prompt: str,
        session_id: Optional[str] = None,
        cwd: Optional[str] = None,
    ) -> TurnOutcome:
        """
        Run a turn with the resume-then-fresh policy.

        Args:
            prompt: User prompt.
            session_id: Session to resume. Empty or None starts fresh.
            cwd: Working directory for the agent.

        Returns:
            TurnOutcome describing which path was taken.
        """
        if not session_id:
            result = await self._attempt(prompt, None, cwd, resume=False)
            if result is None:
                return TurnOutcome.FAILED
            self._emit_done(result)
            return TurnOutcome.COMPLETED

        logger.info(f"Resuming session {session_id}")
        failure: Optional[Exception] = None
        try:
            result = await self._driver.run_turn(prompt, session_id, cwd, resume=True)
        except EmitterError:
            raise
        except Exception as e:
            failure = e

        if failure is None:
            self._emit_done(result)
            return TurnOutcome.COMPLETED

        reason = clean_error_message(failure)
        logger.warning(f"Session resume failed: {reason}. Retrying as a fresh session")
        self._emitter.error(SESSION_RESUME_FAILED_MESSAGE.format(reason=reason))
        # The old upstream session id is no longer valid
        self._emitter.session_reset()

        result = await self._attempt(prompt, None, cwd, resume=False)
        if result is None:
            return TurnOutcome.FAILED
        self._emit_done(result)
        return TurnOutcome.RECOVERED

    async def _attempt(
        self,
        prompt: str,
        session_id: Optional[str],
        cwd: Optional[str],
        resume: bool,
    ) -> Optional[TurnAccumulator]:
        """Run a final attempt; on failure report it and close the turn."""
        try:
            return await self._driver.run_turn(prompt, session_id, cwd, resume=resume)
        except EmitterError:
            raise
        except Exception as e:
            reason = clean_error_message(e)
            logger.error(f"Upstream turn failed: {reason}")
            self._emitter.error(reason)
            self._emitter.done()
            return None

    def _emit_done(self, result: TurnAccumulator) -> None:
        self._emitter.emit(result.to_done_event())
