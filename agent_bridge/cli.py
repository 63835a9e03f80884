"""
Command line entry point for the agent bridge.

Usage:
    agent-bridge "<prompt>" [sessionId] [cwd] [--log-level DEBUG] [--config PATH]

    # Or as a module / wrapper script:
    python -m agent_bridge "<prompt>" [sessionId] [cwd]
    python run_bridge.py "<prompt>" [sessionId] [cwd]

stdout carries only the line protocol. Logs go to stderr (and optionally a
rotating file). The exit code is 0 whenever the protocol itself reported
the outcome; 1 is reserved for usage, configuration and bootstrap failures.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .config import (
    ENV_FILE,
    BridgeConfigLoader,
    ConfigNotFoundError,
    ConfigValidationError,
)
from .core.constants import USAGE_MESSAGE
from .core.exceptions import EmitterError
from .core.logging_config import setup_bridge_logging
from .core.output import OutputEmitter

logger = logging.getLogger(__name__)


# =============================================================================
# Argument Parsing
# =============================================================================

def add_query_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add the positional query arguments to parser.

    Args:
        parser: ArgumentParser to add arguments to.
    """
    parser.add_argument(
        "prompt",
        nargs="?",
        help="Prompt to send to the agent"
    )
    parser.add_argument(
        "session_id",
        nargs="?",
        help="Upstream session id to resume"
    )
    parser.add_argument(
        "cwd",
        nargs="?",
        help="Working directory for the agent"
    )


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add configuration arguments to parser.

    Args:
        parser: ArgumentParser to add arguments to.
    """
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to bridge.yaml (default: config/bridge.yaml if present)"
    )
    parser.add_argument(
        "--model", "-m",
        type=str,
        default=None,
        help="Claude model to use (overrides bridge.yaml and VF_MODEL)"
    )


def add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add logging arguments to parser.

    Args:
        parser: ArgumentParser to add arguments to.
    """
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: BRIDGE_LOG_LEVEL or INFO)"
    )


def create_parser() -> argparse.ArgumentParser:
    """Build the bridge argument parser."""
    # No -h/--help: stdout is reserved for protocol lines
    parser = argparse.ArgumentParser(
        prog="agent-bridge",
        description="Stream a Claude agent turn as newline-delimited JSON events.",
        add_help=False,
    )
    add_query_arguments(parser)
    add_config_arguments(parser)
    add_logging_arguments(parser)
    return parser


# =============================================================================
# Main
# =============================================================================

def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Exit code.
    """
    emitter = OutputEmitter()

    try:
        args, ignored = create_parser().parse_known_args(argv)
    except SystemExit:
        # argparse has already written the details to stderr
        emitter.error(USAGE_MESSAGE)
        return 1

    if not args.prompt:
        emitter.error(USAGE_MESSAGE)
        return 1

    if ENV_FILE.exists():
        load_dotenv(ENV_FILE, override=False)

    try:
        loader = BridgeConfigLoader(
            config_path=Path(args.config) if args.config else None
        )
        loader.apply_cli_overrides(model=args.model, log_level=args.log_level)
        settings = loader.load()
    except (ConfigNotFoundError, ConfigValidationError) as e:
        emitter.error(f"Configuration error: {e}")
        return 1

    setup_bridge_logging(
        log_level=settings.log_level,
        log_dir=Path(settings.log_dir) if settings.log_dir else None,
    )
    if ignored:
        logger.warning(f"Ignoring extra arguments: {ignored}")

    try:
        from .core.retry import RetryController, clean_error_message
        from .core.session_driver import SessionDriver
    except ImportError as e:
        logger.critical(f"SDK import failed: {e}")
        emitter.error(f"SDK import failed: {e}")
        return 1

    driver = SessionDriver(emitter, settings=settings)
    controller = RetryController(driver, emitter)

    try:
        outcome = asyncio.run(
            controller.handle_query(args.prompt, args.session_id or None, args.cwd or None)
        )
        logger.info(f"Turn finished: {outcome}")
    except EmitterError as e:
        # The protocol channel is gone; nothing more can be reported on it
        logger.critical(f"Output channel failure: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except Exception as e:
        logger.exception(f"Fatal bridge error: {e}")
        if not emitter.done_emitted:
            emitter.error(clean_error_message(e))
            emitter.done()
    return 0


if __name__ == "__main__":
    sys.exit(main())
