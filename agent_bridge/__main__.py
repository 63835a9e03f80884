"""
Allow running the bridge as a module.

Usage:
    python -m agent_bridge "<prompt>" [sessionId] [cwd]
"""
import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
