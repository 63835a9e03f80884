#!/usr/bin/env python3
"""
Agent bridge entry point.

This script runs the bridge with proper package imports.

Usage:
    python run_bridge.py "List all files" [sessionId] [cwd]

    # Alternative: run as module from the project directory:
    python -m agent_bridge "List all files" [sessionId] [cwd]
"""
import runpy
import sys
from pathlib import Path

if __name__ == "__main__":
    # Add the project directory to path so 'agent_bridge' resolves as a package
    project_dir = Path(__file__).parent.resolve()

    if str(project_dir) not in sys.path:
        sys.path.insert(0, str(project_dir))

    runpy.run_module("agent_bridge", run_name="__main__", alter_sys=True)
