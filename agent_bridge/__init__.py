"""
Agent stream bridge.

Drives a Claude Agent SDK session and re-emits its message stream as a
small newline-delimited JSON protocol for a remote orchestrator.
"""

__version__ = "0.1.0"
