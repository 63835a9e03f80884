"""
Bridge exceptions.

Custom exception classes for the agent bridge.
"""


class BridgeError(Exception):
    """Base exception for bridge errors."""
    pass


class StreamFailureError(BridgeError):
    """Opening or iterating the upstream stream failed."""
    pass


class EmitterError(BridgeError):
    """An output event could not be serialized or written. Always fatal."""
    pass
