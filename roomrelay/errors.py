"""
Relay Exceptions

Handshake errors are fatal to one connection attempt only.
Generation errors are contained inside the AI branch of the relay.
"""


class RelayError(Exception):
    """Base exception for relay operations."""
    pass


# =============================================================================
# Handshake
# =============================================================================

class Unauthorized(RelayError):
    """Raised when the auth token is missing, malformed, or fails verification."""
    pass


class RoomNotFound(RelayError):
    """Raised when the room identifier is malformed or names no project."""
    pass


# =============================================================================
# Generation
# =============================================================================

class EmptyPrompt(RelayError):
    """Raised when the prompt is empty after trimming."""
    pass


class UpstreamError(RelayError):
    """Raised when the generation backend fails or times out."""
    pass
