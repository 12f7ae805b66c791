"""Roomrelay - Real-time project rooms with an AI code generator."""

# Envelopes
from .state import (
    MessageEnvelope,
    ExtractionResult,
    Command,
    FileTree,
    AI_SENDER,
    MESSAGE_EVENT,
    generate_id,
    format_timestamp,
)

# Errors
from .errors import (
    RelayError,
    Unauthorized,
    RoomNotFound,
    EmptyPrompt,
    UpstreamError,
)

# Collaborators
from .protocols import (
    Connection,
    GenerationBackend,
    IdentityVerifier,
    ProjectLookup,
    RoomDescriptor,
)

# Extraction
from .extract import (
    extract,
    extract_object,
    BraceScanner,
    ScanState,
)

# Generation
from .llm import LiteLLMBackend, LLMResponse, LLMUsage
from .coordinator import GenerationCoordinator, DEGRADED_TEXT

# Rooms and relay
from .registry import RoomRegistry
from .relay import Relay, DEFAULT_TRIGGER
from .gateway import ConnectionGateway, Session

# Identity and projects
from .auth import JWTVerifier
from .projects import InMemoryProjectLookup, is_valid_object_id

# Configuration
from .config import RelayConfig

__version__ = "0.1.0"

__all__ = [
    # Envelopes
    "MessageEnvelope",
    "ExtractionResult",
    "Command",
    "FileTree",
    "AI_SENDER",
    "MESSAGE_EVENT",
    "generate_id",
    "format_timestamp",
    # Errors
    "RelayError",
    "Unauthorized",
    "RoomNotFound",
    "EmptyPrompt",
    "UpstreamError",
    # Collaborators
    "Connection",
    "GenerationBackend",
    "IdentityVerifier",
    "ProjectLookup",
    "RoomDescriptor",
    # Extraction
    "extract",
    "extract_object",
    "BraceScanner",
    "ScanState",
    # Generation
    "LiteLLMBackend",
    "LLMResponse",
    "LLMUsage",
    "GenerationCoordinator",
    "DEGRADED_TEXT",
    # Rooms and relay
    "RoomRegistry",
    "Relay",
    "DEFAULT_TRIGGER",
    "ConnectionGateway",
    "Session",
    # Identity and projects
    "JWTVerifier",
    "InMemoryProjectLookup",
    "is_valid_object_id",
    # Configuration
    "RelayConfig",
    # Version
    "__version__",
]
