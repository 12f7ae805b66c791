"""
Collaborator Protocols

The contracts this core consumes: identity verification, project lookup,
the generation backend, and the per-connection transport.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, Optional, Protocol, Union, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from .llm import LLMResponse


# Backends may return plain text or a response with usage stats
BackendResult = Union[str, "LLMResponse"]


@dataclass(frozen=True)
class RoomDescriptor:
    """A resolved project room."""
    id: str
    name: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@runtime_checkable
class IdentityVerifier(Protocol):
    """
    Verifies an auth token and returns its claims.

    Implementations raise ``Unauthorized`` on any failure.
    """

    def verify(self, token: str) -> Dict[str, Any]:
        ...


@runtime_checkable
class ProjectLookup(Protocol):
    """
    Resolves a well-formed project id to a room.

    Implementations raise ``RoomNotFound`` if no such project exists.
    """

    async def find_room(self, room_id: str) -> RoomDescriptor:
        ...


@runtime_checkable
class GenerationBackend(Protocol):
    """
    Protocol for code-generation backends.

    Supports returning either:
    - str: the raw reply text
    - LLMResponse: the reply with usage stats

    Sync and async implementations are both accepted.

    Example:
        class EchoBackend:
            async def complete(self, prompt: str, system_instruction: str) -> str:
                return '{"text": "echo"}'
    """

    def complete(
        self,
        prompt: str,
        system_instruction: str
    ) -> Union[BackendResult, Awaitable[BackendResult]]:
        ...


class Connection(ABC):
    """
    Abstract base class for one live transport link.

    The Registry only ever calls ``send``; the Gateway owns reading.

    Attributes:
        id: Unique identifier for this connection

    Example:
        class WebSocketConnection(Connection):
            async def send(self, event: str, data: Dict[str, Any]) -> None:
                await self.websocket.send_json({"event": event, "data": data})
    """

    id: str = ""

    @abstractmethod
    async def send(self, event: str, data: Dict[str, Any]) -> None:
        """
        Deliver one event to the remote peer.

        Raises:
            Any transport error; the Registry contains it
        """
        pass

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        """Close the underlying transport. No-op by default."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id='{self.id}')"
