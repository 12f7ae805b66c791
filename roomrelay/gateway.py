"""
Connection Gateway

Admits connections into rooms and runs their read loops.

A connection is authenticated once at handshake time, joins exactly one
room, and stays there until it disconnects.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from pydantic import ValidationError

from .errors import RoomNotFound, Unauthorized
from .projects import is_valid_object_id
from .protocols import Connection, IdentityVerifier, ProjectLookup, RoomDescriptor
from .registry import RoomRegistry
from .relay import Relay
from .state import MESSAGE_EVENT, MessageEnvelope

logger = logging.getLogger("roomrelay.gateway")


@dataclass
class Session:
    """A connection admitted into a room."""
    connection: Connection
    room: RoomDescriptor
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def room_id(self) -> str:
        return self.room.id

    @property
    def subject(self) -> str:
        """Identity of the connected user (the token's subject claim)."""
        for key in ("sub", "email", "_id", "id"):
            value = self.claims.get(key)
            if value:
                return str(value)
        return "anonymous"


class ConnectionGateway:
    """
    Handshake and read loop for relay connections.

    Args:
        verifier: Identity verification collaborator
        projects: Project lookup collaborator
        registry: Room registry the admitted connections join
        relay: Relay that receives inbound messages
        event: Event name carrying chat messages

    Example:
        session = await gateway.admit(connection, token, project_id)
        await gateway.serve(session, inbound_frames)
    """

    def __init__(
        self,
        verifier: IdentityVerifier,
        projects: ProjectLookup,
        registry: RoomRegistry,
        relay: Relay,
        event: str = MESSAGE_EVENT
    ):
        self.verifier = verifier
        self.projects = projects
        self.registry = registry
        self.relay = relay
        self.event = event

    async def admit(
        self,
        connection: Connection,
        token: Optional[str],
        room_id: Optional[str]
    ) -> Session:
        """
        Authenticate a connection and join it to its room.

        Nothing is registered unless every check passes.

        Raises:
            RoomNotFound: If the room id is malformed or unknown
            Unauthorized: If the token is missing or fails verification
        """
        session = await self.authenticate(connection, token, room_id)
        await self.register(session)
        return session

    async def authenticate(
        self,
        connection: Connection,
        token: Optional[str],
        room_id: Optional[str]
    ) -> Session:
        """
        Resolve the room and verify the token without registering anything.

        Raises:
            RoomNotFound: If the room id is malformed or unknown
            Unauthorized: If the token is missing or fails verification
        """
        if not is_valid_object_id(room_id):
            raise RoomNotFound("Invalid projectId")
        room = await self.projects.find_room(room_id)

        if not token:
            raise Unauthorized("Unauthorized")
        try:
            claims = self.verifier.verify(token)
        except Unauthorized:
            raise
        except Exception as e:
            raise Unauthorized("Unauthorized") from e
        if not claims:
            raise Unauthorized("Unauthorized")

        return Session(connection=connection, room=room, claims=claims)

    async def register(self, session: Session) -> None:
        """Make an authenticated session a broadcast target."""
        await self.registry.join(session.room_id, session.connection)
        logger.info(f"{session.subject} connected to room {session.room_id}")

    def parse_frame(self, session: Session, frame: Any) -> Optional[MessageEnvelope]:
        """
        Turn one inbound frame into an envelope.

        Frames look like {"event": "project-message", "data": {...}}.
        Frames on other events, and invalid payloads, yield None.
        """
        if not isinstance(frame, dict) or frame.get("event") != self.event:
            logger.debug(f"Ignoring frame from {session.connection!r}")
            return None

        data = frame.get("data")
        if not isinstance(data, dict):
            logger.warning(f"Dropping malformed message from {session.subject}")
            return None

        try:
            return MessageEnvelope.from_client(data, sender=session.subject)
        except ValidationError as e:
            logger.warning(f"Dropping invalid message from {session.subject}: {e}")
            return None

    async def serve(self, session: Session, inbound: AsyncIterator[Any]) -> None:
        """
        Run the read loop for one session until the peer disconnects.

        The session always leaves its room on exit, including when the
        loop task is cancelled.
        """
        try:
            async for frame in inbound:
                envelope = self.parse_frame(session, frame)
                if envelope is not None:
                    await self.relay.handle_message(session, envelope)
        finally:
            await self.registry.leave(session.room_id, session.connection)
            logger.info(f"{session.subject} disconnected from room {session.room_id}")
