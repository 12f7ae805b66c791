"""
Relay Server

FastAPI application exposing the relay over WebSocket.

Endpoints:
    GET  /                   Health check
    GET  /ai/get-result      Run one generation directly (bearer token required)
    WS   /ws?projectId=...   Join a project room (token in ``token`` query
                             parameter or ``Authorization: Bearer`` header)

Frames in both directions are {"event": "project-message", "data": {...}}.

Example:
    from roomrelay.config import RelayConfig
    from roomrelay.serve import create_app

    app = create_app(RelayConfig.from_env())
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .auth import JWTVerifier, token_from_handshake
from .config import RelayConfig
from .coordinator import GenerationCoordinator
from .errors import EmptyPrompt, RoomNotFound, Unauthorized, UpstreamError
from .gateway import ConnectionGateway
from .llm import LiteLLMBackend
from .projects import InMemoryProjectLookup
from .protocols import Connection, GenerationBackend, IdentityVerifier, ProjectLookup
from .registry import RoomRegistry
from .relay import Relay

logger = logging.getLogger("roomrelay.serve")


# Policy violation
HANDSHAKE_REJECTED = 1008


class WebSocketConnection(Connection):
    """Connection over a Starlette WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.id = str(uuid4())
        self.websocket = websocket
        self._send_lock = asyncio.Lock()

    async def send(self, event: str, data: Dict[str, Any]) -> None:
        async with self._send_lock:
            await self.websocket.send_json({"event": event, "data": data})

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        await self.websocket.close(code=code, reason=reason)

    async def frames(self) -> AsyncIterator[Any]:
        """Yield decoded inbound text frames until the peer disconnects."""
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

            text = message.get("text")
            if text is None:
                logger.warning(f"Ignoring binary frame on {self!r}")
                continue
            try:
                yield json.loads(text)
            except ValueError:
                logger.warning(f"Ignoring non-JSON frame on {self!r}")


@dataclass
class RelayServices:
    """
    Process-scoped relay state, built once at startup.

    Nothing in the package keeps module-level state; every component
    receives its collaborators here.
    """
    config: RelayConfig
    registry: RoomRegistry
    coordinator: GenerationCoordinator
    relay: Relay
    gateway: ConnectionGateway

    @classmethod
    async def create(
        cls,
        config: RelayConfig,
        backend: Optional[GenerationBackend] = None,
        verifier: Optional[IdentityVerifier] = None,
        projects: Optional[ProjectLookup] = None
    ) -> "RelayServices":
        """
        Wire the relay components together.

        Raises:
            ValueError: If no verifier is given and no JWT secret is configured
        """
        if verifier is None:
            if not config.jwt_secret:
                raise ValueError("JWT_SECRET must be set")
            verifier = JWTVerifier(config.jwt_secret, algorithms=config.jwt_algorithms)

        if projects is None:
            if config.projects_file:
                projects = await InMemoryProjectLookup.from_json_file(config.projects_file)
            else:
                logger.warning("No projects file configured, every room lookup will fail")
                projects = InMemoryProjectLookup()

        if backend is None:
            backend = LiteLLMBackend(
                model=config.model,
                temperature=config.temperature,
                max_tokens=config.max_tokens
            )

        registry = RoomRegistry(event=config.event)
        coordinator = GenerationCoordinator(
            backend,
            system_instruction=config.system_instruction,
            timeout=config.generation_timeout
        )
        relay = Relay(registry, coordinator, trigger=config.trigger)
        gateway = ConnectionGateway(verifier, projects, registry, relay, event=config.event)
        return cls(config, registry, coordinator, relay, gateway)

    async def close(self) -> None:
        await self.relay.shutdown(timeout=self.config.shutdown_timeout)
        await self.registry.close()


def create_app(
    config: Optional[RelayConfig] = None,
    backend: Optional[GenerationBackend] = None,
    verifier: Optional[IdentityVerifier] = None,
    projects: Optional[ProjectLookup] = None
) -> FastAPI:
    """
    Create the FastAPI application.

    Collaborators not given here are built from ``config``.
    """
    config = config or RelayConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = await RelayServices.create(config, backend=backend, verifier=verifier, projects=projects)
        app.state.services = services
        logger.info(f"Relay started (model={config.model}, trigger={config.trigger!r})")
        try:
            yield
        finally:
            await services.close()
            logger.info("Relay stopped")

    app = FastAPI(title="roomrelay", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/", response_class=PlainTextResponse)
    async def health() -> str:
        return "roomrelay is running"

    @app.get("/ai/get-result")
    async def get_result(request: Request, prompt: str = ""):
        services: RelayServices = request.app.state.services
        token = token_from_handshake({}, request.headers)
        try:
            services.gateway.verifier.verify(token or "")
        except Unauthorized:
            return JSONResponse({"message": "Unauthorized"}, status_code=401)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            return JSONResponse({"message": "Unauthorized"}, status_code=401)

        try:
            result = await services.coordinator.generate(prompt)
        except EmptyPrompt as e:
            return JSONResponse({"message": str(e)}, status_code=400)
        except UpstreamError as e:
            return JSONResponse({"message": str(e)}, status_code=502)
        return result.to_wire()

    @app.websocket("/ws")
    async def relay_socket(websocket: WebSocket):
        services: RelayServices = websocket.app.state.services
        connection = WebSocketConnection(websocket)
        token = token_from_handshake(websocket.query_params, websocket.headers)

        try:
            session = await services.gateway.authenticate(
                connection, token, websocket.query_params.get("projectId")
            )
        except (Unauthorized, RoomNotFound) as e:
            logger.info(f"Handshake rejected: {e}")
            await connection.close(code=HANDSHAKE_REJECTED, reason=str(e))
            return

        await websocket.accept()
        await services.gateway.register(session)
        await services.gateway.serve(session, connection.frames())

    return app
