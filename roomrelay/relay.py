"""
Relay

Dispatches inbound chat messages to their room and routes trigger-bearing
messages to the generation coordinator.

Per message:
1. Broadcast: the human message goes to the room immediately
2. Trigger check: no trigger token means we are done
3. Generate: the prompt is handed to the coordinator in its own task
4. Respond: the result (or the degraded reply) is broadcast as "AI"
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Optional, Set

from .coordinator import GenerationCoordinator, degraded_result
from .errors import EmptyPrompt, UpstreamError
from .registry import RoomRegistry
from .state import MessageEnvelope

if TYPE_CHECKING:
    from .gateway import Session

logger = logging.getLogger("roomrelay")


DEFAULT_TRIGGER = "@ai"


def extract_prompt(text: str, trigger: str = DEFAULT_TRIGGER) -> Optional[str]:
    """
    Return the prompt carried by a message, or None without a trigger.

    The first occurrence of the trigger is removed and the rest trimmed,
    so a bare trigger yields an empty string.
    """
    if trigger not in text:
        return None
    return text.replace(trigger, "", 1).strip()


class Relay:
    """
    Fans chat messages out to rooms and answers AI requests.

    Generation runs in independent tasks so that a slow backend never
    holds up the read loop of any connection. The raw message is always
    broadcast before its generation task is created, which orders every
    AI reply after the message that triggered it.

    Disconnecting does not cancel a generation; the reply still goes to
    whoever is in the room when it completes.

    Args:
        registry: Room membership and fan-out
        coordinator: Generation coordinator
        trigger: Token that marks a message as an AI request
        on_reply: Optional callback called with (room_id, envelope) after
            each AI reply is broadcast

    Example:
        relay = Relay(registry, coordinator)
        await relay.handle_message(session, envelope)
        await relay.shutdown()
    """

    def __init__(
        self,
        registry: RoomRegistry,
        coordinator: GenerationCoordinator,
        trigger: str = DEFAULT_TRIGGER,
        on_reply: Optional[Callable[[str, MessageEnvelope], None]] = None
    ):
        self.registry = registry
        self.coordinator = coordinator
        self.trigger = trigger
        self.on_reply = on_reply
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of generations still in flight."""
        return len(self._tasks)

    async def handle_message(self, session: "Session", envelope: MessageEnvelope) -> Optional[asyncio.Task]:
        """
        Relay one inbound message.

        Returns:
            The spawned generation task, or None if no generation started
        """
        room_id = session.room_id
        logger.debug(f"Message {envelope.id} from {envelope.sender} in room {room_id}")

        await self.registry.broadcast(room_id, envelope)

        prompt = extract_prompt(envelope.text, self.trigger)
        if prompt is None:
            return None
        if not prompt:
            logger.debug(f"Message {envelope.id} has an empty prompt, ignoring")
            return None

        logger.info(f"AI request in room {room_id} from {session.subject}")
        task = asyncio.create_task(
            self._respond(room_id, prompt),
            name=f"generate-{envelope.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _respond(self, room_id: str, prompt: str) -> Optional[MessageEnvelope]:
        try:
            try:
                result = await self.coordinator.generate(prompt)
            except EmptyPrompt:
                logger.debug("Empty prompt, no reply")
                return None
            except UpstreamError as e:
                logger.warning(f"Sending degraded reply to room {room_id}: {e}")
                result = degraded_result()

            reply = MessageEnvelope.from_ai(result)
            delivered = await self.registry.broadcast(room_id, reply)
            logger.debug(f"AI reply {reply.id} delivered to {delivered} member(s)")

            if self.on_reply:
                self.on_reply(room_id, reply)
            return reply
        except Exception:
            logger.exception(f"AI reply for room {room_id} failed")
            return None

    async def drain(self) -> None:
        """Wait for every in-flight generation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """
        Stop the relay, giving in-flight generations ``timeout`` seconds
        before they are cancelled.
        """
        if not self._tasks:
            return

        logger.info(f"Waiting for {len(self._tasks)} generation(s)")
        done, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} generation(s) at shutdown")
            await asyncio.gather(*pending, return_exceptions=True)
