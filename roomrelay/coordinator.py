"""
Generation Coordinator

Wraps the external generation call: prompt validation, timeout, error
containment, and normalization of the reply through the extractor.
"""

import asyncio
import logging
from typing import Optional

from .errors import EmptyPrompt, UpstreamError
from .extract import extract
from .llm import LLMResponse
from .protocols import BackendResult, GenerationBackend
from .state import ExtractionResult

logger = logging.getLogger("roomrelay.coordinator")


DEGRADED_TEXT = "Sorry, I encountered an error while processing your request."


def degraded_result() -> ExtractionResult:
    """The fixed reply shown to the room when generation fails."""
    return ExtractionResult(text=DEGRADED_TEXT)


class GenerationCoordinator:
    """
    Invokes the generation backend and normalizes its output.

    Stateless per call; many generations may be in flight at once.

    Args:
        backend: Any GenerationBackend (sync or async)
        system_instruction: Static instruction fixed at process start
        timeout: Seconds before the call is abandoned as an UpstreamError

    Example:
        coordinator = GenerationCoordinator(LiteLLMBackend(), SYSTEM_INSTRUCTION)
        result = await coordinator.generate("Create an express server")
    """

    def __init__(
        self,
        backend: GenerationBackend,
        system_instruction: str = "",
        timeout: Optional[float] = 60.0
    ):
        self.backend = backend
        self.system_instruction = system_instruction
        self.timeout = timeout

    async def _call_backend(self, prompt: str) -> BackendResult:
        result = self.backend.complete(prompt, self.system_instruction)
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            return await result
        return result

    async def complete_raw(self, prompt: str) -> str:
        """
        Call the backend and return its raw reply text.

        Raises:
            EmptyPrompt: If the trimmed prompt is empty
            UpstreamError: If the backend fails or times out
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise EmptyPrompt("Empty prompt provided")

        logger.debug(f"Generating reply for prompt: {prompt[:100]}")
        try:
            response = await asyncio.wait_for(self._call_backend(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Generation timed out after {self.timeout}s")
            raise UpstreamError(f"AI service error: timed out after {self.timeout}s") from e
        except Exception as e:
            logger.error(f"Generation failed: {e}")
            raise UpstreamError(f"AI service error: {e}") from e

        # Handle LLMResponse or plain string
        if isinstance(response, LLMResponse):
            if response.usage:
                logger.debug(
                    f"Usage: {response.usage.input_tokens} in / "
                    f"{response.usage.output_tokens} out, "
                    f"{response.usage.total_tokens} total ({response.usage.model})"
                )
            return response.content
        if isinstance(response, str):
            return response
        raise UpstreamError(f"AI service error: unexpected reply type {type(response).__name__}")

    async def generate(self, prompt: str) -> ExtractionResult:
        """
        Generate a structured reply for a prompt.

        Raises:
            EmptyPrompt: If the trimmed prompt is empty
            UpstreamError: If the backend fails or times out
        """
        raw = await self.complete_raw(prompt)
        result = extract(raw)
        logger.debug(f"Extracted reply (structured={result.is_structured})")
        return result
