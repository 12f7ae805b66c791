"""
LiteLLM Integration

Generation backend built on LiteLLM, so any supported provider (Gemini,
OpenAI, Anthropic, Ollama, ...) can answer room prompts.

Example:
    from roomrelay.llm import LiteLLMBackend
    from roomrelay.coordinator import GenerationCoordinator

    backend = LiteLLMBackend(model="gemini/gemini-1.5-flash", temperature=0.4)
    coordinator = GenerationCoordinator(backend, system_instruction="...")
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger("roomrelay.llm")


@dataclass
class LLMUsage:
    """Token usage for a single completion."""
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class LLMResponse:
    """A completion with optional usage statistics."""
    content: str
    usage: Optional[LLMUsage] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class LiteLLMBackend:
    """
    Generation backend using LiteLLM.

    Args:
        model: Model identifier (e.g., "gemini/gemini-1.5-flash", "gpt-4o")
        api_key: Optional API key (auto-detects from environment by default)
        fallback_models: List of fallback models if primary fails
        temperature: Sampling temperature
        max_tokens: Maximum tokens in response
        json_mode: Ask the provider for a JSON response format
        **kwargs: Additional LiteLLM parameters

    Environment Variables:
        GEMINI_API_KEY: For Gemini models
        OPENAI_API_KEY: For OpenAI models
        See LiteLLM docs for full list

    Note:
        The request timeout is enforced by GenerationCoordinator, not here.
    """

    def __init__(
        self,
        model: str = "gemini/gemini-1.5-flash",
        api_key: Optional[str] = None,
        fallback_models: Optional[List[str]] = None,
        temperature: float = 0.4,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
        **kwargs: Any
    ):
        self.model = model
        self.api_key = api_key
        self.fallback_models = fallback_models or []
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.json_mode = json_mode
        self.kwargs = kwargs

    def _build_messages(self, prompt: str, system_instruction: str) -> List[Dict[str, str]]:
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def complete(self, prompt: str, system_instruction: str = "") -> LLMResponse:
        """
        Generate a reply asynchronously.

        Args:
            prompt: The user prompt (trigger already stripped)
            system_instruction: Static instruction fixed at startup

        Returns:
            LLMResponse with content and usage stats
        """
        import litellm

        params: Dict[str, Any] = dict(self.kwargs)
        if self.api_key:
            params["api_key"] = self.api_key
        if self.json_mode:
            params["response_format"] = {"type": "json_object"}
        if self.fallback_models:
            params["fallbacks"] = self.fallback_models

        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=self._build_messages(prompt, system_instruction),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                **params
            )
        except Exception as e:
            logger.error(f"LiteLLM generation error: {e}")
            raise

        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=response.choices[0].message.content or "",
            usage=LLMUsage(
                input_tokens=usage.prompt_tokens,
                output_tokens=usage.completion_tokens,
                model=response.model
            ) if usage else None,
            metadata={"finish_reason": response.choices[0].finish_reason}
        )

    def __repr__(self) -> str:
        fallbacks = f", fallbacks={self.fallback_models}" if self.fallback_models else ""
        return f"LiteLLMBackend(model={self.model!r}{fallbacks})"
