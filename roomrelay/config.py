"""
Relay Configuration

Settings are read once at process start from the environment (and a
``.env`` file, if present).
"""

import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field

from .prompts import SYSTEM_INSTRUCTION
from .relay import DEFAULT_TRIGGER
from .state import MESSAGE_EVENT

DEV_ORIGINS = ["http://localhost:5173"]


def parse_origins(value: Optional[str], production: bool = False) -> List[str]:
    """Split a comma-separated origin list, falling back to localhost in development."""
    if value:
        return [origin.strip() for origin in value.split(",") if origin.strip()]
    return [] if production else list(DEV_ORIGINS)


class RelayConfig(BaseModel):
    """
    Process-wide settings for the relay server.

    Example:
        config = RelayConfig.from_env()
        app = create_app(config)
    """
    jwt_secret: str = Field(default="", description="Shared secret for token verification")
    jwt_algorithms: List[str] = Field(default_factory=lambda: ["HS256"])

    model: str = Field(default="gemini/gemini-1.5-flash", description="LiteLLM model identifier")
    temperature: float = 0.4
    max_tokens: Optional[int] = None
    generation_timeout: float = Field(default=60.0, gt=0, description="Seconds per generation call")
    system_instruction: str = SYSTEM_INSTRUCTION

    trigger: str = Field(default=DEFAULT_TRIGGER, min_length=1)
    event: str = MESSAGE_EVENT
    projects_file: Optional[str] = Field(default=None, description="JSON file of known projects")

    cors_origins: List[str] = Field(default_factory=lambda: list(DEV_ORIGINS))
    shutdown_timeout: float = 5.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "RelayConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            dotenv: Load a .env file into os.environ first
        """
        if environ is None:
            if dotenv:
                from dotenv import load_dotenv
                load_dotenv()
            environ = os.environ

        env = environ.get("ROOMRELAY_ENV") or environ.get("NODE_ENV") or "development"
        max_tokens = environ.get("ROOMRELAY_MAX_TOKENS")
        algorithms = environ.get("JWT_ALGORITHM", "HS256")

        return cls(
            jwt_secret=environ.get("JWT_SECRET", ""),
            jwt_algorithms=[a.strip() for a in algorithms.split(",") if a.strip()],
            model=environ.get("ROOMRELAY_MODEL", cls.model_fields["model"].default),
            temperature=float(environ.get("ROOMRELAY_TEMPERATURE", "0.4")),
            max_tokens=int(max_tokens) if max_tokens else None,
            generation_timeout=float(environ.get("ROOMRELAY_TIMEOUT", "60")),
            trigger=environ.get("ROOMRELAY_TRIGGER", DEFAULT_TRIGGER),
            projects_file=environ.get("ROOMRELAY_PROJECTS_FILE") or None,
            cors_origins=parse_origins(environ.get("FRONTEND_URLS"), production=(env == "production")),
        )
