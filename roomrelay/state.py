"""
Relay State Models

The message shapes exchanged over the relay.
All envelopes are typed, frozen Pydantic models broadcast by value.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


AI_SENDER = "AI"
MESSAGE_EVENT = "project-message"

# Recursive {segment: {"file": {"contents": str}} | FileTree}
FileTree = Dict[str, Any]

_AI_ONLY_FIELDS = frozenset({
    "fileTree", "buildCommand", "startCommand",
    "file_tree", "build_command", "start_command",
})


def generate_id() -> str:
    """Return a new collision-resistant message id."""
    return str(uuid4())


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Format a local wall-clock time as HH:MM."""
    return (moment or datetime.now()).strftime("%H:%M")


def is_file_node(node: Any) -> bool:
    """Check whether a tree node is a file leaf with string contents."""
    if not isinstance(node, dict) or "file" not in node:
        return False
    file = node["file"]
    return isinstance(file, dict) and isinstance(file.get("contents"), str)


def clean_file_tree(tree: Any) -> Optional[FileTree]:
    """
    Return a file tree in which every leaf carries a ``contents`` string.

    Well-formed nodes are kept unchanged. Entries that are neither a file
    leaf nor a directory mapping are dropped.

    Returns:
        The cleaned tree, or None if ``tree`` is not a mapping
    """
    if not isinstance(tree, dict):
        return None

    cleaned: FileTree = {}
    for name, node in tree.items():
        if is_file_node(node):
            cleaned[name] = node
        elif isinstance(node, dict):
            cleaned[name] = clean_file_tree(node)
    return cleaned


class Command(BaseModel):
    """
    A program name and its argument list.

    Examples:
        - Command(mainItem="npm", commands=["install"])
        - Command(mainItem="node", commands=["app.js"])
    """
    main_item: str = Field(..., alias="mainItem", description="Program to run")
    commands: List[str] = Field(default_factory=list, description="Ordered arguments")

    model_config = {"populate_by_name": True, "frozen": True}


class ExtractionResult(BaseModel):
    """
    Structured content recovered from a model reply.

    Produced exactly once per AI invocation and never mutated.
    """
    text: str = Field(..., description="Human-readable reply")
    file_tree: Optional[FileTree] = Field(default=None, alias="fileTree")
    build_command: Optional[Command] = Field(default=None, alias="buildCommand")
    start_command: Optional[Command] = Field(default=None, alias="startCommand")

    model_config = {"populate_by_name": True, "frozen": True}

    @property
    def is_structured(self) -> bool:
        """True when any structured field was recovered."""
        return any(v is not None for v in (self.file_tree, self.build_command, self.start_command))

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class MessageEnvelope(BaseModel):
    """
    The unit message exchanged over the relay.

    Human messages carry only id/text/sender/timestamp. AI replies may add
    a file tree and build/start commands.

    Examples:
        - MessageEnvelope(text="hi @ai", sender="alice@example.com")
        - MessageEnvelope.from_ai(result)
    """
    id: str = Field(default_factory=generate_id)
    text: str = Field(..., description="Human- or AI-authored content")
    sender: str = Field(..., description="Identity string or 'AI'")
    timestamp: str = Field(default_factory=format_timestamp, description="HH:MM")
    file_tree: Optional[FileTree] = Field(default=None, alias="fileTree")
    build_command: Optional[Command] = Field(default=None, alias="buildCommand")
    start_command: Optional[Command] = Field(default=None, alias="startCommand")

    model_config = {"populate_by_name": True, "frozen": True}

    @classmethod
    def from_client(cls, payload: Dict[str, Any], sender: Optional[str] = None) -> "MessageEnvelope":
        """
        Validate an inbound chat payload.

        Missing ``id``/``timestamp`` are assigned by the server. ``sender``
        fills in the sender when the client did not provide one, and
        replaces a client claiming to be the AI. Structured AI fields are
        never accepted from clients.

        Raises:
            pydantic.ValidationError: If the payload has no usable text
        """
        data = {k: v for k, v in payload.items() if v is not None and k not in _AI_ONLY_FIELDS}
        if sender and data.get("sender") in (None, "", AI_SENDER):
            data["sender"] = sender
        if not data.get("id"):
            data.pop("id", None)
        if not data.get("timestamp"):
            data.pop("timestamp", None)
        return cls.model_validate(data)

    @classmethod
    def from_ai(cls, result: ExtractionResult) -> "MessageEnvelope":
        """Wrap an extraction result into a fresh AI envelope."""
        return cls(
            text=result.text,
            sender=AI_SENDER,
            file_tree=result.file_tree,
            build_command=result.build_command,
            start_command=result.start_command,
        )

    @property
    def is_ai(self) -> bool:
        return self.sender == AI_SENDER

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with camelCase names, omitting absent optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
