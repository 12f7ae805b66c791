"""
Project Lookup

Resolves project ids to rooms. The real project store lives elsewhere;
this module provides the id format check and an in-memory lookup for
standalone deployments and tests.
"""

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .errors import RoomNotFound
from .protocols import RoomDescriptor

logger = logging.getLogger("roomrelay.projects")


_OBJECT_ID = re.compile(r"^[0-9a-fA-F]{24}$")


def is_valid_object_id(value: Any) -> bool:
    """Check that an id is in the external 24-hex-digit format."""
    return isinstance(value, str) and bool(_OBJECT_ID.match(value))


class InMemoryProjectLookup:
    """
    Project lookup backed by a dict of id -> project name.

    Args:
        projects: Initial projects, either {id: name} or {id: {"name": ...}}

    Example:
        lookup = InMemoryProjectLookup({"64b7f0c2a1e4d93b8c0f1a2b": "demo"})
        room = await lookup.find_room("64b7f0c2a1e4d93b8c0f1a2b")
    """

    def __init__(self, projects: Optional[Mapping[str, Any]] = None):
        self._projects: Dict[str, RoomDescriptor] = {}
        for project_id, value in (projects or {}).items():
            self.add(project_id, value)

    def add(self, project_id: str, value: Union[str, Mapping[str, Any], None] = None) -> RoomDescriptor:
        """
        Register a project.

        Raises:
            ValueError: If the id is not well-formed
        """
        if not is_valid_object_id(project_id):
            raise ValueError(f"Invalid project id: {project_id!r}")

        if isinstance(value, Mapping):
            metadata = dict(value)
            name = str(metadata.pop("name", ""))
        else:
            metadata = {}
            name = value or ""

        room = RoomDescriptor(id=project_id.lower(), name=name, metadata=metadata)
        self._projects[room.id] = room
        return room

    async def find_room(self, room_id: str) -> RoomDescriptor:
        """
        Resolve a project id.

        Raises:
            RoomNotFound: If the id is malformed or unknown
        """
        if not is_valid_object_id(room_id):
            raise RoomNotFound("Invalid projectId")

        room = self._projects.get(room_id.lower())
        if room is None:
            raise RoomNotFound("Project not found")
        return room

    @classmethod
    async def from_json_file(cls, path: Union[str, Path]) -> "InMemoryProjectLookup":
        """
        Load projects from a JSON file.

        Accepts either an object {id: name | {...}} or a list of objects
        with ``_id``/``id`` and ``name`` keys.
        """
        path = Path(path)

        def _read_file():
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)

        data = await asyncio.to_thread(_read_file)

        if isinstance(data, list):
            data = {
                str(item.get("_id") or item.get("id")): item
                for item in data
                if isinstance(item, dict)
            }
        if not isinstance(data, dict):
            raise ValueError(f"Projects file must hold an object or a list: {path}")

        lookup = cls(data)
        logger.info(f"Loaded {len(lookup)} project(s) from {path}")
        return lookup

    def __contains__(self, project_id: str) -> bool:
        return isinstance(project_id, str) and project_id.lower() in self._projects

    def __len__(self) -> int:
        return len(self._projects)
