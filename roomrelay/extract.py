"""
Structured-Response Extractor

Turns raw model output into text, a file tree, and build/start commands.

The backend is asked for a JSON envelope but frequently returns broken
escaping, stray code fences, or truncated output. Extraction walks a
fallback chain and never raises:

1. Strip a code fence wrapping the whole reply
2. Strict JSON parse of the envelope
3. Regex recovery of the ``text`` field, plus isolated recovery of
   ``fileTree`` (and the commands) with a brace-matching scanner
4. The raw reply as plain text

Example:
    result = extract('```json\\n{"text": "ok"}\\n```')
    assert result.text == "ok"
"""

import json
import logging
import re
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from .state import Command, ExtractionResult, clean_file_tree

logger = logging.getLogger("roomrelay.extract")


_FENCE_OPEN = re.compile(r'^```[\w+-]*[ \t]*\n?')
_TEXT_FIELD = re.compile(r'"text"\s*:\s*"((?:[^"\\]|\\.)*)"')


class ScanState(str, Enum):
    """States of the brace-matching scanner."""
    NORMAL = "normal"
    IN_STRING = "in_string"
    ESCAPED = "escaped"


class BraceScanner:
    """
    Finds the end of a JSON object embedded in untrusted text.

    Braces are counted only in the NORMAL state. A quote toggles between
    NORMAL and IN_STRING; a backslash inside a string moves to ESCAPED,
    which consumes exactly one character and returns to IN_STRING.

    Example:
        scanner = BraceScanner()
        end = scanner.scan('{"a": "}"} trailing')
        # end == 10
    """

    def __init__(self):
        self.state = ScanState.NORMAL
        self.depth = 0

    def reset(self) -> None:
        self.state = ScanState.NORMAL
        self.depth = 0

    def feed(self, char: str) -> bool:
        """
        Advance by one character.

        Returns:
            True when this character closes the outermost object
        """
        if self.state is ScanState.ESCAPED:
            self.state = ScanState.IN_STRING
            return False

        if self.state is ScanState.IN_STRING:
            if char == "\\":
                self.state = ScanState.ESCAPED
            elif char == '"':
                self.state = ScanState.NORMAL
            return False

        if char == '"':
            self.state = ScanState.IN_STRING
        elif char == "{":
            self.depth += 1
        elif char == "}" and self.depth > 0:
            self.depth -= 1
            return self.depth == 0
        return False

    def scan(self, text: str, start: int = 0) -> Optional[int]:
        """
        Scan ``text`` from ``start`` until the outermost object closes.

        Returns:
            Index one past the closing brace, or None if it never closes
        """
        self.reset()
        for i in range(start, len(text)):
            if self.feed(text[i]):
                return i + 1
        return None


def strip_fences(raw: str) -> str:
    """
    Remove a code fence wrapping the whole reply.

    Handles both ```json ... ``` and bare ``` ... ```. Text that is not
    wrapped end to end is returned trimmed but otherwise untouched.
    """
    text = raw.strip()
    if len(text) >= 6 and text.startswith("```") and text.endswith("```"):
        inner = text[:-3]
        inner = _FENCE_OPEN.sub("", inner, count=1)
        return inner.strip()
    return text


def unescape_text(value: str) -> str:
    r"""Undo JSON escaping in the order \" then \\ then \n then \t."""
    return (
        value.replace('\\"', '"')
        .replace("\\\\", "\\")
        .replace("\\n", "\n")
        .replace("\\t", "\t")
    )


def find_object_span(raw: str, key: str) -> Optional[Tuple[int, int]]:
    """
    Locate the object value of ``"key"`` in raw text.

    Skips to the first ``:`` after the key, then runs a BraceScanner from
    the first ``{``. Only whitespace may sit between the colon and the
    opening brace.

    Returns:
        (start, end) slice bounds of the object, or None
    """
    key_at = raw.find(f'"{key}"')
    if key_at == -1:
        return None

    colon = raw.find(":", key_at + len(key) + 2)
    if colon == -1:
        return None

    start = colon + 1
    while start < len(raw) and raw[start].isspace():
        start += 1
    if start >= len(raw) or raw[start] != "{":
        return None

    end = BraceScanner().scan(raw, start)
    if end is None:
        return None
    return start, end


def extract_object(raw: str, key: str) -> Optional[Dict[str, Any]]:
    """
    Recover the object value of ``key`` even if the outer JSON is broken.

    Returns:
        The parsed object, or None if it cannot be found or parsed
    """
    span = find_object_span(raw, key)
    if span is None:
        return None

    try:
        value = json.loads(raw[span[0]:span[1]])
    except (ValueError, RecursionError) as e:
        logger.debug(f"Could not parse isolated {key}: {e}")
        return None
    return value if isinstance(value, dict) else None


def _to_command(value: Any) -> Optional[Command]:
    if not isinstance(value, dict):
        return None
    try:
        return Command.model_validate(value)
    except ValidationError as e:
        logger.debug(f"Discarding malformed command: {e}")
        return None


def _parse_strict(cleaned: str) -> Optional[ExtractionResult]:
    try:
        data = json.loads(cleaned)
    except (ValueError, RecursionError) as e:
        logger.debug(f"Reply is not valid JSON: {e}")
        return None

    if not isinstance(data, dict):
        return None
    text = data.get("text")
    if not isinstance(text, str) or not text:
        logger.debug("No text field in JSON reply")
        return None

    return ExtractionResult(
        text=text.replace("\\n", "\n"),
        file_tree=clean_file_tree(data.get("fileTree")),
        build_command=_to_command(data.get("buildCommand")),
        start_command=_to_command(data.get("startCommand")),
    )


def _parse_fallback(raw: str) -> Optional[ExtractionResult]:
    match = _TEXT_FIELD.search(raw)
    if not match or not match.group(1):
        return None

    logger.debug("Recovered text with regex fallback")
    file_tree = clean_file_tree(extract_object(raw, "fileTree"))
    if file_tree is not None:
        logger.debug("Recovered isolated fileTree")

    return ExtractionResult(
        text=unescape_text(match.group(1)),
        file_tree=file_tree,
        build_command=_to_command(extract_object(raw, "buildCommand")),
        start_command=_to_command(extract_object(raw, "startCommand")),
    )


def extract(raw: Optional[str]) -> ExtractionResult:
    """
    Normalize a raw model reply into an ExtractionResult.

    Never raises. The worst case is the whole reply returned as text.

    Args:
        raw: The unprocessed backend reply

    Returns:
        ExtractionResult with non-null text
    """
    raw = raw if isinstance(raw, str) else ""

    try:
        result = _parse_strict(strip_fences(raw))
        if result is None:
            result = _parse_fallback(raw)
        if result is not None:
            return result
    except Exception as e:
        logger.warning(f"Extraction failed, returning raw reply: {e}")

    logger.debug("Returning raw reply as plain text")
    return ExtractionResult(text=raw)
