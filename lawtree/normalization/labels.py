"""Pattern-with-fallback parsing of hierarchy labels.

Every structural level of the code labels its nodes with a raw string such as
``"Title IV Public Health"``. One declarative pattern per level pulls out the
node id and display name; when a label does not match, the positional
fallback takes the second whitespace-separated token as the id and the rest
as the name, so a malformed label never aborts a node.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LabelPattern:
    """A level-specific label pattern.

    ``regex`` must define the named groups ``id`` and ``name``.
    """

    level: str
    regex: re.Pattern

    def __post_init__(self):
        missing = {"id", "name"} - set(self.regex.groupindex)
        if missing:
            raise ValueError(f"{self.level} pattern lacks groups: {sorted(missing)}")


@dataclass(frozen=True)
class ParsedLabel:
    id: str
    name: str
    fallback: bool = False


PART_PATTERN = LabelPattern(
    "part",
    re.compile(r"Part\s+(?P<id>[IVX]+)\s+(?P<name>.*?)(?:\s+Chapters\.\s+(?P<range>\d+-\d+)|$)", re.DOTALL),
)
TITLE_PATTERN = LabelPattern(
    "title",
    re.compile(r"Title\s+(?P<id>[IVX]+)\s+(?P<name>.*?)(?:\n|$)"),
)
CHAPTER_PATTERN = LabelPattern(
    "chapter",
    re.compile(r"Chapter\s+(?P<id>[\dA-Z]+)\s+(?P<name>.*)"),
)


def positional_fallback(text: str) -> ParsedLabel:
    """Split on whitespace runs; second token is the id, the remainder the name.

    A leading whitespace run produces an empty first token, so
    ``"   Weird Label 42"`` yields id ``"Weird"``. A single-token label uses
    that token as its id; only an empty label gets an empty id.
    """
    tokens = re.split(r"\s+", text)
    label_id = tokens[1] if len(tokens) > 1 else ""
    if not label_id:
        label_id = next((t for t in tokens if t), text.strip())
    name = " ".join(t for t in tokens[2:] if t)
    return ParsedLabel(id=label_id, name=name or text.strip(), fallback=True)


def parse_label(text: str, pattern: LabelPattern) -> ParsedLabel:
    """Parse ``text`` with ``pattern``, degrading to the positional fallback."""
    match = pattern.regex.search(text or "")
    if match and match.group("id"):
        return ParsedLabel(id=match.group("id"), name=match.group("name").strip())

    parsed = positional_fallback(text or "")
    logger.debug("%s label %r did not match, fell back to %r", pattern.level, text, parsed)
    return parsed


def parse_part(text: str) -> ParsedLabel:
    return parse_label(text, PART_PATTERN)


def parse_title(text: str) -> ParsedLabel:
    return parse_label(text, TITLE_PATTERN)


def parse_chapter(text: str) -> ParsedLabel:
    return parse_label(text, CHAPTER_PATTERN)
