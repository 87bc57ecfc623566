"""Text cleaning utilities for scraped labels and section bodies."""

import re

TERMINAL_PREFIXES = ("repealed", "inoperative")


def collapse_whitespace(text: str) -> str:
    """Collapse every whitespace run (including newlines) to one space."""
    return re.sub(r"\s+", " ", text).strip()


def join_text_nodes(nodes) -> str:
    """Join DOM text nodes with single spaces, dropping blank ones."""
    parts = []
    for node in nodes:
        text = str(node).strip()
        if text:
            parts.append(text)
    return " ".join(parts)


def clean_section_number(number: str) -> str:
    """Normalize a section number (strip 'Section'/'§' prefix, extra whitespace)."""
    number = number.replace("§", "")
    number = re.sub(r"^\s*section\s+", "", number, flags=re.IGNORECASE)
    return collapse_whitespace(number)


def is_terminal_title(title: str | None) -> bool:
    """True for section titles marking a repealed or inoperative section."""
    if not title:
        return False
    return title.strip().lower().startswith(TERMINAL_PREFIXES)
