"""Tests for pattern-with-fallback label parsing and text cleaning."""

from __future__ import annotations

import re

import pytest

from lawtree.normalization.labels import (
    LabelPattern,
    ParsedLabel,
    parse_chapter,
    parse_part,
    parse_title,
    positional_fallback,
)
from lawtree.normalization.text_cleaner import (
    clean_section_number,
    collapse_whitespace,
    is_terminal_title,
    join_text_nodes,
)


class TestLevelPatterns:
    def test_title(self):
        assert parse_title("Title IV Public Health") == ParsedLabel(id="IV", name="Public Health")

    def test_title_name_stops_at_newline(self):
        parsed = parse_title("Title II\n    EXECUTIVE OFFICERS\n    Chapters 6-28")
        assert parsed == ParsedLabel(id="II", name="EXECUTIVE OFFICERS")

    def test_part_with_chapter_range(self):
        parsed = parse_part("Part I ADMINISTRATION OF THE GOVERNMENT Chapters. 1-182")
        assert parsed == ParsedLabel(id="I", name="ADMINISTRATION OF THE GOVERNMENT")

    def test_part_without_chapter_range(self):
        assert parse_part("Part V THE COMMONWEALTH") == ParsedLabel(id="V", name="THE COMMONWEALTH")

    def test_chapter_alphanumeric(self):
        parsed = parse_chapter("Chapter 6A Executive Office for Administration")
        assert parsed == ParsedLabel(id="6A", name="Executive Office for Administration")


class TestFallback:
    def test_malformed_label_uses_positions(self):
        parsed = parse_title("   Weird Label 42")
        assert (parsed.id, parsed.name) == ("Weird", "Label 42")
        assert parsed.fallback is True

    def test_chapter_label_without_keyword(self):
        parsed = parse_chapter("Ch. 12 Something Odd")
        assert (parsed.id, parsed.name) == ("12", "Something Odd")

    def test_single_token_is_id_and_name(self):
        assert positional_fallback("Orphan") == ParsedLabel(id="Orphan", name="Orphan", fallback=True)

    def test_single_token_with_trailing_space(self):
        assert positional_fallback("Orphan ").id == "Orphan"

    def test_empty_label(self):
        assert parse_part("") == ParsedLabel(id="", name="", fallback=True)


def test_pattern_requires_id_and_name_groups():
    with pytest.raises(ValueError):
        LabelPattern("broken", re.compile(r"Title (?P<id>\w+)"))


class TestTextCleaner:
    def test_collapse_whitespace(self):
        assert collapse_whitespace("  Chapter 1\n\t Jurisdiction  ") == "Chapter 1 Jurisdiction"

    def test_clean_section_number(self):
        assert clean_section_number(" Section  4B ") == "4B"
        assert clean_section_number("§ 12") == "12"

    def test_join_text_nodes_drops_blank(self):
        assert join_text_nodes(["  first ", "\n  ", "second"]) == "first second"

    @pytest.mark.parametrize("title,expected", [
        ("Repealed, 1990, 12", True),
        ("  REPEALED", True),
        ("Inoperative", True),
        ("Definitions", False),
        ("", False),
        (None, False),
    ])
    def test_is_terminal_title(self, title, expected):
        assert is_terminal_title(title) is expected
