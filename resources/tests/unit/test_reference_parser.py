"""
Unit tests for the reference parser.

Tests extraction of [[target]] and [[target|display]] references, rejection of
malformed bracket sequences, offsets and line numbers, and reference rewriting.
"""

import pytest
from pydantic import ValidationError

from enkidu.services.links.parser import (
    create_reference_literal,
    extract_references,
    is_valid_reference_literal,
    parse_one,
    rewrite_references,
)


class TestExtractReferences:
    """Test suite for extract_references."""

    def test_plain_and_display_references(self):
        """Test a bare reference and one with display text on one line."""
        text = "[[a]] mid [[b|B]]"

        references = extract_references(text)

        assert len(references) == 2
        assert references[0].target == "a"
        assert references[0].display_text is None
        assert references[1].target == "b"
        assert references[1].display_text == "B"
        assert [ref.line for ref in references] == [1, 1]

    def test_offsets_index_into_source_text(self):
        text = "intro\nsee [[first note]] and [[second|Shown]]\n"

        for reference in extract_references(text):
            assert reference.start_offset < reference.end_offset
            assert text[reference.start_offset:reference.end_offset] == reference.raw

    def test_adjacent_references(self):
        """Test that back-to-back references are both found, left to right."""
        references = extract_references("[[a]][[b]]")

        assert [ref.target for ref in references] == ["a", "b"]
        assert references[0].end_offset == references[1].start_offset

    def test_whitespace_is_trimmed(self):
        references = extract_references("[[  my note  |  Shown Text ]]")

        assert references[0].target == "my note"
        assert references[0].display_text == "Shown Text"

    def test_blank_display_keeps_reference(self):
        references = extract_references("see [[a| ]] here")

        assert len(references) == 1
        assert references[0].target == "a"
        assert references[0].display_text is None
        assert references[0].raw == "[[a| ]]"

    def test_line_numbers(self):
        text = "first\n[[a]]\n\nfourth [[b]] [[c]]\n"

        references = extract_references(text)

        assert [(ref.target, ref.line) for ref in references] == [("a", 2), ("b", 4), ("c", 4)]

    @pytest.mark.parametrize("text", [
        "[[a[b]]",
        "[[a]b]]",
        "[[[a]]",
        "[[a]]]",
        "[[ ]]",
        "[[a|]]",
        "[[a\nb]]",
        "[a]",
        "[[unterminated",
    ])
    def test_malformed_sequences_are_skipped(self, text):
        """Test that malformed bracket sequences are plain text, never errors."""
        assert extract_references(text) == []

    def test_malformed_sequence_does_not_hide_later_reference(self):
        references = extract_references("[[a[b]] then [[c]]")

        assert [ref.target for ref in references] == ["c"]

    def test_round_trip_through_literal(self):
        """Test that a created literal parses back to the same target and display."""
        for target, display in [("note", None), ("My Note", "Shown"), ("2026-02-15", "Today")]:
            references = extract_references(create_reference_literal(target, display))

            assert len(references) == 1
            assert references[0].target == target
            assert references[0].display_text == display

    def test_reference_is_immutable(self):
        reference = extract_references("[[a]]")[0]

        with pytest.raises(ValidationError):
            reference.target = "b"


class TestSingleReference:
    """Test suite for parse_one and is_valid_reference_literal."""

    def test_parse_one_whole_input(self):
        reference = parse_one("[[note|Note]]")

        assert reference is not None
        assert reference.target == "note"
        assert reference.display_text == "Note"

    @pytest.mark.parametrize("text", [" [[note]]", "[[note]] ", "[[a]][[b]]", "note", ""])
    def test_parse_one_rejects_extra_text(self, text):
        assert parse_one(text) is None

    def test_is_valid_reference_literal(self):
        assert is_valid_reference_literal("[[note]]")
        assert is_valid_reference_literal("[[note|Shown]]")
        assert not is_valid_reference_literal("[[note]] trailing")
        assert not is_valid_reference_literal("[[no]te]]")

    def test_create_reference_literal(self):
        assert create_reference_literal("note") == "[[note]]"
        assert create_reference_literal("note", "A Note") == "[[note|A Note]]"
        assert create_reference_literal("note", "") == "[[note]]"


class TestRewriteReferences:
    """Test suite for rewrite_references."""

    def test_replaces_every_reference(self):
        text = "Start [[a]] middle [[b|Bee]] end"

        result = rewrite_references(text, lambda ref: ref.target.upper())

        assert result == "Start A middle B end"

    def test_longer_replacements_keep_surrounding_text(self):
        text = "[[a]]-[[b]]-[[c]]"

        result = rewrite_references(text, lambda ref: f"<{ref.target * 5}>")

        assert result == "<aaaaa>-<bbbbb>-<ccccc>"

    def test_malformed_text_untouched(self):
        text = "keep [[a[b]] and [x](y.md) as they are"

        assert rewrite_references(text, lambda ref: "X") == text

    def test_idempotent_without_references(self):
        text = "plain text with [single] brackets"

        once = rewrite_references(text, lambda ref: ref.target)

        assert once == text
        assert rewrite_references(once, lambda ref: ref.target) == once

    def test_target_rewrite_is_idempotent(self):
        once = rewrite_references("a [[b]] c", lambda ref: ref.target)

        assert once == "a b c"
        assert rewrite_references(once, lambda ref: ref.target) == once
