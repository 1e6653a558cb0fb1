"""
Reference parser for ``[[target]]`` and ``[[target|display]]`` links.

All functions are pure: they never touch the filesystem and never raise on
malformed input. A bracket sequence that does not form a complete reference
is left alone as plain text.
"""

import re
from collections.abc import Callable

from enkidu.models.links import Reference

# No "[" or "]" inside either segment, no "|" in the target, no newlines.
# A reference glued to an extra "[" before or "]" after is not a reference.
REFERENCE_PATTERN = re.compile(
    r"(?<!\[)\[\[([^\[\]|\n]+)(?:\|([^\[\]\n]+))?\]\](?!\])"
)


def _iter_matches(text: str):
    for match in REFERENCE_PATTERN.finditer(text):
        target = match.group(1).strip()
        if not target:
            continue
        # A whitespace-only display segment leaves a plain reference
        display = match.group(2)
        if display is not None:
            display = display.strip() or None
        yield match, target, display


def extract_references(text: str) -> list[Reference]:
    """Extract all references from text, left to right.

    Args:
        text: Markdown content

    Returns:
        References with offsets into ``text`` and 1-indexed line numbers
    """
    references = []
    line = 1
    scanned = 0

    for match, target, display in _iter_matches(text):
        start = match.start()
        line += text.count("\n", scanned, start)
        scanned = start
        references.append(Reference(
            raw=match.group(0),
            target=target,
            display_text=display,
            start_offset=start,
            end_offset=match.end(),
            line=line,
        ))

    return references


def parse_one(text: str) -> Reference | None:
    """Parse text that consists of exactly one reference.

    Returns:
        The reference, or None when ``text`` holds anything besides it
    """
    references = extract_references(text)
    if len(references) != 1:
        return None

    reference = references[0]
    if reference.start_offset != 0 or reference.end_offset != len(text):
        return None
    return reference


def is_valid_reference_literal(text: str) -> bool:
    """Check whether text is one well-formed reference and nothing else."""
    return parse_one(text) is not None


def create_reference_literal(target: str, display_text: str | None = None) -> str:
    """Format a reference literal.

    >>> create_reference_literal("note", "A Note")
    '[[note|A Note]]'
    """
    if display_text:
        return f"[[{target}|{display_text}]]"
    return f"[[{target}]]"


def rewrite_references(text: str, replacer: Callable[[Reference], str]) -> str:
    """Replace every reference in text with ``replacer(reference)``.

    All matches are collected first and substituted from the highest offset
    down, so a replacement never moves a span that is still to be replaced.
    Text outside references is kept byte for byte.
    """
    references = extract_references(text)
    if not references:
        return text

    result = text
    for reference in sorted(references, key=lambda ref: ref.start_offset, reverse=True):
        result = result[:reference.start_offset] + replacer(reference) + result[reference.end_offset:]

    return result
