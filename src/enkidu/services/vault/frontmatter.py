"""
Frontmatter parsing for markdown notes.

Only the YAML block at the very top of a note is considered. Titles used for
graph labels and export link text come from its ``title`` field.
"""

import re
from pathlib import Path
from typing import Any

import yaml

from enkidu.utils.logging import setup_logging
from enkidu.utils.slug import title_from_slug

logger = setup_logging(__name__)

FRONTMATTER_PATTERN = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter from a markdown note.

    Args:
        content: Markdown content

    Returns:
        Tuple of (frontmatter_dict, remaining_content)

    Raises:
        yaml.YAMLError: If the frontmatter block is not valid YAML
    """
    match = FRONTMATTER_PATTERN.search(content)
    if not match:
        return {}, content

    frontmatter = yaml.safe_load(match.group(1))
    if frontmatter is None:
        frontmatter = {}
    elif not isinstance(frontmatter, dict):
        logger.warning(f"Frontmatter is not a dictionary: {frontmatter!r}")
        frontmatter = {}

    return frontmatter, content[match.end():]


def get_frontmatter_title(content: str) -> str | None:
    """Return the frontmatter ``title`` of a note, if it has a usable one."""
    frontmatter, _ = parse_frontmatter(content)
    title = frontmatter.get("title")
    if title is None:
        return None
    title = str(title).strip()
    return title or None


def filename_title(path: Path | str) -> str:
    """Title derived from a note's file name: ``my-note.md`` becomes ``My Note``."""
    return title_from_slug(Path(path).stem)


def read_title(reader, path: Path | str) -> str | None:
    """Frontmatter title of the note at ``path``.

    Any failure while reading or parsing the note yields None so callers can
    fall back to a filename-derived title.

    Args:
        reader: Object with a ``read_file(path) -> str`` method
        path: Note path
    """
    try:
        return get_frontmatter_title(reader.read_file(Path(path)))
    except Exception as e:
        logger.debug(f"No frontmatter title for {path}: {e}")
        return None
