"""
Reference resolver.

Maps the target of a reference to a note file. Strategies are tried in a fixed
order and the first hit wins:

1. exact filename stem
2. case-insensitive stem
3. slugified target against stems (as is, and lowercased)
4. daily-note date (``YYYY-MM-DD``, ``YYYY/MM/DD`` or ``YYYYMMDD``), probed
   directly at ``<daily root>/YYYY/MM/DD.md``

A miss is not an error: it yields ``exists=False`` with fuzzy suggestions.
"""

import re
from collections.abc import Sequence
from pathlib import Path

from enkidu.models.links import Reference, ResolvedReference
from enkidu.services.links.parser import create_reference_literal
from enkidu.services.vault.reader import NoteReader
from enkidu.utils.logging import setup_logging
from enkidu.utils.slug import slugify

logger = setup_logging(__name__)

DATE_PATTERNS = [
    re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"),
    re.compile(r"^(\d{4})/(\d{2})/(\d{2})$"),
    re.compile(r"^(\d{4})(\d{2})(\d{2})$"),
]

DEFAULT_MAX_SUGGESTIONS = 5
DEFAULT_MAX_DISTANCE = 5


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance between two strings (insert, delete, substitute)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j - 1] + cost,  # substitution
                current[j - 1] + 1,      # insertion
                previous[j] + 1,         # deletion
            ))
        previous = current

    return previous[-1]


def reference_for_target(target: str) -> Reference:
    """Synthetic reference for resolving a bare target string."""
    raw = create_reference_literal(target)
    return Reference(raw=raw, target=target, start_offset=0, end_offset=len(raw))


class LinkResolver:
    """Resolves reference targets against the markdown files of a workspace."""

    def __init__(
        self,
        reader: NoteReader,
        daily_root: Path | None = None,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
        max_distance: int = DEFAULT_MAX_DISTANCE,
    ):
        """Initialize the resolver.

        Args:
            reader: File-listing collaborator
            daily_root: Directory holding ``YYYY/MM/DD.md`` daily notes
            max_suggestions: Maximum suggestions for a broken reference
            max_distance: Largest edit distance still suggested
        """
        self.reader = reader
        self.daily_root = Path(daily_root).resolve() if daily_root else None
        self.max_suggestions = max_suggestions
        self.max_distance = max_distance

    @classmethod
    def from_settings(cls, settings, reader: NoteReader | None = None) -> "LinkResolver":
        return cls(
            reader or NoteReader(),
            daily_root=settings.get_daily_root(),
            max_suggestions=settings.max_suggestions,
            max_distance=settings.max_suggestion_distance,
        )

    def resolve(self, target: str, roots: Sequence[Path]) -> ResolvedReference:
        """Resolve a target string against the notes below ``roots``."""
        files = self.reader.list_markdown_files(list(roots))
        return self.resolve_reference(reference_for_target(target), files)

    def exists(self, target: str, roots: Sequence[Path]) -> bool:
        files = self.reader.list_markdown_files(list(roots))
        return self.find_note(target, files) is not None

    def resolve_all(self, references: Sequence[Reference], roots: Sequence[Path]) -> list[ResolvedReference]:
        """Resolve several references with a single listing, keeping input order."""
        files = self.reader.list_markdown_files(list(roots))
        return [self.resolve_reference(reference, files) for reference in references]

    def resolve_reference(self, reference: Reference, files: Sequence[Path]) -> ResolvedReference:
        """Resolve a reference against an already listed set of note files.

        Args:
            reference: Parsed reference
            files: Candidate note files in scan order

        Returns:
            Resolution with the note path, or suggestions on a miss
        """
        path = self.find_note(reference.target, files)
        if path is not None:
            return ResolvedReference(reference=reference, resolved_path=str(path))

        suggestions = self.suggest(reference.target, files)
        logger.debug(f"Unresolved reference {reference.raw}; suggestions: {suggestions}")
        return ResolvedReference(reference=reference, suggestions=suggestions)

    def find_note(self, target: str, files: Sequence[Path]) -> Path | None:
        """Find the note a target refers to, or None."""
        stems = [(Path(file).stem, file) for file in files]

        for stem, file in stems:
            if stem == target:
                return Path(file)

        lower_target = target.lower()
        for stem, file in stems:
            if stem.lower() == lower_target:
                return Path(file)

        slug = slugify(target)
        if slug:
            for stem, file in stems:
                if stem == slug or stem.lower() == slug:
                    return Path(file)

        return self.find_daily_note(target)

    def find_daily_note(self, target: str) -> Path | None:
        """Probe the daily-note location for a date target without listing files."""
        if self.daily_root is None:
            return None

        for pattern in DATE_PATTERNS:
            match = pattern.match(target)
            if match:
                year, month, day = match.groups()
                candidate = self.daily_root / year / month / f"{day}.md"
                if self.reader.exists(candidate):
                    return candidate
        return None

    def suggest(self, target: str, files: Sequence[Path]) -> list[str]:
        """Note names close to ``target``, nearest first.

        Ties keep scan order; names further than ``max_distance`` are dropped.
        """
        lower_target = target.lower()
        scored: list[tuple[int, int, str]] = []
        seen: set[str] = set()

        for position, file in enumerate(files):
            stem = Path(file).stem
            if stem in seen:
                continue
            seen.add(stem)
            distance = edit_distance(lower_target, stem.lower())
            if distance <= self.max_distance:
                scored.append((distance, position, stem))

        scored.sort()
        return [stem for _, _, stem in scored[:self.max_suggestions]]
