"""
Link graph index.

Holds one adjacency entry per markdown note (outgoing references plus the
backlinks other notes point at it) and answers the graph queries used by the
CLI: backlinks, outgoing links, broken links, statistics, orphans, ranking,
and graph export.

Two separate code paths maintain the graph:

* :meth:`LinkIndex.build` discards everything and rescans the corpus in two
  passes (collect outgoing references, then derive incoming edges).
* :meth:`LinkIndex.add_note`, :meth:`LinkIndex.remove_note` and
  :meth:`LinkIndex.update_note` patch one entry and the incoming edges that
  involve it, without reading any other note.
"""

import re
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from types import MappingProxyType

import networkx as nx

from enkidu.models.links import (
    BrokenLink,
    GraphEntry,
    IncomingEdge,
    LinkCountEntry,
    LinkEdge,
    LinkGraph,
    LinkNode,
    LinkStatistics,
    Reference,
)
from enkidu.services.links.cache import GraphCache, utc_now
from enkidu.services.links.parser import extract_references
from enkidu.services.links.resolver import LinkResolver
from enkidu.services.vault.frontmatter import read_title
from enkidu.services.vault.reader import NoteReader
from enkidu.utils.errors import ServiceError
from enkidu.utils.logging import setup_logging

logger = setup_logging(__name__)

DAILY_NOTE_PATTERN = re.compile(r"^(\d{4})/(\d{2})/(\d{2})\.md$")
DEFAULT_CACHE_MAX_AGE = timedelta(hours=1)


class IndexState(str, Enum):
    """Lifecycle of a link index: EMPTY -> BUILDING -> BUILT (-> BUILDING on rebuild)."""

    EMPTY = "empty"
    BUILDING = "building"
    BUILT = "built"


class LinkIndex:
    """Bidirectional link graph over the notes below a set of content roots."""

    def __init__(
        self,
        roots: Sequence[Path],
        reader: NoteReader | None = None,
        resolver: LinkResolver | None = None,
        daily_root: Path | None = None,
        cache: GraphCache | None = None,
    ):
        """Initialize an empty index.

        Args:
            roots: Content roots in scan order
            reader: File-listing and file-read collaborator
            resolver: Reference resolver (built from ``reader`` if omitted)
            daily_root: Directory holding ``YYYY/MM/DD.md`` daily notes
            cache: Cache file handler
        """
        self.roots = [Path(root) for root in roots]
        self.reader = reader or NoteReader()
        self.daily_root = Path(daily_root).resolve() if daily_root else None
        self.resolver = resolver or LinkResolver(self.reader, daily_root=self.daily_root)
        self.cache = cache or GraphCache()

        self._entries: dict[str, GraphEntry] = {}
        self._path_ids: dict[str, str] = {}
        self._state = IndexState.EMPTY
        self._built_at: datetime | None = None

    @classmethod
    def from_settings(cls, settings, reader: NoteReader | None = None) -> "LinkIndex":
        """Create an index for the workspace described by ``settings``."""
        reader = reader or NoteReader()
        return cls(
            settings.get_content_roots(),
            reader=reader,
            resolver=LinkResolver.from_settings(settings, reader),
            daily_root=settings.get_daily_root(),
        )

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def built_at(self) -> datetime | None:
        return self._built_at

    @property
    def graph(self) -> Mapping[str, GraphEntry]:
        """Read-only snapshot of the graph, keyed by note id in scan order."""
        return MappingProxyType({
            note_id: entry.model_copy(deep=True) for note_id, entry in self._entries.items()
        })

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._entries

    def id_for_path(self, path: Path | str) -> str | None:
        return self._path_ids.get(str(Path(path).resolve()))

    # -- full build ---------------------------------------------------------

    def build(self) -> Mapping[str, GraphEntry]:
        """Rebuild the whole graph from the content roots.

        The previous graph is discarded. Notes that cannot be read are logged
        and left out; a failure outside of per-note reads restores the
        previous graph and propagates.

        Returns:
            Read-only snapshot of the new graph
        """
        previous = (self._state, self._entries, self._path_ids, self._built_at)
        self._state = IndexState.BUILDING

        try:
            files = self.reader.list_markdown_files(self.roots)
            logger.info(f"Building link index from {len(files)} markdown files")

            entries: dict[str, GraphEntry] = {}
            path_ids: dict[str, str] = {}
            skipped = 0

            # Pass 1: outgoing references per note
            for path in files:
                try:
                    content = self.reader.read_file(path)
                except (OSError, ServiceError) as e:
                    logger.warning(f"Skipping unreadable note {path}: {e}")
                    skipped += 1
                    continue

                note_id = self._assign_id(path, entries)
                entries[note_id] = GraphEntry(
                    id=note_id,
                    file_path=str(path),
                    outgoing=extract_references(content),
                )
                path_ids[str(path)] = note_id
                logger.debug(f"Indexed {note_id}: {len(entries[note_id].outgoing)} references")

            self._entries = entries
            self._path_ids = path_ids

            # Pass 2: incoming edges
            candidates = self._candidates()
            memo: dict[str, str | None] = {}
            for source in entries.values():
                for reference in source.outgoing:
                    self._link(source, reference, candidates, memo)

        except Exception:
            self._state, self._entries, self._path_ids, self._built_at = previous
            raise

        self._built_at = utc_now()
        self._state = IndexState.BUILT
        logger.info(
            f"Link index built: {len(self._entries)} notes, "
            f"{sum(len(entry.outgoing) for entry in self._entries.values())} references"
            + (f", {skipped} unreadable notes skipped" if skipped else "")
        )
        return self.graph

    def _assign_id(self, path: Path, entries: Mapping[str, GraphEntry]) -> str:
        """Note id for ``path``: ``YYYY-MM-DD`` for daily notes, else the stem.

        An id already taken by an earlier note falls back to the path below
        the content roots' parent, without extension.
        """
        path = Path(path)
        note_id = path.stem
        if self.daily_root is not None:
            try:
                relative = path.relative_to(self.daily_root).as_posix()
            except ValueError:
                relative = None
            if relative:
                match = DAILY_NOTE_PATTERN.match(relative)
                if match:
                    note_id = "-".join(match.groups())

        if note_id not in entries:
            return note_id

        for root in self.roots:
            base = root.resolve().parent
            try:
                fallback = path.with_suffix("").relative_to(base).as_posix()
            except ValueError:
                continue
            if fallback not in entries:
                logger.warning(f"Duplicate note name '{note_id}', indexing {path} as '{fallback}'")
                return fallback

        logger.warning(f"Duplicate note name '{note_id}', indexing {path} by its full path")
        return path.with_suffix("").as_posix()

    def _scan_key(self, file_path: Path | str) -> tuple[int, tuple[str, ...]]:
        """Sort key matching the reader's order: root position, then name-sorted path."""
        path = Path(file_path)
        for position, root in enumerate(self.roots):
            try:
                return position, path.relative_to(root.resolve()).parts
            except ValueError:
                continue
        return len(self.roots), path.parts

    def _candidates(self) -> list[Path]:
        return [Path(entry.file_path) for entry in self._entries.values()]

    def _resolve_id(self, target: str, candidates: Sequence[Path], memo: dict[str, str | None] | None = None) -> str | None:
        if memo is not None and target in memo:
            return memo[target]

        path = self.resolver.find_note(target, candidates)
        note_id = self._path_ids.get(str(path)) if path is not None else None

        if memo is not None:
            memo[target] = note_id
        return note_id

    def _link(
        self,
        source: GraphEntry,
        reference: Reference,
        candidates: Sequence[Path],
        memo: dict[str, str | None] | None = None,
    ) -> str | None:
        """Record ``reference`` as a backlink on the note it resolves to."""
        target_id = self._resolve_id(reference.target, candidates, memo)
        if target_id is None:
            return None

        self._entries[target_id].incoming.append(IncomingEdge(
            source_id=source.id,
            source_path=source.file_path,
            reference=reference,
        ))
        return target_id

    # -- incremental patches ------------------------------------------------

    def _require_built(self) -> None:
        if self._state is not IndexState.BUILT:
            raise ServiceError(
                f"Link index is {self._state.value}; build or load it before patching",
                suggestions=["Call build() or load_cache() first"],
            )

    def add_note(self, path: Path | str) -> GraphEntry:
        """Index one new note without rescanning the corpus.

        Its references become backlinks on their targets, and references in
        other notes that now resolve to it are moved onto it.

        Args:
            path: Note file

        Returns:
            Copy of the new entry
        """
        self._require_built()
        path = Path(path).resolve()
        if str(path) in self._path_ids:
            return self.update_note(path)

        content = self.reader.read_file(path)
        note_id = self._assign_id(path, self._entries)
        entry = GraphEntry(id=note_id, file_path=str(path), outgoing=extract_references(content))
        self._entries[note_id] = entry
        self._path_ids[str(path)] = note_id
        # Resolution takes the first match, so keep entries in scan order
        self._entries = dict(sorted(self._entries.items(), key=lambda item: self._scan_key(item[1].file_path)))

        candidates = self._candidates()
        memo: dict[str, str | None] = {}
        for reference in entry.outgoing:
            self._link(entry, reference, candidates, memo)

        moved = 0
        for source in self._entries.values():
            if source.id == note_id:
                continue
            for reference in source.outgoing:
                if self._resolve_id(reference.target, candidates, memo) != note_id:
                    continue
                self._drop_edge(source.id, reference)
                entry.incoming.append(IncomingEdge(
                    source_id=source.id,
                    source_path=source.file_path,
                    reference=reference,
                ))
                moved += 1

        logger.debug(f"Added note {note_id}: {len(entry.outgoing)} references, {moved} backlinks")
        return entry.model_copy(deep=True)

    def remove_note(self, note_id: str) -> bool:
        """Drop one note and every edge it takes part in.

        References in other notes that pointed at it are resolved again and
        either land on another note or become broken.

        Returns:
            False if ``note_id`` was not indexed
        """
        self._require_built()
        entry = self._entries.pop(note_id, None)
        if entry is None:
            return False
        self._path_ids.pop(entry.file_path, None)

        for other in self._entries.values():
            other.incoming = [edge for edge in other.incoming if edge.source_id != note_id]

        candidates = self._candidates()
        memo: dict[str, str | None] = {}
        for edge in entry.incoming:
            source = self._entries.get(edge.source_id)
            if source is not None:
                self._link(source, edge.reference, candidates, memo)

        logger.debug(f"Removed note {note_id}")
        return True

    def update_note(self, path: Path | str) -> GraphEntry:
        """Re-read one note and replace its outgoing references.

        Backlinks pointing at the note are kept; edges it contributed to other
        notes are replaced by edges for its new references.

        Returns:
            Copy of the updated entry
        """
        self._require_built()
        path = Path(path).resolve()
        note_id = self._path_ids.get(str(path))
        if note_id is None:
            return self.add_note(path)

        content = self.reader.read_file(path)
        entry = self._entries[note_id]
        entry.outgoing = extract_references(content)

        for other in self._entries.values():
            other.incoming = [edge for edge in other.incoming if edge.source_id != note_id]

        candidates = self._candidates()
        memo: dict[str, str | None] = {}
        for reference in entry.outgoing:
            self._link(entry, reference, candidates, memo)

        logger.debug(f"Updated note {note_id}: {len(entry.outgoing)} references")
        return entry.model_copy(deep=True)

    def _drop_edge(self, source_id: str, reference: Reference) -> None:
        for entry in self._entries.values():
            entry.incoming = [
                edge for edge in entry.incoming
                if not (edge.source_id == source_id and edge.reference == reference)
            ]

    # -- queries ------------------------------------------------------------

    def get_entry(self, note_id: str) -> GraphEntry | None:
        entry = self._entries.get(note_id)
        return entry.model_copy(deep=True) if entry else None

    def get_backlinks(self, note_id: str) -> list[IncomingEdge]:
        """Backlinks of a note; empty for unknown ids."""
        entry = self._entries.get(note_id)
        return list(entry.incoming) if entry else []

    def get_outgoing(self, note_id: str) -> list[Reference]:
        """Outgoing references of a note; empty for unknown ids."""
        entry = self._entries.get(note_id)
        return list(entry.outgoing) if entry else []

    def find_broken_links(self) -> list[BrokenLink]:
        """All references that do not resolve, with suggestions.

        Ordered by source note in scan order, then by position in the note.
        """
        candidates = self._candidates()
        resolved: dict[str, list[str] | None] = {}
        broken: list[BrokenLink] = []

        for entry in self._entries.values():
            for reference in sorted(entry.outgoing, key=lambda ref: ref.start_offset):
                if reference.target not in resolved:
                    result = self.resolver.resolve_reference(reference, candidates)
                    resolved[reference.target] = None if result.exists else (result.suggestions or [])
                suggestions = resolved[reference.target]
                if suggestions is None:
                    continue
                broken.append(BrokenLink(
                    source_id=entry.id,
                    source_path=entry.file_path,
                    reference=reference,
                    suggestions=list(suggestions),
                ))

        return broken

    def get_statistics(self) -> LinkStatistics:
        total_links = sum(len(entry.outgoing) for entry in self._entries.values())
        broken_links = len(self.find_broken_links())
        return LinkStatistics(
            total_notes=len(self._entries),
            total_links=total_links,
            broken_links=broken_links,
            valid_links=total_links - broken_links,
        )

    def get_orphans(self) -> list[str]:
        """Ids of notes without backlinks, in scan order."""
        return [note_id for note_id, entry in self._entries.items() if not entry.incoming]

    def get_most_linked(self, limit: int = 10) -> list[LinkCountEntry]:
        """Notes ranked by backlink count, ties broken by id."""
        ranked = sorted(
            (LinkCountEntry(id=note_id, count=len(entry.incoming)) for note_id, entry in self._entries.items()),
            key=lambda item: (-item.count, item.id),
        )
        return ranked[:max(limit, 0)]

    def to_networkx(self) -> nx.DiGraph:
        """Directed graph of notes with one edge per linked (source, target) pair.

        Node attributes: ``label`` (frontmatter title or id) and ``path``.
        Edges are added in source scan order, then reference position.
        """
        graph = nx.DiGraph()
        order = {note_id: position for position, note_id in enumerate(self._entries)}

        for note_id, entry in self._entries.items():
            label = read_title(self.reader, entry.file_path) or note_id
            graph.add_node(note_id, label=label, path=entry.file_path)

        pairs = sorted(
            (order.get(edge.source_id, len(order)), edge.reference.start_offset, edge.source_id, target_id)
            for target_id, entry in self._entries.items()
            for edge in entry.incoming
        )
        for _, _, source_id, target_id in pairs:
            if source_id in graph:
                graph.add_edge(source_id, target_id, type="wiki")

        return graph

    def export_graph(self) -> LinkGraph:
        """Nodes and deduplicated edges for visualisation."""
        graph = self.to_networkx()
        return LinkGraph(
            nodes=[
                LinkNode(id=node_id, label=data["label"], path=data["path"])
                for node_id, data in graph.nodes(data=True)
            ],
            edges=[LinkEdge(source=source, target=target) for source, target in graph.edges()],
        )

    # -- cache --------------------------------------------------------------

    def save_cache(self, path: Path) -> None:
        """Write the graph to a cache file."""
        self.cache.save(path, list(self._entries.items()), built_at=self._built_at)

    def load_cache(self, path: Path) -> bool:
        """Replace the graph with the content of a cache file.

        Returns:
            False, leaving the index untouched, if the cache cannot be used
        """
        record = self.cache.load(path)
        if record is None:
            return False

        self._entries = {note_id: entry for note_id, entry in record.entries}
        self._path_ids = {entry.file_path: note_id for note_id, entry in record.entries}
        self._built_at = record.timestamp
        self._state = IndexState.BUILT
        logger.info(f"Loaded link index with {len(self._entries)} notes from {path}")
        return True

    def is_cache_valid(self, path: Path, max_age: timedelta = DEFAULT_CACHE_MAX_AGE, now: datetime | None = None) -> bool:
        """Check a cache file against the current corpus.

        Only the number of markdown files is compared: edits to existing
        notes do not invalidate the cache until it ages out.
        """
        file_count = self.reader.count_markdown_files(self.roots)
        return self.cache.is_valid(path, max_age, file_count, now=now)

    def load_or_build(self, cache_path: Path | None = None, max_age: timedelta = DEFAULT_CACHE_MAX_AGE) -> "LinkIndex":
        """Use a valid cache file if there is one, otherwise build and save.

        Args:
            cache_path: Cache file location; None disables caching
            max_age: Freshness window of the cache

        Returns:
            This index, in BUILT state
        """
        if cache_path is not None and self.is_cache_valid(cache_path, max_age) and self.load_cache(cache_path):
            return self

        self.build()

        if cache_path is not None:
            try:
                self.save_cache(cache_path)
            except OSError as e:
                logger.warning(f"Could not write link cache {cache_path}: {e}")

        return self


def build_link_index(settings, reader: NoteReader | None = None) -> LinkIndex:
    """Create and build an index for the workspace described by ``settings``."""
    index = LinkIndex.from_settings(settings, reader=reader)
    index.build()
    return index


def load_or_build_link_index(settings, use_cache: bool = True, reader: NoteReader | None = None) -> LinkIndex:
    """Create an index for ``settings``, going through the cache when enabled."""
    index = LinkIndex.from_settings(settings, reader=reader)
    cache_path = settings.get_link_cache_path() if use_cache and settings.link_cache_enabled else None
    return index.load_or_build(cache_path, settings.get_link_cache_max_age())
