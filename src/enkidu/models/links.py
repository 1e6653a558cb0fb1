"""
Pydantic models for references and the link graph.

Field names are snake_case in Python and camelCase on disk, so the cache file
and the JSON graph export use ``startOffset``, ``filePath`` and ``sourceId``
style keys.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class LinkModel(BaseModel):
    """Common configuration for all link graph models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Reference(LinkModel):
    """One ``[[target]]`` or ``[[target|display]]`` occurrence in a text.

    ``raw`` equals ``source_text[start_offset:end_offset]``; ``target`` and
    ``display_text`` are stripped of surrounding whitespace.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    raw: str
    target: str
    display_text: str | None = None
    start_offset: int
    end_offset: int
    line: int | None = None


class ResolvedReference(LinkModel):
    reference: Reference
    resolved_path: str | None = None
    suggestions: list[str] | None = None

    @computed_field
    @property
    def exists(self) -> bool:
        return self.resolved_path is not None


class IncomingEdge(LinkModel):
    """A backlink recorded on the target note."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    source_id: str
    source_path: str
    reference: Reference


class GraphEntry(LinkModel):
    """Per-note adjacency record owned by the link index."""

    id: str
    file_path: str
    outgoing: list[Reference] = Field(default_factory=list)
    incoming: list[IncomingEdge] = Field(default_factory=list)


class BrokenLink(LinkModel):
    source_id: str
    source_path: str
    reference: Reference
    suggestions: list[str] = Field(default_factory=list)


class LinkStatistics(LinkModel):
    total_notes: int = 0
    total_links: int = 0
    broken_links: int = 0
    valid_links: int = 0


class LinkCountEntry(LinkModel):
    id: str
    count: int


class LinkNode(LinkModel):
    id: str
    label: str
    path: str


class LinkEdge(LinkModel):
    source: str
    target: str
    type: Literal["wiki"] = "wiki"


class LinkGraph(LinkModel):
    nodes: list[LinkNode] = Field(default_factory=list)
    edges: list[LinkEdge] = Field(default_factory=list)


class LinkValidationReport(LinkModel):
    valid: bool = True
    errors: list[str] = Field(default_factory=list)


class MarkdownLink(LinkModel):
    text: str
    url: str


class ExtractedLinks(LinkModel):
    references: list[Reference] = Field(default_factory=list)
    markdown_links: list[MarkdownLink] = Field(default_factory=list)


class CacheRecord(LinkModel):
    """On-disk form of a built graph.

    ``entries`` keeps the scan order of the index as ``[id, entry]`` pairs.
    """

    version: str
    timestamp: datetime
    entries: list[tuple[str, GraphEntry]] = Field(default_factory=list)
