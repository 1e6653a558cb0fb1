"""
Link conversion for publishing notes.

Rewrites ``[[target]]`` references into plain markdown links that a static
site generator such as Docusaurus understands, converts markdown links back
into references when content is imported, and reports broken references in a
block of text.
"""

import os
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path

from enkidu.models.links import ExtractedLinks, LinkValidationReport, MarkdownLink, Reference
from enkidu.services.links.parser import create_reference_literal, extract_references, rewrite_references
from enkidu.services.links.resolver import LinkResolver
from enkidu.services.vault.frontmatter import filename_title, read_title
from enkidu.utils.config import BrokenLinkStrategy, EnkiduSettings
from enkidu.utils.errors import ValidationError
from enkidu.utils.logging import setup_logging

logger = setup_logging(__name__)

MARKDOWN_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
EXTERNAL_PREFIXES = ("http://", "https://")
MARKDOWN_EXTENSION = ".md"
BROKEN_LINK_STRATEGIES = ("keep", "text", "remove")


@dataclass
class LinkConversionOptions:
    """How references are turned into markdown links.

    Attributes:
        broken_link_strategy: ``keep`` the reference literal, emit its display
            ``text``, or ``remove`` it
        base_path: Prefix for links when ``use_absolute_paths`` is set
        use_absolute_paths: Link to ``base_path/<path below root>`` instead of
            a path relative to the source note
    """
    broken_link_strategy: BrokenLinkStrategy = "keep"
    base_path: str = ""
    use_absolute_paths: bool = False

    def __post_init__(self):
        if self.broken_link_strategy not in BROKEN_LINK_STRATEGIES:
            raise ValidationError(
                f"Unknown broken link strategy: {self.broken_link_strategy}",
                suggestions=[f"Use one of: {', '.join(BROKEN_LINK_STRATEGIES)}"],
            )

    @classmethod
    def from_settings(cls, settings) -> "LinkConversionOptions":
        return cls(
            broken_link_strategy=settings.sync_broken_link_strategy,
            base_path=settings.sync_base_path,
            use_absolute_paths=settings.sync_use_absolute_paths,
        )


class LinkConverter:
    """Converts references of notes below one workspace root."""

    def __init__(self, resolver: LinkResolver, roots: list[Path], corpus_root: Path):
        """Initialize the converter.

        Args:
            resolver: Reference resolver
            roots: Content roots searched for link targets
            corpus_root: Workspace root, used for absolute export paths
        """
        self.resolver = resolver
        self.roots = [Path(root) for root in roots]
        self.corpus_root = Path(corpus_root).resolve()

    @classmethod
    def from_settings(cls, settings, resolver: LinkResolver | None = None) -> "LinkConverter":
        return cls(
            resolver or LinkResolver.from_settings(settings),
            settings.get_content_roots(),
            settings.get_root_path(),
        )

    def rewrite_for_export(
        self,
        text: str,
        source_path: Path | str,
        options: LinkConversionOptions | None = None,
    ) -> str:
        """Replace every reference in ``text`` with a markdown link.

        Args:
            text: Note content
            source_path: File the content belongs to
            options: Conversion options

        Returns:
            Converted content; text outside references is unchanged
        """
        options = options or LinkConversionOptions()
        files = self.resolver.reader.list_markdown_files(self.roots)
        source_dir = Path(source_path).resolve().parent

        def convert(reference: Reference) -> str:
            resolved = self.resolver.resolve_reference(reference, files)
            if not resolved.exists:
                return self._broken(reference, options.broken_link_strategy)

            target = Path(resolved.resolved_path)
            link_text = reference.display_text or self.note_title(target)

            if options.use_absolute_paths:
                link_path = posixpath.join(options.base_path, _relative_posix(target, self.corpus_root))
            else:
                link_path = _relative_posix(target, source_dir)

            if not link_path.endswith(MARKDOWN_EXTENSION):
                link_path += MARKDOWN_EXTENSION
            return f"[{link_text}]({link_path})"

        return rewrite_references(text, convert)

    @staticmethod
    def _broken(reference: Reference, strategy: BrokenLinkStrategy) -> str:
        logger.debug(f"Broken reference {reference.raw} handled with strategy '{strategy}'")
        if strategy == "text":
            return reference.display_text or reference.target
        if strategy == "remove":
            return ""
        return reference.raw

    def note_title(self, path: Path) -> str:
        """Frontmatter title of a note, else a title made from its file name."""
        return read_title(self.resolver.reader, path) or filename_title(path)

    def validate_links(self, text: str) -> LinkValidationReport:
        """Report every broken reference in ``text`` with its line and best suggestion."""
        files = self.resolver.reader.list_markdown_files(self.roots)
        errors = []

        for reference in extract_references(text):
            resolved = self.resolver.resolve_reference(reference, files)
            if resolved.exists:
                continue

            line_info = f" (line {reference.line})" if reference.line else ""
            message = f"Broken link: {create_reference_literal(reference.target)}{line_info}"
            if resolved.suggestions:
                message += f" - Did you mean: {resolved.suggestions[0]}?"
            errors.append(message)

        return LinkValidationReport(valid=not errors, errors=errors)

    def process_sync_content(
        self,
        text: str,
        source_path: Path | str,
        options: LinkConversionOptions | None = None,
    ) -> str:
        """Prepare note content for publishing."""
        return self.rewrite_for_export(text, source_path, options)


def _relative_posix(target: Path, start: Path) -> str:
    return Path(os.path.relpath(target, start)).as_posix()


def markdown_links_to_references(text: str) -> str:
    """Turn local ``[text](path.md)`` links into ``[[stem|text]]`` references.

    External (``http://``, ``https://``) and anchor (``#...``) links are left
    as they are.
    """
    def convert(match: re.Match) -> str:
        link_text, url = match.group(1), match.group(2)
        if url.startswith(EXTERNAL_PREFIXES) or url.startswith("#"):
            return match.group(0)

        stem = posixpath.splitext(posixpath.basename(url.split("#", 1)[0]))[0]
        if not stem:
            return match.group(0)
        return create_reference_literal(stem, link_text)

    return MARKDOWN_LINK_PATTERN.sub(convert, text)


def extract_all_links(text: str) -> ExtractedLinks:
    """Both kinds of links in ``text``: references and markdown links."""
    return ExtractedLinks(
        references=extract_references(text),
        markdown_links=[
            MarkdownLink(text=match.group(1), url=match.group(2))
            for match in MARKDOWN_LINK_PATTERN.finditer(text)
        ],
    )


def rewrite_for_export(
    text: str,
    source_path: Path | str,
    corpus_root: Path | str,
    options: LinkConversionOptions | None = None,
) -> str:
    """Convert references for the workspace rooted at ``corpus_root``."""
    converter = LinkConverter.from_settings(EnkiduSettings.from_root(Path(corpus_root)))
    return converter.rewrite_for_export(text, source_path, options)


def validate_links(text: str, corpus_root: Path | str) -> LinkValidationReport:
    """Link validity report for ``text`` against the workspace at ``corpus_root``."""
    converter = LinkConverter.from_settings(EnkiduSettings.from_root(Path(corpus_root)))
    return converter.validate_links(text)
