"""
Note reader service for workspace filesystem operations.

This module is the only place the link engine touches note files: it lists the
markdown files below the content roots and reads their text. Directories that
cannot be listed are skipped so that a partially readable workspace still
produces a partial graph.
"""

from pathlib import Path

from enkidu.utils.errors import ServiceError
from enkidu.utils.logging import setup_logging

logger = setup_logging(__name__)

MARKDOWN_SUFFIX = ".md"


class NoteReader:
    """Lists and reads markdown notes below a set of content roots."""

    def __init__(self, suffix: str = MARKDOWN_SUFFIX, skip_hidden: bool = True):
        """Initialize the note reader.

        Args:
            suffix: File suffix of notes
            skip_hidden: Whether to skip dot files and dot directories
        """
        self.suffix = suffix
        self.skip_hidden = skip_hidden

    def list_markdown_files(self, roots: list[Path]) -> list[Path]:
        """Get all markdown files below the given roots.

        Roots are scanned in the given order, and each directory in name
        order, so the result is stable between runs. Missing roots are
        ignored.

        Args:
            roots: Content root directories

        Returns:
            Absolute paths of markdown files in scan order
        """
        files: list[Path] = []
        for root in roots:
            root = Path(root)
            if not root.is_dir():
                logger.debug(f"Content root not present, skipping: {root}")
                continue
            self._collect(root.resolve(), files)

        logger.debug(f"Listed {len(files)} markdown files under {len(roots)} roots")
        return files

    def _collect(self, directory: Path, files: list[Path]) -> None:
        try:
            entries = sorted(directory.iterdir(), key=lambda item: item.name)
        except OSError as e:
            logger.warning(f"Cannot list directory {directory}, skipping: {e}")
            return

        for entry in entries:
            if self.skip_hidden and entry.name.startswith("."):
                continue
            try:
                if entry.is_dir():
                    self._collect(entry, files)
                elif entry.is_file() and entry.name.endswith(self.suffix):
                    files.append(entry)
            except OSError as e:
                logger.warning(f"Cannot inspect {entry}, skipping: {e}")

    def count_markdown_files(self, roots: list[Path]) -> int:
        return len(self.list_markdown_files(roots))

    def read_file(self, path: Path) -> str:
        """Read a note as UTF-8 text.

        Args:
            path: Absolute note path

        Returns:
            Note content

        Raises:
            FileNotFoundError: If the note does not exist
            ServiceError: If the note cannot be read or decoded
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ServiceError(f"Note is not valid UTF-8: {path}") from e
        except OSError as e:
            raise ServiceError(f"Cannot read note {path}: {e}") from e

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()
