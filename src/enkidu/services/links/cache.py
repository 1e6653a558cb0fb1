"""
On-disk cache of the link graph.

The cache is one JSON file::

    {"version": "1.0.0", "timestamp": "<ISO-8601>", "entries": [[id, entry], ...]}

Staleness is judged by format version, age, and the number of entries against
the current number of markdown files. Content edits that keep the file count
unchanged are not detected. Every read problem is reported as a cache miss.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from enkidu.models.links import CacheRecord, GraphEntry
from enkidu.utils.errors import CacheError
from enkidu.utils.logging import LoggerMixin

CACHE_FORMAT_VERSION = "1.0.0"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GraphCache(LoggerMixin):
    """Reads and writes link graph cache files."""

    def __init__(self, format_version: str = CACHE_FORMAT_VERSION):
        self.format_version = format_version

    def save(self, path: Path, entries: list[tuple[str, GraphEntry]], built_at: datetime | None = None) -> None:
        """Write the graph to ``path``, replacing any previous cache file.

        Args:
            path: Cache file location
            entries: ``(id, entry)`` pairs in scan order
            built_at: Build time, defaults to now
        """
        record = CacheRecord(
            version=self.format_version,
            timestamp=built_at or utc_now(),
            entries=entries,
        )
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = path.with_name(f"{path.name}.tmp")
        tmp_path.write_text(record.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        tmp_path.replace(path)
        self.logger.debug(f"Saved link cache with {len(entries)} entries to {path}")

    def read(self, path: Path) -> CacheRecord:
        """Read and check a cache file.

        Raises:
            CacheError: If the file is missing, unparsable, or of another format version
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CacheError(f"Cannot read link cache {path}: {e}") from e

        try:
            record = CacheRecord.model_validate_json(content)
        except PydanticValidationError as e:
            raise CacheError(f"Malformed link cache {path}: {e.error_count()} validation errors") from e

        if record.version != self.format_version:
            raise CacheError(
                f"Link cache {path} has format version {record.version}, expected {self.format_version}"
            )
        return record

    def load(self, path: Path) -> CacheRecord | None:
        """Read a cache file, or return None on any problem."""
        if not Path(path).exists():
            self.logger.debug(f"No link cache at {path}")
            return None
        try:
            return self.read(path)
        except CacheError as e:
            self.logger.warning(f"Ignoring link cache: {e}")
            return None

    def is_valid(
        self,
        path: Path,
        max_age: timedelta,
        current_file_count: int,
        now: datetime | None = None,
    ) -> bool:
        """Check whether a cache file may be used instead of a rebuild.

        Args:
            path: Cache file location
            max_age: Freshness window
            current_file_count: Number of markdown files in the corpus now
            now: Reference time, defaults to now

        Returns:
            True when version matches, the cache is not older than
            ``max_age``, and its entry count equals ``current_file_count``
        """
        record = self.load(path)
        if record is None:
            return False

        age = (now or utc_now()) - as_utc(record.timestamp)
        if age > max_age:
            self.logger.info(f"Link cache is stale ({age} old, window {max_age})")
            return False

        if len(record.entries) != current_file_count:
            self.logger.info(
                f"Link cache covers {len(record.entries)} notes, corpus has {current_file_count}"
            )
            return False

        return True

    def clear(self, path: Path) -> bool:
        """Delete a cache file. Returns whether a file was removed."""
        path = Path(path)
        if not path.exists():
            return False
        path.unlink()
        self.logger.info(f"Removed link cache {path}")
        return True


def as_utc(timestamp: datetime) -> datetime:
    """Interpret naive timestamps as UTC."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp
