"""
Configuration management for enkidu.

Settings come from pydantic settings with support for ``ENKIDU_`` environment
variables, a ``.env`` file, and the workspace file ``.enkidu/config.json``.
There is no process-wide settings object: commands create one instance and
pass it to the services that need it.
"""

import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from enkidu.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

WORKSPACE_DIR = ".enkidu"
WORKSPACE_CONFIG = "config.json"

BrokenLinkStrategy = Literal["keep", "text", "remove"]


class ValidationResult(BaseModel):
    valid: bool = True
    errors: list[str] = []
    warnings: list[str] = []


class EnkiduSettings(BaseSettings):
    """enkidu workspace configuration settings."""

    app_name: str = "enkidu"
    app_version: str = "0.3.0"
    debug: bool = Field(default=False)

    # Workspace layout
    root_dir: str = Field(default="", description="Root directory of the notes workspace")
    notes_dir: str = Field(default="notes", description="Content root for regular notes")
    blog_dir: str = Field(default="blog", description="Content root for blog posts")
    daily_dir: str = Field(default="daily", description="Content root for YYYY/MM/DD.md daily notes")

    # Link graph cache
    link_cache_enabled: bool = Field(default=True, description="Reuse the on-disk link graph between runs")
    link_cache_path: str = Field(default=".enkidu/cache/links.json", description="Cache file, relative to the root")
    link_cache_max_age_minutes: int = Field(default=60, description="Freshness window of the link cache")

    # Resolution
    max_suggestions: int = Field(default=5, description="Maximum suggestions reported for a broken link")
    max_suggestion_distance: int = Field(default=5, description="Largest edit distance still suggested")

    # Export
    sync_broken_link_strategy: BrokenLinkStrategy = Field(default="keep", description="keep, text or remove")
    sync_base_path: str = Field(default="", description="Base path for absolute export links")
    sync_use_absolute_paths: bool = Field(default=False, description="Emit links under sync_base_path")

    # Logging settings
    log_level: str = Field(default="WARNING", description="Logging level")
    log_structured: bool = Field(default=False, description="Emit JSON log records")
    log_file: str = Field(default="", description="Optional log file path")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="ENKIDU_",
        extra="ignore",
    )

    @classmethod
    def from_root(cls, root: Path, **overrides: Any) -> "EnkiduSettings":
        """Create settings for a workspace root.

        Values from ``<root>/.enkidu/config.json`` are applied first and
        explicit keyword overrides win over them.

        Raises:
            ConfigurationError: If a value has the wrong type
        """
        values = load_workspace_config(root)
        values.update(overrides)
        values["root_dir"] = str(root)
        try:
            return cls(**values)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid settings for workspace {root}: {e.error_count()} validation errors",
                suggestions=[f"Check {Path(root) / WORKSPACE_DIR / WORKSPACE_CONFIG} and ENKIDU_ environment variables"],
                context={"errors": e.errors(include_url=False)},
            ) from e

    def get_root_path(self) -> Path | None:
        """Get workspace root as Path object."""
        if self.root_dir:
            return Path(self.root_dir).expanduser().resolve()
        return None

    def get_content_roots(self) -> list[Path]:
        """Get the configured content roots in scan order (notes, blog, daily)."""
        root = self.get_root_path()
        if root is None:
            return []
        return [root / self.notes_dir, root / self.blog_dir, root / self.daily_dir]

    def get_daily_root(self) -> Path | None:
        root = self.get_root_path()
        return root / self.daily_dir if root else None

    def get_link_cache_path(self) -> Path | None:
        """Get link cache path as Path object."""
        root = self.get_root_path()
        if root is None:
            return None
        path = Path(self.link_cache_path).expanduser()
        return path if path.is_absolute() else root / path

    def get_link_cache_max_age(self) -> timedelta:
        return timedelta(minutes=self.link_cache_max_age_minutes)

    def get_log_file_path(self) -> Path | None:
        if self.log_file:
            return Path(self.log_file).expanduser().resolve()
        return None

    def validate_settings(self) -> ValidationResult:
        """Validate settings and return status information."""
        status = ValidationResult()

        root = self.get_root_path()
        if root is None:
            status.errors.append("No workspace root configured")
            status.valid = False
            return status

        if not root.is_dir():
            status.errors.append(f"Workspace root does not exist: {root}")
            status.valid = False
            return status

        existing = [path for path in self.get_content_roots() if path.is_dir()]
        for path in self.get_content_roots():
            if not path.is_dir():
                status.warnings.append(f"Content root not found: {path}")
        if not existing:
            status.errors.append(
                f"No content roots found under {root} (expected {self.notes_dir}/, {self.blog_dir}/ or {self.daily_dir}/)"
            )
            status.valid = False

        if self.link_cache_max_age_minutes < 0:
            status.errors.append("Link cache max age must not be negative")
            status.valid = False

        if self.max_suggestions < 0:
            status.errors.append("Maximum suggestions must not be negative")
            status.valid = False

        if self.max_suggestion_distance < 0:
            status.errors.append("Maximum suggestion distance must not be negative")
            status.valid = False

        return status


def load_workspace_config(root: Path) -> dict[str, Any]:
    """Read the settings stored in ``<root>/.enkidu/config.json``.

    Only ``daily.path`` and the ``links`` object are understood. A missing or
    unreadable file yields no values.
    """
    config_path = root / WORKSPACE_DIR / WORKSPACE_CONFIG
    if not config_path.is_file():
        return {}

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable workspace config {config_path}: {e}")
        return {}

    if not isinstance(raw, dict):
        logger.warning(f"Ignoring workspace config {config_path}: expected a JSON object")
        return {}

    values: dict[str, Any] = {}
    daily = raw.get("daily")
    if isinstance(daily, dict) and isinstance(daily.get("path"), str):
        values["daily_dir"] = daily["path"]

    links = raw.get("links")
    if isinstance(links, dict):
        for key in ("cache_enabled", "cache_path", "cache_max_age_minutes"):
            if key in links:
                values[f"link_{key}"] = links[key]
        for key in ("max_suggestions", "max_suggestion_distance"):
            if key in links:
                values[key] = links[key]

    return values


def find_pkm_root(start: Path | None = None) -> Path | None:
    """Search upwards from ``start`` for a directory holding ``.enkidu/``."""
    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / WORKSPACE_DIR).is_dir():
            return candidate
    return None


def load_settings(root: Path | None = None, **overrides: Any) -> EnkiduSettings:
    """Create a fresh settings instance.

    Args:
        root: Workspace root; falls back to ``ENKIDU_ROOT_DIR`` and then to
            searching upwards from the current directory
        **overrides: Explicit setting values

    Returns:
        New settings instance
    """
    if root is not None:
        return EnkiduSettings.from_root(root, **overrides)

    try:
        settings = EnkiduSettings(**overrides)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e.error_count()} validation errors") from e
    if settings.root_dir:
        return EnkiduSettings.from_root(Path(settings.root_dir).expanduser(), **overrides)

    discovered = find_pkm_root()
    if discovered is not None:
        return EnkiduSettings.from_root(discovered, **overrides)
    return settings
