"""Typed settings for drivemirror, loaded from YAML."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError

from drivemirror.errors import InvalidArgumentError


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///drivemirror.db"
    echo: bool = False


class DriveConfig(BaseModel):
    root_folder_id: str = "root"
    supports_all_drives: bool = True
    scopes: list[str] = Field(default_factory=lambda: ["https://www.googleapis.com/auth/drive"])
    download_chunk_size: int = Field(default=1024 * 1024, gt=0)


class CrawlConfig(BaseModel):
    max_depth: int = Field(default=64, ge=1)
    # Flag rows the crawl did not observe as trashed (off: rows are only
    # updated from what the remote reports).
    mark_unseen_trashed: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[str] = None


class MirrorSettings(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    drive: DriveConfig = Field(default_factory=DriveConfig)
    crawl: CrawlConfig = Field(default_factory=CrawlConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(path: Union[str, Path, None] = None) -> MirrorSettings:
    """
    Read settings from a YAML file.

    A missing path (or file) yields the defaults.

    Raises:
        InvalidArgumentError: unreadable YAML or values that fail validation.
    """
    import yaml

    if path is None:
        return MirrorSettings()

    p = Path(path)
    if not p.exists():
        return MirrorSettings()

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise InvalidArgumentError(
            "Settings file is not valid YAML",
            details={"path": str(p)},
            cause=exc,
        ) from exc

    if not isinstance(data, dict):
        raise InvalidArgumentError(
            "Settings file must contain a mapping",
            details={"path": str(p), "type": type(data).__name__},
        )

    try:
        return MirrorSettings.model_validate(data)
    except ValidationError as exc:
        raise InvalidArgumentError(
            "Settings file has invalid values",
            details={"path": str(p), "errors": exc.errors(include_url=False)},
            cause=exc,
        ) from exc


def save_settings(settings: MirrorSettings, path: Union[str, Path]) -> None:
    import yaml

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(
        yaml.safe_dump(settings.model_dump(), allow_unicode=True, sort_keys=False),
        encoding="utf-8",
    )
