from .mime import (
    DEFAULT_FILE_MIME,
    FOLDER_MIME,
    GOOGLE_APPS_PREFIX,
    guess_mime_type,
    is_download_disallowed,
    is_folder,
    is_google_app,
)
from .size import format_size
from .time import (
    as_utc,
    normalize_dt,
    now_utc,
    or_now,
    parse_rfc3339,
    parse_rfc3339_or_none,
    to_rfc3339,
)

__all__ = [
    "FOLDER_MIME",
    "DEFAULT_FILE_MIME",
    "GOOGLE_APPS_PREFIX",
    "is_folder",
    "is_google_app",
    "is_download_disallowed",
    "guess_mime_type",
    "format_size",
    "now_utc",
    "or_now",
    "as_utc",
    "parse_rfc3339",
    "parse_rfc3339_or_none",
    "to_rfc3339",
    "normalize_dt",
]
