from __future__ import annotations

import mimetypes
from typing import Optional

# The only signal that a remote entry is a folder.
FOLDER_MIME: str = "application/vnd.google-apps.folder"

DEFAULT_FILE_MIME: str = "application/octet-stream"

GOOGLE_APPS_PREFIX: str = "application/vnd.google-apps."


def is_folder(mime_type: Optional[str]) -> bool:
    return mime_type == FOLDER_MIME


def is_google_app(mime_type: Optional[str]) -> bool:
    """Docs, Sheets, Slides, Forms, ... and any future Google-native type."""
    return bool(mime_type) and mime_type.startswith(GOOGLE_APPS_PREFIX)


def is_download_disallowed(mime_type: Optional[str]) -> bool:
    """
    Folders and Google-native documents have no media to stream.

    Exporting native documents to another format is not supported.
    """
    return is_folder(mime_type) or is_google_app(mime_type)


def guess_mime_type(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or DEFAULT_FILE_MIME
