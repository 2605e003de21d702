"""Google Drive v3 implementation of RemoteStoreGateway."""

from __future__ import annotations

import io
import json
import logging
import os
from typing import Any, Callable, Iterator, Optional, Sequence, TypeVar

from drivemirror.auth import AuthInfo, OAuthClient
from drivemirror.errors import (
    DriveMirrorError,
    HttpErrorInfo,
    InvalidArgumentError,
    RemoteRejected,
    RemoteUnavailable,
    map_http_error,
)
from drivemirror.models import RemoteEntry
from drivemirror.util.mime import DEFAULT_FILE_MIME, FOLDER_MIME, is_download_disallowed
from drivemirror.util.time import parse_rfc3339_or_none

from .base import RemoteStoreGateway

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CHUNK_SIZE: int = 1024 * 1024

# Every RemoteEntry attribute, and nothing the mirror does not store.
FILE_FIELDS: str = ",".join(
    ("id", "name", "mimeType", "parents", "trashed", "createdTime", "modifiedTime", "size")
)
LIST_FIELDS: str = f"nextPageToken,files({FILE_FIELDS})"
LIST_PAGE_SIZE: int = 1000


class GoogleDriveGateway(RemoteStoreGateway):
    """
    Drive API gateway.

    Notes:
        - The Drive `service` object is NOT exposed.
        - `supports_all_drives` is applied to all requests consistently.
        - Errors are classified, never retried.
    """

    DEFAULT_SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/drive",)

    def __init__(
        self,
        auth_info: AuthInfo,
        *,
        scopes: Optional[Sequence[str]] = None,
        root_folder_id: str = "root",
        supports_all_drives: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        use_scopes = list(scopes) if scopes else list(self.DEFAULT_SCOPES)
        client = OAuthClient(auth_info)
        service = client.build_drive_service(use_scopes, ensure_valid=True)
        self._init(service, root_folder_id, supports_all_drives, chunk_size)

    @classmethod
    def from_service(
        cls,
        service: Any,
        *,
        root_folder_id: str = "root",
        supports_all_drives: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> GoogleDriveGateway:
        """Create gateway from a pre-built Drive service (useful for tests)."""
        obj = cls.__new__(cls)
        obj._init(service, root_folder_id, supports_all_drives, chunk_size)
        return obj

    def _init(
        self,
        service: Any,
        root_folder_id: str,
        supports_all_drives: bool,
        chunk_size: int,
    ) -> None:
        self._service = service
        self._root_folder_id = root_folder_id
        self._supports_all_drives = supports_all_drives
        self._chunk_size = chunk_size

    # ----------------------------
    # Public API
    # ----------------------------
    def root_id(self) -> str:
        return self._root_folder_id

    def get(self, remote_id: str) -> RemoteEntry:
        req = self._service.files().get(
            fileId=remote_id,
            fields=FILE_FIELDS,
            **self._drive_kwargs(),
        )
        data = self._execute(req.execute, "get", remote_id)
        return _file_dict_to_entry(data)

    def list(self, parent_remote_id: str, *, include_trashed: bool = False) -> list[RemoteEntry]:
        q = _build_parent_query(parent_remote_id, include_trashed=include_trashed)
        entries: list[RemoteEntry] = []
        page_token: Optional[str] = None

        while True:
            req = self._service.files().list(
                q=q,
                fields=LIST_FIELDS,
                pageSize=LIST_PAGE_SIZE,
                pageToken=page_token,
                **self._drive_kwargs(listing=True),
            )
            data = self._execute(req.execute, "list", parent_remote_id)
            for f in data.get("files", []):
                entries.append(_file_dict_to_entry(f))

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.debug("Listed %d item(s) under %s", len(entries), parent_remote_id)
        return entries

    def create_folder(self, name: str, parent_remote_id: Optional[str] = None) -> RemoteEntry:
        body = {
            "name": name,
            "mimeType": FOLDER_MIME,
            "parents": [parent_remote_id or self._root_folder_id],
        }
        req = self._service.files().create(
            body=body,
            fields=FILE_FIELDS,
            **self._drive_kwargs(),
        )
        data = self._execute(req.execute, "create_folder", parent_remote_id)
        return _file_dict_to_entry(data)

    def upload_file(
        self,
        local_path: str,
        name: str,
        parent_remote_id: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> RemoteEntry:
        if not local_path or not os.path.isfile(local_path):
            raise InvalidArgumentError(
                "local_path must point to an existing file",
                details={"local_path": local_path},
            )

        from googleapiclient.http import MediaFileUpload

        media = MediaFileUpload(
            local_path,
            mimetype=mime_type or DEFAULT_FILE_MIME,
            chunksize=self._chunk_size,
            resumable=True,
        )
        body = {"name": name, "parents": [parent_remote_id or self._root_folder_id]}

        req = self._service.files().create(
            body=body,
            media_body=media,
            fields=FILE_FIELDS,
            **self._drive_kwargs(),
        )
        data = self._execute(req.execute, "upload_file", parent_remote_id)
        return _file_dict_to_entry(data)

    def rename(self, remote_id: str, new_name: str) -> RemoteEntry:
        req = self._service.files().update(
            fileId=remote_id,
            body={"name": new_name},
            fields=FILE_FIELDS,
            **self._drive_kwargs(),
        )
        data = self._execute(req.execute, "rename", remote_id)
        return _file_dict_to_entry(data)

    def move(
        self,
        remote_id: str,
        new_parent_remote_id: str,
        old_parent_remote_id: Optional[str] = None,
    ) -> RemoteEntry:
        """
        Add new_parent and remove the old one(s).

        When the caller does not know the old parent, the current parents
        are fetched first and all of them are removed.
        """
        if old_parent_remote_id is not None:
            remove_parents = old_parent_remote_id
        else:
            current = self._service.files().get(
                fileId=remote_id,
                fields="parents",
                **self._drive_kwargs(),
            )
            current_data = self._execute(current.execute, "move", remote_id)
            old_parents = [p for p in current_data.get("parents", []) if p != new_parent_remote_id]
            remove_parents = ",".join(old_parents)

        req = self._service.files().update(
            fileId=remote_id,
            addParents=new_parent_remote_id,
            removeParents=remove_parents or None,
            fields=FILE_FIELDS,
            **self._drive_kwargs(),
        )
        data = self._execute(req.execute, "move", remote_id)
        return _file_dict_to_entry(data)

    def trash(self, remote_id: str) -> None:
        req = self._service.files().update(
            fileId=remote_id,
            body={"trashed": True},
            fields="id",
            **self._drive_kwargs(),
        )
        self._execute(req.execute, "trash", remote_id)

    def download(self, remote_id: str) -> Iterator[bytes]:
        """
        Stream file bytes chunk by chunk.

        Metadata is checked up front; media chunks are requested only as the
        caller iterates.

        Raises:
            RemoteRejected: for folders and Google-apps documents, which
                have no downloadable media.
        """
        info = self.get(remote_id)
        if is_download_disallowed(info.mime_type):
            raise RemoteRejected(
                "Item has no downloadable content",
                details={"mime_type": info.mime_type, "remote_id": remote_id, "operation": "download"},
            )
        return self._stream_media(remote_id)

    # ----------------------------
    # Internals
    # ----------------------------
    def _stream_media(self, remote_id: str) -> Iterator[bytes]:
        from googleapiclient.http import MediaIoBaseDownload

        req = self._service.files().get_media(
            fileId=remote_id,
            **self._drive_kwargs(),
        )
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, req, chunksize=self._chunk_size)

        try:
            done = False
            while not done:
                _, done = self._execute(downloader.next_chunk, "download", remote_id)
                chunk = buffer.getvalue()
                if chunk:
                    yield chunk
                buffer.seek(0)
                buffer.truncate(0)
        finally:
            buffer.close()

    def _drive_kwargs(self, *, listing: bool = False) -> dict[str, Any]:
        """Shared-drive flags; files.list needs one more than get/create/update."""
        if not self._supports_all_drives:
            return {}
        kwargs: dict[str, Any] = {"supportsAllDrives": True}
        if listing:
            kwargs["includeItemsFromAllDrives"] = True
        return kwargs

    def _execute(self, func: Callable[[], T], operation: str, remote_id: Optional[str]) -> T:
        try:
            return func()
        except Exception as exc:
            mapped = _map_exception(exc)
            mapped.details.setdefault("operation", operation)
            mapped.details.setdefault("remote_id", remote_id)
            logger.debug("Drive %s failed for %s: %s", operation, remote_id, mapped)
            raise mapped from exc


def _map_exception(exc: Exception) -> DriveMirrorError:
    from google.auth.exceptions import GoogleAuthError
    from googleapiclient.errors import HttpError

    if isinstance(exc, HttpError):
        return map_http_error(_http_error_to_info(exc), cause=exc)
    if isinstance(exc, GoogleAuthError):
        return RemoteUnavailable("Drive authentication failed", cause=exc)
    if isinstance(exc, (OSError, TimeoutError)):
        return RemoteUnavailable("Network error", cause=exc)
    return RemoteUnavailable("Drive API error", cause=exc)


def _build_parent_query(parent_id: str, *, include_trashed: bool) -> str:
    escaped = parent_id.replace("\\", "\\\\").replace("'", "\\'")
    clause = f"'{escaped}' in parents"
    return clause if include_trashed else f"({clause}) and trashed=false"


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_size(value: Any) -> Optional[int]:
    # files.get returns int64 fields as decimal strings.
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _file_dict_to_entry(data: dict[str, Any]) -> RemoteEntry:
    parents = data.get("parents")
    return RemoteEntry(
        remote_id=_as_str(data.get("id")),
        name=_as_str(data.get("name")),
        mime_type=_as_str(data.get("mimeType")),
        size_bytes=_as_size(data.get("size")),
        trashed=bool(data.get("trashed", False)),
        created_at=parse_rfc3339_or_none(data.get("createdTime")),
        modified_at=parse_rfc3339_or_none(data.get("modifiedTime")),
        parents=[p for p in parents if isinstance(p, str)] if isinstance(parents, list) else [],
    )


def _error_payload(content: Any) -> dict[str, Any]:
    """The `error` object of a Drive JSON error body, or {} if there is none."""
    if not isinstance(content, (bytes, bytearray)):
        return {}
    try:
        body = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


def _http_error_to_info(exc: Any) -> HttpErrorInfo:
    resp = getattr(exc, "resp", None)
    status_code = getattr(resp, "status", None)
    reason = getattr(resp, "reason", None)

    error = _error_payload(getattr(exc, "content", None))
    first = next(iter(error.get("errors") or []), None)
    details: dict[str, Any] = {}
    if isinstance(first, dict):
        details = {"domain": first.get("domain"), "reason_detail": first.get("reason")}
        # The per-error reason (e.g. rateLimitExceeded) is more specific than the HTTP phrase.
        if isinstance(first.get("reason"), str):
            reason = first["reason"]

    return HttpErrorInfo(
        status_code=status_code if isinstance(status_code, int) else 0,
        reason=reason if isinstance(reason, str) else None,
        message=error.get("message") or None,
        details=details or None,
    )
