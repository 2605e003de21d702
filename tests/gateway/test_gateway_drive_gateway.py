import json
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

from drivemirror.errors import InvalidArgumentError, RemoteRejected, RemoteUnavailable
from drivemirror.gateway.drive_gateway import (
    GoogleDriveGateway,
    _build_parent_query,
    _file_dict_to_entry,
)
from drivemirror.util.mime import FOLDER_MIME
from drivemirror.util.time import to_rfc3339


def _http_error(status: int, reason: str, body=None):
    from googleapiclient.errors import HttpError

    resp = Mock()
    resp.status = status
    resp.reason = reason
    content = json.dumps(body).encode("utf-8") if body is not None else b"{}"
    return HttpError(resp=resp, content=content)


class _FakeDownloader:
    def __init__(self, fd, request, chunksize=None) -> None:
        self._fd = fd
        self._chunks = [b"ab", b"cd"]
        self.calls = 0

    def next_chunk(self):
        self.calls += 1
        self._fd.write(self._chunks.pop(0))
        return None, not self._chunks


class TestDriveGatewayHelpers(unittest.TestCase):
    def test_file_dict_to_entry_parses_times_and_size(self) -> None:
        dt = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        data = {
            "id": "F1",
            "name": "n",
            "mimeType": "text/plain",
            "parents": ["P1"],
            "trashed": False,
            "modifiedTime": to_rfc3339(dt),
            "createdTime": to_rfc3339(dt),
            "size": "123",
        }
        entry = _file_dict_to_entry(data)
        self.assertEqual(entry.remote_id, "F1")
        self.assertEqual(entry.size_bytes, 123)
        self.assertEqual(entry.parents, ["P1"])
        self.assertEqual(entry.modified_at, dt)
        self.assertEqual(entry.created_at, dt)
        self.assertFalse(entry.is_folder)

    def test_file_dict_to_entry_folder_without_size(self) -> None:
        entry = _file_dict_to_entry({"id": "D", "name": "dir", "mimeType": FOLDER_MIME, "trashed": True})
        self.assertTrue(entry.is_folder)
        self.assertTrue(entry.trashed)
        self.assertIsNone(entry.size_bytes)
        self.assertIsNone(entry.modified_at)

    def test_build_parent_query(self) -> None:
        self.assertEqual(
            _build_parent_query("P1", include_trashed=False),
            "('P1' in parents) and trashed=false",
        )
        self.assertEqual(_build_parent_query("P1", include_trashed=True), "'P1' in parents")
        self.assertIn("\\'", _build_parent_query("it's", include_trashed=True))


class TestDriveGatewayMocked(unittest.TestCase):
    def _service(self):
        service = Mock()
        files_resource = Mock()
        service.files.return_value = files_resource
        return service, files_resource

    def test_list_includes_supports_all_drives_kwargs(self) -> None:
        service, files_resource = self._service()
        files_resource.list.return_value.execute.return_value = {"files": []}
        gateway = GoogleDriveGateway.from_service(service, supports_all_drives=True)

        gateway.list("P1", include_trashed=True)

        kwargs = files_resource.list.call_args.kwargs
        self.assertTrue(kwargs.get("supportsAllDrives"))
        self.assertTrue(kwargs.get("includeItemsFromAllDrives"))
        self.assertEqual(kwargs["q"], "'P1' in parents")

    def test_list_without_all_drives(self) -> None:
        service, files_resource = self._service()
        files_resource.list.return_value.execute.return_value = {"files": []}
        gateway = GoogleDriveGateway.from_service(service, supports_all_drives=False)

        gateway.list("P1")

        kwargs = files_resource.list.call_args.kwargs
        self.assertNotIn("supportsAllDrives", kwargs)
        self.assertIn("trashed=false", kwargs["q"])

    def test_list_follows_page_tokens(self) -> None:
        service, files_resource = self._service()
        files_resource.list.return_value.execute.side_effect = [
            {"files": [{"id": "A", "name": "a", "mimeType": "text/plain"}], "nextPageToken": "t2"},
            {"files": [{"id": "B", "name": "b", "mimeType": FOLDER_MIME}]},
        ]
        gateway = GoogleDriveGateway.from_service(service)

        entries = gateway.list("root")

        self.assertEqual([e.remote_id for e in entries], ["A", "B"])
        tokens = [c.kwargs["pageToken"] for c in files_resource.list.call_args_list]
        self.assertEqual(tokens, [None, "t2"])

    def test_get_maps_404_to_remote_rejected_without_retry(self) -> None:
        service, files_resource = self._service()
        req = files_resource.get.return_value
        req.execute.side_effect = _http_error(404, "Not Found")
        gateway = GoogleDriveGateway.from_service(service)

        with self.assertRaises(RemoteRejected) as ctx:
            gateway.get("X")

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.details["operation"], "get")
        self.assertEqual(ctx.exception.details["remote_id"], "X")
        self.assertEqual(req.execute.call_count, 1)

    def test_get_maps_429_to_remote_unavailable_without_retry(self) -> None:
        service, files_resource = self._service()
        req = files_resource.get.return_value
        err_body = {
            "error": {
                "message": "rate limited",
                "errors": [{"reason": "rateLimitExceeded"}],
            }
        }
        req.execute.side_effect = _http_error(429, "Too Many Requests", err_body)
        gateway = GoogleDriveGateway.from_service(service)

        with self.assertRaises(RemoteUnavailable) as ctx:
            gateway.get("X")

        self.assertEqual(str(ctx.exception), "rate limited")
        self.assertEqual(ctx.exception.details["reason"], "rateLimitExceeded")
        self.assertEqual(req.execute.call_count, 1)

    def test_storage_quota_is_rejected(self) -> None:
        service, files_resource = self._service()
        err_body = {"error": {"message": "full", "errors": [{"reason": "storageQuotaExceeded"}]}}
        files_resource.create.return_value.execute.side_effect = _http_error(403, "Forbidden", err_body)
        gateway = GoogleDriveGateway.from_service(service)

        with self.assertRaises(RemoteRejected):
            gateway.create_folder("new", "P1")

    def test_network_and_auth_errors_are_unavailable(self) -> None:
        from google.auth.exceptions import RefreshError

        service, files_resource = self._service()
        req = files_resource.get.return_value
        gateway = GoogleDriveGateway.from_service(service)

        req.execute.side_effect = ConnectionResetError("reset")
        with self.assertRaises(RemoteUnavailable):
            gateway.get("X")

        req.execute.side_effect = RefreshError("expired")
        with self.assertRaises(RemoteUnavailable):
            gateway.get("X")

    def test_create_folder_defaults_to_root_parent(self) -> None:
        service, files_resource = self._service()
        files_resource.create.return_value.execute.return_value = {
            "id": "NF1",
            "name": "new",
            "mimeType": FOLDER_MIME,
            "parents": ["my-root"],
        }
        gateway = GoogleDriveGateway.from_service(service, root_folder_id="my-root")

        entry = gateway.create_folder("new")

        body = files_resource.create.call_args.kwargs["body"]
        self.assertEqual(body["parents"], ["my-root"])
        self.assertEqual(body["mimeType"], FOLDER_MIME)
        self.assertEqual(entry.remote_id, "NF1")
        self.assertEqual(gateway.root_id(), "my-root")

    def test_upload_missing_file_is_invalid_argument(self) -> None:
        service, files_resource = self._service()
        gateway = GoogleDriveGateway.from_service(service)

        with self.assertRaises(InvalidArgumentError):
            gateway.upload_file("/nonexistent/file.bin", "file.bin")
        files_resource.create.assert_not_called()

    def test_move_with_known_old_parent(self) -> None:
        service, files_resource = self._service()
        files_resource.update.return_value.execute.return_value = {
            "id": "F", "name": "f", "mimeType": "text/plain", "parents": ["NEW"],
        }
        gateway = GoogleDriveGateway.from_service(service)

        entry = gateway.move("F", "NEW", "OLD")

        kwargs = files_resource.update.call_args.kwargs
        self.assertEqual(kwargs["addParents"], "NEW")
        self.assertEqual(kwargs["removeParents"], "OLD")
        files_resource.get.assert_not_called()
        self.assertEqual(entry.parents, ["NEW"])

    def test_move_fetches_current_parents_when_old_unknown(self) -> None:
        service, files_resource = self._service()
        files_resource.get.return_value.execute.return_value = {"parents": ["P1", "P2"]}
        files_resource.update.return_value.execute.return_value = {
            "id": "F", "name": "f", "mimeType": "text/plain", "parents": ["NEW"],
        }
        gateway = GoogleDriveGateway.from_service(service)

        gateway.move("F", "NEW")

        self.assertEqual(files_resource.update.call_args.kwargs["removeParents"], "P1,P2")

    def test_trash_sets_trashed_flag(self) -> None:
        service, files_resource = self._service()
        files_resource.update.return_value.execute.return_value = {"id": "F"}
        gateway = GoogleDriveGateway.from_service(service)

        gateway.trash("F")

        kwargs = files_resource.update.call_args.kwargs
        self.assertEqual(kwargs["fileId"], "F")
        self.assertEqual(kwargs["body"], {"trashed": True})

    def test_download_rejects_google_docs(self) -> None:
        service, files_resource = self._service()
        files_resource.get.return_value.execute.return_value = {
            "id": "D", "name": "doc", "mimeType": "application/vnd.google-apps.document",
        }
        gateway = GoogleDriveGateway.from_service(service)

        with self.assertRaises(RemoteRejected):
            gateway.download("D")
        files_resource.get_media.assert_not_called()

    def test_download_streams_chunks_lazily(self) -> None:
        service, files_resource = self._service()
        files_resource.get.return_value.execute.return_value = {
            "id": "F", "name": "f.bin", "mimeType": "application/octet-stream", "size": "4",
        }
        created = []

        def make_downloader(fd, request, chunksize=None):
            d = _FakeDownloader(fd, request, chunksize)
            created.append(d)
            return d

        gateway = GoogleDriveGateway.from_service(service, chunk_size=2)
        with patch("googleapiclient.http.MediaIoBaseDownload", side_effect=make_downloader):
            chunks = gateway.download("F")
            # Nothing requested until iteration starts.
            files_resource.get_media.assert_not_called()
            self.assertEqual(list(chunks), [b"ab", b"cd"])

        self.assertEqual(created[0].calls, 2)

    def test_download_close_stops_requests(self) -> None:
        service, files_resource = self._service()
        files_resource.get.return_value.execute.return_value = {
            "id": "F", "name": "f.bin", "mimeType": "application/octet-stream",
        }
        created = []

        def make_downloader(fd, request, chunksize=None):
            d = _FakeDownloader(fd, request, chunksize)
            created.append(d)
            return d

        gateway = GoogleDriveGateway.from_service(service)
        with patch("googleapiclient.http.MediaIoBaseDownload", side_effect=make_downloader):
            chunks = gateway.download("F")
            self.assertEqual(next(chunks), b"ab")
            chunks.close()

        self.assertEqual(created[0].calls, 1)


if __name__ == "__main__":
    unittest.main()
