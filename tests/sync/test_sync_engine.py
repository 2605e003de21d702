import threading
import unittest
from datetime import datetime, timezone

from drivemirror.errors import (
    CrawlDepthExceededError,
    RemoteRejected,
    RemoteUnavailable,
    SyncInProgressError,
)
from drivemirror.gateway import InMemoryGateway
from drivemirror.mirror import MirrorRepository
from drivemirror.models import NodeAttributes, NodeKind
from drivemirror.sync import ReconciliationEngine

DT = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def _snapshot(repo: MirrorRepository):
    return [
        (n.local_id, n.remote_id, n.name, n.kind, n.parent_local_id, n.size_bytes, n.trashed, n.updated_at)
        for n in repo.all_nodes()
    ]


class TestReconciliationEngine(unittest.TestCase):
    def setUp(self) -> None:
        self.gateway = InMemoryGateway()
        self.repo = MirrorRepository.from_url("sqlite:///:memory:")

        # root
        # ├── Docs/
        # │   ├── Nested/
        # │   │   └── deep.txt
        # │   └── report.pdf
        # ├── Old/ (trashed)
        # │   └── hidden.txt
        # └── readme.md
        self.docs = self.gateway.add_folder("Docs", remote_id="docs")
        self.nested = self.gateway.add_folder("Nested", "docs", remote_id="nested")
        self.gateway.add_file("deep.txt", "nested", content=b"deep", remote_id="deep", modified_at=DT)
        self.gateway.add_file("report.pdf", "docs", content=b"pdf!", remote_id="report", modified_at=DT)
        self.gateway.add_folder("Old", remote_id="old", trashed=True)
        self.gateway.add_file("hidden.txt", "old", remote_id="hidden", modified_at=DT)
        self.gateway.add_file("readme.md", content=b"# hi", remote_id="readme", modified_at=DT)

        self.engine = ReconciliationEngine(self.gateway, self.repo)

    def test_crawl_mirrors_tree(self) -> None:
        result = self.engine.run()

        self.assertEqual(result.files_discovered, 3)
        self.assertEqual(result.folders_discovered, 3)
        self.assertEqual(result.unseen_trashed, 0)

        docs = self.repo.find_by_remote_id("docs")
        nested = self.repo.find_by_remote_id("nested")
        deep = self.repo.find_by_remote_id("deep")
        readme = self.repo.find_by_remote_id("readme")

        self.assertIsNone(docs.parent_local_id)
        self.assertEqual(nested.parent_local_id, docs.local_id)
        self.assertEqual(deep.parent_local_id, nested.local_id)
        self.assertIsNone(readme.parent_local_id)
        self.assertEqual(deep.size_bytes, 4)
        self.assertEqual(docs.kind, NodeKind.FOLDER)
        self.assertIsNone(docs.size_bytes)
        self.assertEqual(deep.remote_modified_at, DT)

    def test_root_is_never_stored(self) -> None:
        self.engine.run()
        self.assertIsNone(self.repo.find_by_remote_id("root"))

    def test_trashed_folder_recorded_but_not_descended(self) -> None:
        self.engine.run()

        old = self.repo.find_by_remote_id("old")
        self.assertTrue(old.trashed)
        self.assertIsNone(self.repo.find_by_remote_id("hidden"))
        self.assertNotIn(("list", "old", True), self.gateway.calls)

    def test_trashed_entries_are_listed_and_mirrored(self) -> None:
        self.gateway.add_file("gone.txt", "docs", remote_id="gone", trashed=True)
        result = self.engine.run()

        self.assertTrue(self.repo.find_by_remote_id("gone").trashed)
        self.assertEqual(result.files_discovered, 4)
        for call in self.gateway.calls_of("list"):
            self.assertTrue(call[2])

    def test_crawl_is_idempotent(self) -> None:
        first = self.engine.run()
        rows_after_first = _snapshot(self.repo)

        second = self.engine.run()

        self.assertEqual(_snapshot(self.repo), rows_after_first)
        self.assertEqual(
            (first.files_discovered, first.folders_discovered),
            (second.files_discovered, second.folders_discovered),
        )

    def test_recrawl_picks_up_remote_changes(self) -> None:
        self.engine.run()
        before = self.repo.find_by_remote_id("report")

        self.gateway.rename("report", "report-v2.pdf")
        self.gateway.move("report", "nested", "docs")
        self.engine.run()

        after = self.repo.find_by_remote_id("report")
        self.assertEqual(after.local_id, before.local_id)
        self.assertEqual(after.name, "report-v2.pdf")
        self.assertEqual(after.parent_local_id, self.repo.find_by_remote_id("nested").local_id)

    def test_counts_follow_remote_mime_when_stored_kind_disagrees(self) -> None:
        # A stale row recorded "docs" as a file before it became a folder remotely.
        self.repo.upsert_by_remote_id("docs", NodeAttributes(name="Docs", kind=NodeKind.FILE, mime_type="text/plain"))

        with self.assertLogs("drivemirror.mirror.repository", level="WARNING"):
            result = self.engine.run()

        # docs and old are folders remotely; docs is not descended, so only readme.md is a file.
        self.assertEqual(result.folders_discovered, 2)
        self.assertEqual(result.files_discovered, 1)
        self.assertEqual(self.repo.find_by_remote_id("docs").kind, NodeKind.FILE)
        self.assertIsNone(self.repo.find_by_remote_id("nested"))

    def test_unseen_rows_are_left_alone_by_default(self) -> None:
        self.engine.run()
        self.gateway.remove("readme")

        self.engine.run()

        self.assertFalse(self.repo.find_by_remote_id("readme").trashed)

    def test_mark_unseen_trashed(self) -> None:
        engine = ReconciliationEngine(self.gateway, self.repo, mark_unseen_trashed=True)
        engine.run()
        self.gateway.remove("readme")

        result = engine.run()

        self.assertEqual(result.unseen_trashed, 1)
        self.assertTrue(self.repo.find_by_remote_id("readme").trashed)

    def test_error_on_root_listing_aborts_before_any_write(self) -> None:
        self.gateway.fail_next("list", RemoteUnavailable("offline"))

        with self.assertRaises(RemoteUnavailable):
            self.engine.run()

        self.assertIsNone(self.engine.last_result)
        self.assertEqual(self.repo.all_nodes(), [])

    def test_failure_mid_crawl_keeps_earlier_upserts(self) -> None:
        engine = ReconciliationEngine(_FailOnParent(self.gateway, "nested"), self.repo)

        with self.assertRaises(RemoteRejected):
            engine.run()

        self.assertIsNotNone(self.repo.find_by_remote_id("docs"))
        self.assertIsNotNone(self.repo.find_by_remote_id("nested"))
        self.assertIsNone(self.repo.find_by_remote_id("deep"))
        self.assertFalse(engine.is_running)

    def test_depth_limit(self) -> None:
        engine = ReconciliationEngine(self.gateway, self.repo, max_depth=1)
        with self.assertRaises(CrawlDepthExceededError):
            engine.run()

        engine = ReconciliationEngine(self.gateway, self.repo, max_depth=2)
        engine.run()

    def test_single_flight(self) -> None:
        started = threading.Event()
        release = threading.Event()
        gateway = _BlockingGateway(self.gateway, started, release)
        engine = ReconciliationEngine(gateway, self.repo)
        outcome = {}

        def worker() -> None:
            outcome["result"] = engine.run()

        t = threading.Thread(target=worker)
        t.start()
        try:
            self.assertTrue(started.wait(5))
            self.assertTrue(engine.is_running)
            with self.assertRaises(SyncInProgressError):
                engine.run()
        finally:
            release.set()
            t.join(5)

        self.assertFalse(engine.is_running)
        self.assertEqual(outcome["result"].files_discovered, 3)
        self.assertIs(engine.last_result, outcome["result"])


class _FailOnParent:
    """Gateway wrapper whose listing of one folder is rejected."""

    def __init__(self, inner: InMemoryGateway, parent_id: str) -> None:
        self._inner = inner
        self._parent_id = parent_id

    def root_id(self) -> str:
        return self._inner.root_id()

    def list(self, parent_remote_id, *, include_trashed=False):
        if parent_remote_id == self._parent_id:
            raise RemoteRejected("forbidden", details={"status_code": 403})
        return self._inner.list(parent_remote_id, include_trashed=include_trashed)


class _BlockingGateway:
    """Gateway wrapper that parks the first listing until released."""

    def __init__(self, inner: InMemoryGateway, started: threading.Event, release: threading.Event) -> None:
        self._inner = inner
        self._started = started
        self._release = release

    def root_id(self) -> str:
        return self._inner.root_id()

    def list(self, parent_remote_id, *, include_trashed=False):
        if not self._started.is_set():
            self._started.set()
            self._release.wait(5)
        return self._inner.list(parent_remote_id, include_trashed=include_trashed)


if __name__ == "__main__":
    unittest.main()
