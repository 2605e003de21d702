import unittest
from unittest.mock import patch

from drivemirror.audit import CallbackAuditNotifier
from drivemirror.auth import AuthInfo
from drivemirror.config import MirrorSettings
from drivemirror.errors import NotFoundError, RemoteUnavailable
from drivemirror.gateway import InMemoryGateway
from drivemirror.manager import DriveMirror
from drivemirror.mirror import MirrorRepository
from drivemirror.models import Breadcrumb


class TestDriveMirror(unittest.TestCase):
    def setUp(self) -> None:
        self.gateway = InMemoryGateway()
        self.gateway.add_folder("Projects", remote_id="projects")
        self.gateway.add_folder("Alpha", "projects", remote_id="alpha")
        self.gateway.add_file("plan.md", "alpha", content=b"plan", remote_id="plan")
        self.gateway.add_file("Budget.xlsx", "projects", content=b"1234", remote_id="budget")
        self.gateway.add_file("budget-notes.txt", content=b"n", remote_id="notes")

        self.repo = MirrorRepository.from_url("sqlite:///:memory:")
        self.events = []
        self.mirror = DriveMirror.from_components(
            self.gateway,
            self.repo,
            notifier=CallbackAuditNotifier(self.events.append),
        )

    def local_id(self, remote_id: str) -> int:
        return self.repo.find_by_remote_id(remote_id).local_id

    def test_sync_reports_counts_and_audits(self) -> None:
        result = self.mirror.sync(actor_id="admin")

        self.assertEqual(result.files_discovered, 3)
        self.assertEqual(result.folders_discovered, 2)

        event = self.events[-1]
        self.assertEqual(event.action, "sync_completed")
        self.assertEqual(event.actor_id, "admin")
        self.assertEqual(event.metadata, {"files": 3, "folders": 2})

    def test_failed_sync_is_not_audited(self) -> None:
        self.gateway.fail_next("list", RemoteUnavailable("offline"))
        with self.assertRaises(RemoteUnavailable):
            self.mirror.sync()
        self.assertEqual(self.events, [])

    def test_sync_status(self) -> None:
        status = self.mirror.sync_status()
        self.assertEqual(status.state, "idle")
        self.assertIsNone(status.updated_at)
        self.assertIsNone(status.last_result)

        result = self.mirror.sync()
        status = self.mirror.sync_status()
        self.assertEqual(status.state, "idle")
        self.assertIsNotNone(status.updated_at)
        self.assertIs(status.last_result, result)

    def test_list_children_root_and_folder(self) -> None:
        self.mirror.sync()

        names = [n.name for n in self.mirror.list_children()]
        self.assertEqual(names, ["Projects", "budget-notes.txt"])

        names = [n.name for n in self.mirror.list_children(self.local_id("projects"))]
        self.assertEqual(names, ["Alpha", "Budget.xlsx"])

    def test_list_children_search(self) -> None:
        self.mirror.sync()

        names = [n.name for n in self.mirror.list_children(search_term="budget")]
        self.assertEqual(names, ["Budget.xlsx", "budget-notes.txt"])

        names = [n.name for n in self.mirror.list_children(self.local_id("projects"), "  budget ")]
        self.assertEqual(names, ["Budget.xlsx"])

    def test_list_children_include_trashed(self) -> None:
        self.mirror.sync()
        notes_id = self.local_id("notes")
        self.mirror.trash(notes_id)

        self.assertNotIn(notes_id, [n.local_id for n in self.mirror.list_children()])
        self.assertIn(notes_id, [n.local_id for n in self.mirror.list_children(include_trashed=True)])

    def test_get_node_with_breadcrumbs_and_children(self) -> None:
        self.mirror.sync()
        alpha_id = self.local_id("alpha")

        view = self.mirror.get_node(alpha_id)

        self.assertEqual(view.node.name, "Alpha")
        self.assertEqual([c.name for c in view.children], ["plan.md"])
        self.assertEqual(
            view.breadcrumbs,
            [
                Breadcrumb(None, "Home", None),
                Breadcrumb(self.local_id("projects"), "Projects", "projects"),
                Breadcrumb(alpha_id, "Alpha", "alpha"),
            ],
        )

    def test_get_node_file_has_no_children(self) -> None:
        self.mirror.sync()
        view = self.mirror.get_node(self.local_id("plan"))
        self.assertEqual(view.children, [])
        self.assertEqual(len(view.breadcrumbs), 4)

    def test_get_node_hides_trashed_children(self) -> None:
        self.mirror.sync()
        self.mirror.trash(self.local_id("plan"))

        view = self.mirror.get_node(self.local_id("alpha"))
        self.assertEqual(view.children, [])

    def test_get_node_missing_or_trashed(self) -> None:
        self.mirror.sync()
        with self.assertRaises(NotFoundError):
            self.mirror.get_node(9999)

        budget_id = self.local_id("budget")
        self.mirror.trash(budget_id)
        with self.assertRaises(NotFoundError):
            self.mirror.get_node(budget_id)

    def test_mutations_delegate(self) -> None:
        self.mirror.sync()
        projects_id = self.local_id("projects")

        folder = self.mirror.create_folder("Beta", projects_id, actor_id="u1")
        renamed = self.mirror.rename(folder.local_id, "Gamma")
        moved = self.mirror.move(renamed.local_id, None)

        self.assertIsNone(moved.parent_local_id)
        self.assertEqual(self.gateway.get(folder.remote_id).name, "Gamma")
        self.assertEqual(
            [e.action for e in self.events[-3:]],
            ["folder_created", "folder_renamed", "folder_moved"],
        )

        with self.mirror.download(self.local_id("plan")) as stream:
            self.assertEqual(stream.read(), b"plan")

    def test_mutation_then_sync_converges(self) -> None:
        self.mirror.sync()
        folder = self.mirror.create_folder("Beta")

        self.mirror.sync()

        same = self.repo.find_by_remote_id(folder.remote_id)
        self.assertEqual(same.local_id, folder.local_id)
        self.assertEqual(len([n for n in self.repo.all_nodes() if n.name == "Beta"]), 1)

    def test_settings_drive_engine_options(self) -> None:
        settings = MirrorSettings()
        settings.crawl.mark_unseen_trashed = True
        mirror = DriveMirror.from_components(self.gateway, self.repo, settings=settings)
        mirror.sync()
        self.gateway.remove("notes")

        result = mirror.sync()

        self.assertEqual(result.unseen_trashed, 1)
        self.assertIs(mirror.settings, settings)

    def test_init_builds_drive_gateway_and_repository(self) -> None:
        settings = MirrorSettings()
        settings.database.url = "sqlite:///:memory:"
        settings.drive.root_folder_id = "shared-root"
        info = AuthInfo.from_refresh_token("cid", "secret", "rtok")

        with patch("drivemirror.gateway.drive_gateway.OAuthClient") as client_cls:
            mirror = DriveMirror(info, settings)

        client_cls.assert_called_once_with(info)
        client_cls.return_value.build_drive_service.assert_called_once_with(
            settings.drive.scopes,
            ensure_valid=True,
        )
        self.assertEqual(mirror.sync_status().state, "idle")
        self.assertEqual(mirror.repository.all_nodes(), [])


if __name__ == "__main__":
    unittest.main()
