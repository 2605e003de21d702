"""DriveMirror: the public facade over crawl, queries and mutations."""

from __future__ import annotations

import logging
from typing import Optional

from drivemirror.audit import SYNC_COMPLETED, AuditEvent, AuditNotifier, NullAuditNotifier, notify_safely
from drivemirror.auth import AuthInfo
from drivemirror.config import MirrorSettings
from drivemirror.errors import NotFoundError
from drivemirror.gateway import GoogleDriveGateway, RemoteStoreGateway
from drivemirror.mirror import MirrorRepository
from drivemirror.models import NodeView, SyncResult, SyncStatus, TreeNode
from drivemirror.mutation import DownloadStream, MutationCoordinator
from drivemirror.sync import ReconciliationEngine
from drivemirror.tree import breadcrumbs

logger = logging.getLogger(__name__)


class DriveMirror:
    """
    Local mirror of a Drive tree.

    - sync() re-crawls the remote tree into the mirror.
    - list_children()/get_node() answer from the mirror only.
    - upload/create_folder/rename/move/trash/download go remote first,
      then update the mirror.
    """

    def __init__(
        self,
        auth_info: AuthInfo,
        settings: Optional[MirrorSettings] = None,
        *,
        notifier: Optional[AuditNotifier] = None,
    ) -> None:
        use_settings = settings or MirrorSettings()
        gateway = GoogleDriveGateway(
            auth_info,
            scopes=use_settings.drive.scopes,
            root_folder_id=use_settings.drive.root_folder_id,
            supports_all_drives=use_settings.drive.supports_all_drives,
            chunk_size=use_settings.drive.download_chunk_size,
        )
        repository = MirrorRepository.from_url(
            use_settings.database.url,
            echo=use_settings.database.echo,
        )
        self._init(gateway, repository, use_settings, notifier)

    @classmethod
    def from_components(
        cls,
        gateway: RemoteStoreGateway,
        repository: MirrorRepository,
        *,
        settings: Optional[MirrorSettings] = None,
        notifier: Optional[AuditNotifier] = None,
    ) -> DriveMirror:
        """Create a mirror from an injected gateway and repository (useful for tests)."""
        obj = cls.__new__(cls)
        obj._init(gateway, repository, settings or MirrorSettings(), notifier)
        return obj

    def _init(
        self,
        gateway: RemoteStoreGateway,
        repository: MirrorRepository,
        settings: MirrorSettings,
        notifier: Optional[AuditNotifier],
    ) -> None:
        self._gateway = gateway
        self._repository = repository
        self._settings = settings
        self._notifier: AuditNotifier = notifier or NullAuditNotifier()
        self._engine = ReconciliationEngine(
            gateway,
            repository,
            max_depth=settings.crawl.max_depth,
            mark_unseen_trashed=settings.crawl.mark_unseen_trashed,
        )
        self._coordinator = MutationCoordinator(gateway, repository, notifier=self._notifier)

    @property
    def settings(self) -> MirrorSettings:
        return self._settings

    @property
    def repository(self) -> MirrorRepository:
        return self._repository

    # ----------------------------
    # Crawl
    # ----------------------------
    def sync(self, *, actor_id: Optional[str] = None) -> SyncResult:
        """Full crawl. Errors propagate; nothing is audited on failure."""
        result = self._engine.run()
        notify_safely(
            self._notifier,
            AuditEvent(
                action=SYNC_COMPLETED,
                actor_id=actor_id,
                metadata={"files": result.files_discovered, "folders": result.folders_discovered},
            ),
        )
        return result

    def sync_status(self) -> SyncStatus:
        return SyncStatus(
            state="running" if self._engine.is_running else "idle",
            updated_at=self._repository.last_updated_at(),
            last_result=self._engine.last_result,
        )

    # ----------------------------
    # Queries
    # ----------------------------
    def list_children(
        self,
        parent_local_id: Optional[int] = None,
        search_term: Optional[str] = None,
        *,
        include_trashed: bool = False,
    ) -> list[TreeNode]:
        """
        Children of a folder (None = root), folders first then by name.

        A search term without a parent searches the whole mirror (trashed
        nodes are never part of a global search); with a parent it filters
        that folder's children.
        """
        term = search_term.strip() if search_term else None
        if term and parent_local_id is None:
            return self._repository.search(term)
        return self._repository.children_of(
            parent_local_id,
            include_trashed=include_trashed,
            name_contains=term,
        )

    def get_node(self, local_id: int) -> NodeView:
        node = self._repository.find_by_local_id(local_id)
        if node.trashed:
            raise NotFoundError(f"Node is trashed: {local_id}", details={"local_id": local_id})

        children = self._repository.children_of(local_id) if node.is_folder else []
        return NodeView(
            node=node,
            breadcrumbs=breadcrumbs(node, self._repository.get),
            children=children,
        )

    # ----------------------------
    # Mutations
    # ----------------------------
    def upload(
        self,
        local_path: str,
        parent_local_id: Optional[int] = None,
        *,
        name: Optional[str] = None,
        mime_type: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> TreeNode:
        return self._coordinator.upload(
            local_path,
            parent_local_id,
            name=name,
            mime_type=mime_type,
            actor_id=actor_id,
        )

    def create_folder(
        self,
        name: str,
        parent_local_id: Optional[int] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> TreeNode:
        return self._coordinator.create_folder(name, parent_local_id, actor_id=actor_id)

    def rename(self, local_id: int, new_name: str, *, actor_id: Optional[str] = None) -> TreeNode:
        return self._coordinator.rename(local_id, new_name, actor_id=actor_id)

    def move(
        self,
        local_id: int,
        new_parent_local_id: Optional[int] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> TreeNode:
        return self._coordinator.move(local_id, new_parent_local_id, actor_id=actor_id)

    def trash(self, local_id: int, *, actor_id: Optional[str] = None) -> TreeNode:
        return self._coordinator.trash(local_id, actor_id=actor_id)

    def download(self, local_id: int) -> DownloadStream:
        return self._coordinator.download(local_id)
