"""Per-client workspaces.

A workspace bundles everything the browser used to keep in page globals:
view selectors, toasts, open modals, the staged invite list and the pending
attachments. Workspaces are keyed by a client id and created on first use.

Workspaces without a signed-in session are dropped once idle, and the
number kept at once is capped, oldest idle first.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from archive.auth.schemas import Session, SessionEvent
from archive.config import UISettings, UploadSettings
from archive.errors import ValidationFailed
from archive.invites.staging import InviteList
from archive.uploads.schemas import PendingAttachment
from archive.validation import validate_file

from .modals import ModalState
from .state import CharCount, UIState, char_count
from .toasts import ICON_UPLOAD, ICON_WARNING, ToastCenter

logger = logging.getLogger(__name__)


@dataclass
class ClientWorkspace:
    client_id: str
    ui: UIState
    toasts: ToastCenter
    modals: ModalState = field(default_factory=ModalState)
    invites: InviteList = field(default_factory=InviteList)
    attachments: List[PendingAttachment] = field(default_factory=list)
    upload_progress: float = 0.0
    session: Optional[Session] = None
    last_seen: float = 0.0

    @property
    def pending_bytes(self) -> int:
        return sum(a.size for a in self.attachments)


class WorkspaceManager:
    """Creates workspaces, mirrors session changes into them and evicts idle ones."""

    def __init__(
        self,
        ui_settings: Optional[UISettings] = None,
        upload_settings: Optional[UploadSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ui_settings = ui_settings or UISettings()
        self._upload_settings = upload_settings or UploadSettings()
        self._clock = clock
        self._workspaces: Dict[str, ClientWorkspace] = {}
        self._sweep_task: Optional[asyncio.Task] = None  # type: ignore[type-arg]

    def get(self, client_id: str = "default") -> ClientWorkspace:
        workspace = self._workspaces.get(client_id)
        if workspace is None:
            self._make_room()
            workspace = ClientWorkspace(
                client_id=client_id,
                ui=UIState(default_decade=self._ui_settings.default_decade),
                toasts=ToastCenter(duration_seconds=self._ui_settings.toast_duration_seconds),
            )
            self._workspaces[client_id] = workspace
            logger.debug("Created workspace for client %s", client_id)
        workspace.last_seen = self._clock()
        return workspace

    def __len__(self) -> int:
        return len(self._workspaces)

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._workspaces

    # -----------------------------------------------------------------------
    # Eviction
    # -----------------------------------------------------------------------

    async def start(self) -> None:
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(
            "Workspace sweep started (idle=%smin, max=%s)",
            self._ui_settings.workspace_idle_minutes,
            self._ui_settings.max_workspaces,
        )

    async def stop(self) -> None:
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        self._workspaces.clear()

    async def _sweep_loop(self) -> None:
        sweep_interval = max(60, self._ui_settings.workspace_idle_minutes * 60 // 4)
        while True:
            await asyncio.sleep(sweep_interval)
            self.sweep_once()

    def sweep_once(self) -> int:
        """Drop signed-out workspaces idle longer than the configured limit."""
        cutoff = self._clock() - self._ui_settings.workspace_idle_minutes * 60
        idle = [
            client_id for client_id, w in self._workspaces.items()
            if w.session is None and w.last_seen <= cutoff
        ]
        for client_id in idle:
            del self._workspaces[client_id]
        if idle:
            logger.info("Workspace sweep: evicted %d idle workspaces", len(idle))
        return len(idle)

    def _make_room(self) -> None:
        if len(self._workspaces) < self._ui_settings.max_workspaces:
            return
        candidates = [w for w in self._workspaces.values() if w.session is None]
        if not candidates:
            candidates = list(self._workspaces.values())
        oldest = min(candidates, key=lambda w: w.last_seen)
        del self._workspaces[oldest.client_id]
        logger.warning("Workspace limit reached; evicted client %s", oldest.client_id)

    # -----------------------------------------------------------------------
    # Session mirror
    # -----------------------------------------------------------------------

    def handle_session_event(self, event: SessionEvent) -> None:
        """SessionStore listener: update the signing client's UI."""
        if event.kind == "signed_in":
            workspace = self.get(event.session.client_id)
            workspace.session = event.session
            workspace.ui.apply_session(event.session)
            workspace.modals.close("auth-modal")
            return

        workspace = self._workspaces.get(event.session.client_id)
        if workspace is None:
            return
        if workspace.session is None or workspace.session.token == event.session.token:
            workspace.session = None
            workspace.ui.apply_session(None)

    # -----------------------------------------------------------------------
    # Pending attachments
    # -----------------------------------------------------------------------

    def stage_attachment(self, client_id: str, attachment: PendingAttachment) -> ClientWorkspace:
        """Add *attachment* to the pending list after validating it.

        Raises:
            ValidationFailed: The file is too large or of a disallowed type, or
                the pending list is already at its file-count or byte limit.
        """
        workspace = self.get(client_id)
        settings = self._upload_settings
        check = validate_file(
            attachment.name,
            attachment.size,
            attachment.media_type,
            max_size=settings.max_file_size_bytes,
            allowed_types=settings.allowed_mime_types,
        )
        if not check.valid:
            title = "File Too Large" if check.reason == "size" else "Invalid File"
            self._reject(workspace, title, check.error or "Invalid file")

        if len(workspace.attachments) >= settings.max_pending_files:
            self._reject(
                workspace,
                "Too Many Files",
                f"You can attach up to {settings.max_pending_files} files per memory",
            )
        if workspace.pending_bytes + attachment.size > settings.max_pending_bytes:
            limit_mb = settings.max_pending_bytes // (1024 * 1024)
            self._reject(
                workspace,
                "Too Many Files",
                f"Attachments are limited to {limit_mb}MB per memory",
            )

        workspace.attachments.append(attachment)
        workspace.toasts.show("File Added", f'"{attachment.name}" is ready to upload', ICON_UPLOAD)
        return workspace

    @staticmethod
    def _reject(workspace: ClientWorkspace, title: str, message: str) -> None:
        workspace.toasts.show(title, message, ICON_WARNING)
        raise ValidationFailed(message, title=title)

    def remove_attachment(self, client_id: str, index: int) -> PendingAttachment:
        workspace = self.get(client_id)
        if not 0 <= index < len(workspace.attachments):
            raise IndexError(index)
        return workspace.attachments.pop(index)

    def story_counter(self, text: str) -> CharCount:
        return char_count(
            text,
            warning_at=self._ui_settings.story_warning_chars,
            limit=self._ui_settings.story_max_chars,
        )
