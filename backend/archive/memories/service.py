"""MemoryService — memory submission and archive queries.

A memory is written in two phases. Phase 1 inserts the record with an
empty ``images`` list; phase 2 uploads the pending attachments and patches
the succeeded URLs into the record. Between the two phases the record is
visible without its attachments, and if the patch fails it stays that way
(the uploaded blobs are deleted so nothing is orphaned in storage).
"""
import logging
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from archive.auth.schemas import Session
from archive.backends import SERVER_TIMESTAMP, Backends, DocumentStore, Increment, with_deadline
from archive.config import DECADE_LABELS, UploadSettings
from archive.errors import ArchiveError, NotAuthenticated, NotFound, ValidationFailed
from archive.ui.toasts import ICON_MAIL, ICON_PARTY, ICON_WARNING, ToastCenter, notify
from archive.uploads.orchestrator import BatchProgressCallback, UploadOrchestrator
from archive.uploads.schemas import PendingAttachment, UploadSuccess

from .schemas import (
    DECADE_TAGLINES,
    DECADES,
    MEMORIES,
    NOTIFICATIONS,
    REACTION_TYPES,
    USERS,
    CommunityStats,
    DecadeStats,
    MemoryDraft,
    MemoryPage,
    SubmissionResult,
    comments_collection,
)
from .side_effects import BestEffortRunner

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEARCH_WINDOW = 100


def _require_decade(decade: str) -> str:
    if decade not in DECADE_LABELS:
        raise ValidationFailed(f'Unknown decade "{decade}"')
    return decade


def _release(pending: List[PendingAttachment], attachments: List[PendingAttachment]) -> None:
    """Drop *attachments* from *pending* by identity; files staged since stay put."""
    claimed = {id(a) for a in attachments}
    pending[:] = [a for a in pending if id(a) not in claimed]


class MemoryService:
    """Creates memories and answers timeline / community queries.

    Args:
        backends: Backend container; documents are required for every call,
            blobs only when a submission carries attachments.
        side_effects: Runner for counter and notification writes.
        upload_settings: Passed through to the upload orchestrator.
        call_timeout: Deadline in seconds for each backend call.
    """

    def __init__(
        self,
        backends: Backends,
        side_effects: Optional[BestEffortRunner] = None,
        upload_settings: Optional[UploadSettings] = None,
        call_timeout: float = 30.0,
    ) -> None:
        self._backends = backends
        self._side_effects = side_effects or BestEffortRunner()
        self._upload_settings = upload_settings or UploadSettings()
        self._call_timeout = call_timeout

    @property
    def side_effects(self) -> BestEffortRunner:
        return self._side_effects

    def _documents(self) -> DocumentStore:
        return self._backends.require_documents()

    async def _call(self, awaitable: Awaitable[T], operation: str) -> T:
        return await with_deadline(awaitable, self._call_timeout, operation)

    # -----------------------------------------------------------------------
    # Submission
    # -----------------------------------------------------------------------

    async def submit(
        self,
        session: Optional[Session],
        draft: MemoryDraft,
        pending: List[PendingAttachment],
        toasts: Optional[ToastCenter] = None,
        on_progress: Optional[BatchProgressCallback] = None,
    ) -> SubmissionResult:
        """Create a memory and attach the files in *pending*.

        *pending* is the client's pending-attachment list. The submission
        takes the files present when it starts; files that fail to upload are
        removed from the list, and the rest are removed once the record holds
        them. Files staged while the submission runs are left pending.

        Raises:
            NotAuthenticated: Without a session.
            ValidationFailed: When title, decade or story is missing.
            BackendError: When the insert or the attachment patch fails.
        """
        try:
            if session is None:
                raise NotAuthenticated("Please sign in to contribute memories")
            title = draft.title.strip()
            story = draft.story.strip()
            decade = draft.decade.strip()
            if not title or not decade or not story:
                raise ValidationFailed("Please fill in all required fields")
            _require_decade(decade)

            documents = self._documents()
            attachments = list(pending)
            orchestrator: Optional[UploadOrchestrator] = None
            if attachments:
                orchestrator = UploadOrchestrator(
                    self._backends.require_blobs(),
                    self._upload_settings,
                    call_timeout=self._call_timeout,
                )

            memory_id = await self._call(
                documents.create(MEMORIES, {
                    "title": title,
                    "decade": decade,
                    "story": story,
                    "memoryType": draft.memory_type.value,
                    "authorId": session.user_id,
                    "authorName": session.label,
                    "authorEmail": session.email,
                    "createdAt": SERVER_TIMESTAMP,
                    "updatedAt": SERVER_TIMESTAMP,
                    "images": [],
                    "reactions": {t: 0 for t in REACTION_TYPES},
                    "commentCount": 0,
                }),
                "Saving memory",
            )
        except ArchiveError as e:
            logger.error("Error adding memory: %s", e.message)
            notify(toasts, e.title, e.message, ICON_WARNING)
            raise

        logger.info("[memories] Created %s in %s by %s", memory_id, decade, session.user_id)

        self._side_effects.schedule(
            self._call(self._record_contribution(decade, session.user_id), "Updating decade counter"),
            f"decade counter {decade}",
        )
        self._side_effects.schedule(
            self._call(
                self._record_notification(memory_id, decade, title, session.label),
                "Recording notification",
            ),
            f"notification for {memory_id}",
        )

        result = SubmissionResult(memory_id=memory_id)
        if orchestrator is not None:
            result = await self._attach(
                session, orchestrator, memory_id, attachments, pending, toasts, on_progress
            )
        _release(pending, attachments)

        notify(toasts, "Memory Added!", f"Your memory has been added to the {decade}", ICON_PARTY)
        notify(toasts, "Notifications Sent", f"Alumni from the {decade} will be notified", ICON_MAIL)
        return result

    async def _attach(
        self,
        session: Session,
        orchestrator: UploadOrchestrator,
        memory_id: str,
        attachments: List[PendingAttachment],
        pending: List[PendingAttachment],
        toasts: Optional[ToastCenter],
        on_progress: Optional[BatchProgressCallback],
    ) -> SubmissionResult:
        uploads = await orchestrator.upload_many(session, attachments, memory_id, on_progress)
        result = SubmissionResult.build(memory_id, uploads)

        _release(pending, [a for a, u in zip(attachments, uploads) if not u.ok])

        if result.dropped:
            logger.warning("[memories] %s: dropped %d attachment(s)", memory_id, len(result.dropped))
            notify(
                toasts,
                "Some Files Skipped",
                f"{len(result.dropped)} file(s) could not be uploaded: {', '.join(result.dropped)}",
                ICON_WARNING,
            )

        if not result.images:
            return result

        try:
            await self._call(
                self._documents().patch(MEMORIES, memory_id, {
                    "images": result.images,
                    "updatedAt": SERVER_TIMESTAMP,
                }),
                "Attaching files",
            )
        except Exception as e:
            await self._discard_blobs([u for u in uploads if isinstance(u, UploadSuccess)])
            message = e.message if isinstance(e, ArchiveError) else str(e)
            title = e.title if isinstance(e, ArchiveError) else "Something Went Wrong"
            logger.error("Error attaching files to memory %s: %s", memory_id, message)
            notify(toasts, title, message, ICON_WARNING)
            raise
        return result

    async def _discard_blobs(self, uploads: List[UploadSuccess]) -> None:
        blobs = self._backends.require_blobs()
        for upload in uploads:
            try:
                await self._call(blobs.delete(upload.path), f'Deleting "{upload.name}"')
            except Exception as e:
                logger.warning("Could not delete orphaned blob %s: %s", upload.path, e)

    async def _record_contribution(self, decade: str, user_id: str) -> None:
        documents = self._documents()
        async with documents.transaction() as txn:
            fields: Dict[str, Any] = {
                "memoryCount": Increment(1),
                "lastUpdated": SERVER_TIMESTAMP,
            }
            contributors = f"{DECADES}/{decade}/contributors"
            if await txn.get(contributors, user_id) is None:
                await txn.set(contributors, user_id, {"userId": user_id, "since": SERVER_TIMESTAMP})
                fields["contributorCount"] = Increment(1)
            await txn.set(DECADES, decade, fields, merge=True)

    async def _record_notification(
        self, memory_id: str, decade: str, title: str, author_name: str
    ) -> None:
        await self._documents().create(NOTIFICATIONS, {
            "type": "new_memory",
            "memoryId": memory_id,
            "decade": decade,
            "title": title,
            "authorName": author_name,
            "createdAt": SERVER_TIMESTAMP,
            "processed": False,
        })

    # -----------------------------------------------------------------------
    # Memories
    # -----------------------------------------------------------------------

    async def get_memories_by_decade(
        self, decade: str, limit: int = 20, cursor: Optional[str] = None
    ) -> MemoryPage:
        """Newest-first page of a decade's memories; pass ``cursor`` for the next page."""
        _require_decade(decade)
        page = await self._call(
            self._documents().query(
                MEMORIES,
                where=[("decade", decade)],
                order_by="createdAt",
                descending=True,
                limit=limit,
                start_after=cursor,
            ),
            "Loading memories",
        )
        return MemoryPage(memories=page.items, cursor=page.cursor, has_more=page.has_more)

    async def get_memory(self, memory_id: str) -> Optional[Dict[str, Any]]:
        return await self._call(self._documents().get(MEMORIES, memory_id), "Loading memory")

    async def search_memories(self, term: str, decade: Optional[str] = None) -> List[Dict[str, Any]]:
        """Case-insensitive title/story match over the most recent memories."""
        where = [("decade", _require_decade(decade))] if decade else []
        page = await self._call(
            self._documents().query(
                MEMORIES,
                where=where,
                order_by="createdAt",
                descending=True,
                limit=SEARCH_WINDOW,
            ),
            "Searching memories",
        )
        needle = term.strip().lower()
        return [
            m for m in page.items
            if needle in str(m.get("title", "")).lower()
            or needle in str(m.get("story", "")).lower()
        ]

    # -----------------------------------------------------------------------
    # Comments
    # -----------------------------------------------------------------------

    async def add_comment(
        self,
        session: Optional[Session],
        memory_id: str,
        text: str,
        toasts: Optional[ToastCenter] = None,
    ) -> Dict[str, Any]:
        try:
            if session is None:
                raise NotAuthenticated("Please sign in to comment")
            text = text.strip()
            if not text:
                raise ValidationFailed("Comment cannot be empty")

            documents = self._documents()
            collection = comments_collection(memory_id)
            async with documents.transaction() as txn:
                if await txn.get(MEMORIES, memory_id) is None:
                    raise NotFound(f"Memory {memory_id} not found")
                comment_id = await txn.create(collection, {
                    "memoryId": memory_id,
                    "authorId": session.user_id,
                    "authorName": session.label,
                    "text": text,
                    "createdAt": SERVER_TIMESTAMP,
                })
                await txn.patch(MEMORIES, memory_id, {"commentCount": Increment(1)})
                comment = await txn.get(collection, comment_id)
        except ArchiveError as e:
            notify(toasts, e.title, e.message, ICON_WARNING)
            raise
        logger.info("[memories] Comment %s on %s by %s", comment_id, memory_id, session.user_id)
        return comment or {"id": comment_id}

    async def get_comments(self, memory_id: str) -> List[Dict[str, Any]]:
        page = await self._call(
            self._documents().query(comments_collection(memory_id), order_by="createdAt"),
            "Loading comments",
        )
        return page.items

    # -----------------------------------------------------------------------
    # Stats
    # -----------------------------------------------------------------------

    async def get_decade_stats(self) -> List[DecadeStats]:
        """All eight decades, stored counters merged over the default taglines."""
        page = await self._call(self._documents().query(DECADES), "Loading decade stats")
        stored = {d["id"]: d for d in page.items}
        stats = []
        for label in DECADE_LABELS:
            doc = stored.get(label, {})
            stats.append(DecadeStats(
                decade=label,
                tagline=doc.get("tagline") or DECADE_TAGLINES[label],
                memoryCount=doc.get("memoryCount", 0),
                contributorCount=doc.get("contributorCount", 0),
            ))
        return stats

    async def get_community_stats(self) -> CommunityStats:
        documents = self._documents()
        users = await self._call(documents.count(USERS), "Counting members")
        memories = await self._call(documents.count(MEMORIES), "Counting memories")
        decades = await self._call(documents.count(DECADES), "Counting decades")
        return CommunityStats(userCount=users, memoryCount=memories, decadeCount=decades or 8)

    async def get_recent_joins(self, limit: int = 5) -> List[Dict[str, Any]]:
        page = await self._call(
            self._documents().query(USERS, order_by="createdAt", descending=True, limit=limit),
            "Loading new members",
        )
        return [
            {
                "id": u["id"],
                "displayName": u.get("displayName", ""),
                "classYear": u.get("classYear"),
                "createdAt": u.get("createdAt"),
            }
            for u in page.items
        ]
