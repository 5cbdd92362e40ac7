"""Reaction toggle: at most one reaction per (memory, user)."""
import logging
from typing import Any, Dict, Optional, Tuple

from archive.auth.schemas import Session
from archive.backends import SERVER_TIMESTAMP, Backends, Increment
from archive.errors import ArchiveError, NotAuthenticated, NotFound, ValidationFailed
from archive.ui.toasts import ICON_WARNING, ToastCenter, notify

from .schemas import MEMORIES, REACTION_TYPES, ReactionResult, reactions_collection

logger = logging.getLogger(__name__)


class ReactionService:
    """Toggles reactions and keeps the memory's counters in step.

    The join record read, its write and both counter updates happen in one
    document-store transaction, so concurrent toggles cannot double-count.
    """

    def __init__(self, backends: Backends) -> None:
        self._backends = backends

    async def toggle(
        self,
        session: Optional[Session],
        memory_id: str,
        reaction_type: str,
        toasts: Optional[ToastCenter] = None,
    ) -> ReactionResult:
        """Apply *reaction_type* for the caller.

        Same type as before removes it; a different type replaces it; no
        previous reaction adds it.

        Raises:
            NotAuthenticated: Without a session.
            ValidationFailed: For an unknown reaction type.
            NotFound: When the memory does not exist.
        """
        if session is None:
            notify(toasts, "Sign In Required", "Please sign in to react to memories", ICON_WARNING)
            raise NotAuthenticated("Please sign in to react to memories")
        try:
            updated, active = await self._apply(session, memory_id, reaction_type)
        except ArchiveError as e:
            notify(toasts, e.title, e.message, ICON_WARNING)
            raise

        reactions = {t: int((updated or {}).get("reactions", {}).get(t, 0)) for t in REACTION_TYPES}
        logger.debug(
            "[reactions] %s %s %s on %s",
            session.user_id, "set" if active else "cleared", reaction_type, memory_id,
        )
        return ReactionResult(
            memory_id=memory_id,
            type=reaction_type,
            active=active,
            reactions=reactions,
        )

    async def _apply(
        self, session: Session, memory_id: str, reaction_type: str
    ) -> Tuple[Optional[Dict[str, Any]], bool]:
        if reaction_type not in REACTION_TYPES:
            raise ValidationFailed(f'Unknown reaction type "{reaction_type}"')

        documents = self._backends.require_documents()
        joins = reactions_collection(memory_id)

        async with documents.transaction() as txn:
            memory = await txn.get(MEMORIES, memory_id)
            if memory is None:
                raise NotFound(f"Memory {memory_id} not found")
            counts: Dict[str, int] = dict(memory.get("reactions") or {})

            existing = await txn.get(joins, session.user_id)
            previous = existing.get("type") if existing else None
            changes: Dict[str, object] = {}

            if previous == reaction_type:
                await txn.delete(joins, session.user_id)
                if counts.get(reaction_type, 0) > 0:
                    changes[f"reactions.{reaction_type}"] = Increment(-1)
                active = False
            else:
                # Counters never drop below zero.
                if previous in REACTION_TYPES and counts.get(previous, 0) > 0:
                    changes[f"reactions.{previous}"] = Increment(-1)
                await txn.set(joins, session.user_id, {
                    "type": reaction_type,
                    "userId": session.user_id,
                    "createdAt": SERVER_TIMESTAMP,
                })
                changes[f"reactions.{reaction_type}"] = Increment(1)
                active = True

            if changes:
                await txn.patch(MEMORIES, memory_id, changes)
            updated = await txn.get(MEMORIES, memory_id)
        return updated, active
