"""InviteService — persists classmate invitations.

Invites are only recorded; delivering the email is left to whatever
processes the ``invites`` collection. One pending invite may exist per
address, enforced by checking and writing inside a single transaction.
"""
import logging
from typing import Any, Dict, List, Optional

from archive.auth.schemas import Session
from archive.backends import SERVER_TIMESTAMP, Backends, with_deadline
from archive.errors import ArchiveError, DuplicateInvite, NotAuthenticated, ValidationFailed
from archive.memories.schemas import INVITES
from archive.ui.toasts import ICON_MAIL, ICON_WARNING, ToastCenter, notify
from archive.validation import is_valid_email

from .schemas import InviteBatchResult, InviteOutcome
from .staging import InviteList

logger = logging.getLogger(__name__)


class InviteService:

    def __init__(self, backends: Backends, call_timeout: float = 30.0) -> None:
        self._backends = backends
        self._call_timeout = call_timeout

    async def send_invite(
        self, session: Optional[Session], email: str, personal_message: str = ""
    ) -> str:
        """Record one pending invite and return its id.

        Raises:
            NotAuthenticated: Without a session.
            ValidationFailed: Malformed address.
            DuplicateInvite: A pending invite for the address already exists.
        """
        if session is None:
            raise NotAuthenticated("Please sign in to invite classmates")
        address = email.strip().lower()
        if not is_valid_email(address):
            raise ValidationFailed(f"Invalid email address: {email}", title="Invalid Email")

        documents = self._backends.require_documents()
        async with documents.transaction() as txn:
            existing = await txn.query(
                INVITES, where=[("email", address), ("status", "pending")], limit=1
            )
            if existing.items:
                raise DuplicateInvite(f"{address} has already been invited")
            invite_id = await txn.create(INVITES, {
                "email": address,
                "invitedBy": session.user_id,
                "inviterName": session.label,
                "personalMessage": personal_message,
                "status": "pending",
                "createdAt": SERVER_TIMESTAMP,
            })
        logger.info("[invites] %s invited %s (%s)", session.user_id, address, invite_id)
        return invite_id

    async def send_batch(
        self,
        session: Optional[Session],
        staged: InviteList,
        personal_message: str = "",
        toasts: Optional[ToastCenter] = None,
    ) -> InviteBatchResult:
        """Send an invite to every staged address, then clear the list.

        Already-invited addresses are reported in the result instead of
        failing the batch.
        """
        try:
            if session is None:
                raise NotAuthenticated("Please sign in to invite classmates")
            if not len(staged):
                raise ValidationFailed("Please add at least one email address", title="No Emails")
        except ArchiveError as e:
            notify(toasts, e.title, e.message, ICON_WARNING)
            raise

        result = InviteBatchResult()
        for email in staged.emails:
            try:
                invite_id = await with_deadline(
                    self.send_invite(session, email, personal_message),
                    self._call_timeout,
                    f"Inviting {email}",
                )
            except DuplicateInvite as e:
                result.outcomes.append(InviteOutcome(email=email, status="duplicate", error=e.message))
            except ArchiveError as e:
                logger.error("Error sending invite to %s: %s", email, e.message)
                result.outcomes.append(InviteOutcome(email=email, status="failed", error=e.message))
            else:
                result.outcomes.append(InviteOutcome(email=email, status="sent", invite_id=invite_id))
        staged.clear()

        if result.sent:
            notify(
                toasts,
                "Invites Sent!",
                f"{len(result.sent)} invitation(s) sent successfully",
                ICON_MAIL,
            )
        if result.duplicates:
            notify(
                toasts,
                "Already Invited",
                f"Skipped: {', '.join(result.duplicates)}",
                ICON_WARNING,
            )
        if result.failed:
            notify(
                toasts,
                "Some Invites Failed",
                f"Could not invite: {', '.join(result.failed)}",
                ICON_WARNING,
            )
        return result

    async def get_my_invites(self, session: Optional[Session]) -> List[Dict[str, Any]]:
        if session is None:
            raise NotAuthenticated("Please sign in to view your invites")
        page = await with_deadline(
            self._backends.require_documents().query(
                INVITES,
                where=[("invitedBy", session.user_id)],
                order_by="createdAt",
                descending=True,
            ),
            self._call_timeout,
            "Loading invites",
        )
        return page.items
