"""Invites router — staged invite list and batch send.

Endpoints:
    GET    /invites/staged          - Addresses staged by this client
    POST   /invites/staged          - Stage an address
    DELETE /invites/staged/{email}  - Unstage an address
    POST   /invites/send            - Send to every staged address
    GET    /invites/mine            - Invites the caller has sent
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from archive.auth.dependencies import get_archive, get_workspace, require_session
from archive.auth.schemas import Session
from archive.context import ArchiveContext
from archive.errors import ArchiveError
from archive.ui.toasts import ICON_WARNING
from archive.ui.workspace import ClientWorkspace

from .schemas import InviteBatchResult, SendInvitesRequest, StagedEmails, StageEmailRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invites", tags=["invites"])


@router.get("/staged", response_model=StagedEmails)
async def list_staged(workspace: ClientWorkspace = Depends(get_workspace)) -> StagedEmails:
    return StagedEmails(emails=workspace.invites.emails)


@router.post("/staged", response_model=StagedEmails, status_code=201)
async def stage_email(
    body: StageEmailRequest,
    workspace: ClientWorkspace = Depends(get_workspace),
) -> StagedEmails:
    try:
        workspace.invites.add(body.email)
    except ArchiveError as e:
        workspace.toasts.show(e.title, e.message, ICON_WARNING)
        raise
    return StagedEmails(emails=workspace.invites.emails)


@router.delete("/staged/{email}", response_model=StagedEmails)
async def unstage_email(
    email: str,
    workspace: ClientWorkspace = Depends(get_workspace),
) -> StagedEmails:
    workspace.invites.remove(email)
    return StagedEmails(emails=workspace.invites.emails)


@router.post("/send")
async def send_invites(
    body: SendInvitesRequest,
    session: Session = Depends(require_session),
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> Dict[str, Any]:
    result: InviteBatchResult = await ctx.invites.send_batch(
        session, workspace.invites, body.personal_message, toasts=workspace.toasts
    )
    logger.info(
        "[invites] %s sent=%d duplicate=%d failed=%d",
        session.user_id, len(result.sent), len(result.duplicates), len(result.failed),
    )
    return {
        "outcomes": [o.model_dump() for o in result.outcomes],
        "sent": result.sent,
        "duplicates": result.duplicates,
        "failed": result.failed,
    }


@router.get("/mine")
async def my_invites(
    session: Session = Depends(require_session),
    ctx: ArchiveContext = Depends(get_archive),
) -> List[Dict[str, Any]]:
    return await ctx.invites.get_my_invites(session)
