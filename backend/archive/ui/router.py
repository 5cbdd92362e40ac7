"""UI router — per-client view state, toasts, modals and pending attachments.

Clients identify their workspace with the ``X-Client-Id`` header.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel

from archive.auth.dependencies import get_archive, get_client_id, get_workspace
from archive.context import ArchiveContext
from archive.errors import ArchiveError
from archive.memories.schemas import ContributionType, Decade, DecadeStats
from archive.uploads.schemas import PendingAttachment, PendingAttachmentInfo, describe_pending

from .modals import KNOWN_MODALS
from .state import CharCount, UISnapshot, View
from .toasts import Toast
from .workspace import ClientWorkspace

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ui", tags=["ui"])


class ViewRequest(BaseModel):
    view: View


class DecadeRequest(BaseModel):
    decade: Decade


class ContributionTypeRequest(BaseModel):
    contribution_type: ContributionType


class CharCountRequest(BaseModel):
    text: str


class WorkspaceState(BaseModel):
    state: UISnapshot
    toasts: List[Toast]
    open_modals: List[str]
    scroll_locked: bool
    attachments: List[PendingAttachmentInfo]
    upload_progress: float
    staged_invites: List[str]


def _workspace_state(workspace: ClientWorkspace) -> WorkspaceState:
    return WorkspaceState(
        state=workspace.ui.snapshot(),
        toasts=workspace.toasts.active(),
        open_modals=workspace.modals.open_modals,
        scroll_locked=workspace.modals.scroll_locked,
        attachments=describe_pending(workspace.attachments),
        upload_progress=workspace.upload_progress,
        staged_invites=workspace.invites.emails,
    )


@router.get("/state", response_model=WorkspaceState)
async def get_state(workspace: ClientWorkspace = Depends(get_workspace)) -> WorkspaceState:
    return _workspace_state(workspace)


@router.put("/view", response_model=UISnapshot)
async def switch_view(
    body: ViewRequest, workspace: ClientWorkspace = Depends(get_workspace)
) -> UISnapshot:
    workspace.ui.switch_view(body.view)
    return workspace.ui.snapshot()


@router.put("/decade", response_model=DecadeStats)
async def switch_decade(
    body: DecadeRequest,
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> DecadeStats:
    try:
        workspace.ui.load_decade_stats(await ctx.memories.get_decade_stats())
    except ArchiveError as e:
        # Stats refresh is best-effort.
        logger.warning("Could not refresh decade stats: %s", e.message)
    return workspace.ui.switch_decade(body.decade)


@router.put("/contribution-type", response_model=UISnapshot)
async def switch_contribution_type(
    body: ContributionTypeRequest, workspace: ClientWorkspace = Depends(get_workspace)
) -> UISnapshot:
    workspace.ui.switch_contribution_type(body.contribution_type)
    return workspace.ui.snapshot()


@router.post("/char-count", response_model=CharCount)
async def char_count(
    body: CharCountRequest, ctx: ArchiveContext = Depends(get_archive)
) -> CharCount:
    return ctx.workspaces.story_counter(body.text)


# ---------------------------------------------------------------------------
# Toasts
# ---------------------------------------------------------------------------


@router.get("/toasts", response_model=List[Toast])
async def list_toasts(workspace: ClientWorkspace = Depends(get_workspace)) -> List[Toast]:
    return workspace.toasts.active()


@router.delete("/toasts/{toast_id}", status_code=204)
async def dismiss_toast(toast_id: int, workspace: ClientWorkspace = Depends(get_workspace)) -> None:
    if not workspace.toasts.dismiss(toast_id):
        raise HTTPException(status_code=404, detail="Toast not found")


# ---------------------------------------------------------------------------
# Modals
# ---------------------------------------------------------------------------


@router.post("/modals/{modal_id}/open")
async def open_modal(modal_id: str, workspace: ClientWorkspace = Depends(get_workspace)) -> dict:
    if modal_id not in KNOWN_MODALS:
        raise HTTPException(status_code=404, detail=f"Unknown modal: {modal_id}")
    workspace.modals.open(modal_id)
    return {"open_modals": workspace.modals.open_modals, "scroll_locked": workspace.modals.scroll_locked}


@router.post("/modals/{modal_id}/close")
async def close_modal(modal_id: str, workspace: ClientWorkspace = Depends(get_workspace)) -> dict:
    workspace.modals.close(modal_id)
    return {"open_modals": workspace.modals.open_modals, "scroll_locked": workspace.modals.scroll_locked}


@router.delete("/modals")
async def close_all_modals(workspace: ClientWorkspace = Depends(get_workspace)) -> dict:
    workspace.modals.close_all()
    return {"open_modals": [], "scroll_locked": False}


# ---------------------------------------------------------------------------
# Pending attachments
# ---------------------------------------------------------------------------


@router.get("/attachments", response_model=List[PendingAttachmentInfo])
async def list_attachments(
    workspace: ClientWorkspace = Depends(get_workspace),
) -> List[PendingAttachmentInfo]:
    return describe_pending(workspace.attachments)


@router.post("/attachments", response_model=List[PendingAttachmentInfo], status_code=201)
async def stage_attachment(
    file: UploadFile = File(...),
    client_id: str = Depends(get_client_id),
    ctx: ArchiveContext = Depends(get_archive),
) -> List[PendingAttachmentInfo]:
    """Add a selected file to the client's pending attachments."""
    data = await file.read()
    attachment = PendingAttachment(
        name=file.filename or "upload",
        media_type=file.content_type or "application/octet-stream",
        data=data,
    )
    workspace = ctx.workspaces.stage_attachment(client_id, attachment)
    return describe_pending(workspace.attachments)


@router.delete("/attachments/{index}", response_model=List[PendingAttachmentInfo])
async def remove_attachment(
    index: int,
    client_id: str = Depends(get_client_id),
    ctx: ArchiveContext = Depends(get_archive),
) -> List[PendingAttachmentInfo]:
    try:
        ctx.workspaces.remove_attachment(client_id, index)
    except IndexError:
        raise HTTPException(status_code=404, detail="No attachment at that position")
    return describe_pending(ctx.workspaces.get(client_id).attachments)
