"""Memories router — submission, timeline, reactions, comments and stats."""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from archive.auth.dependencies import get_archive, get_workspace, require_session
from archive.auth.schemas import Session
from archive.context import ArchiveContext
from archive.errors import NotFound
from archive.ui.workspace import ClientWorkspace

from .schemas import (
    CommentCreate,
    CommunityStats,
    DecadeStats,
    MemoryDraft,
    MemoryPage,
    ReactionRequest,
    ReactionResult,
    SubmissionResult,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/memories", tags=["memories"])


@router.post("", response_model=SubmissionResult, status_code=201)
async def submit_memory(
    body: MemoryDraft,
    session: Session = Depends(require_session),
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> SubmissionResult:
    """Create a memory from *body* plus the client's pending attachments.

    Attachments are staged beforehand with ``POST /ui/attachments``.
    """
    workspace.upload_progress = 0.0

    def on_progress(percent: float, index: int, total: int) -> None:
        workspace.upload_progress = percent

    return await ctx.memories.submit(
        session,
        body,
        workspace.attachments,
        toasts=workspace.toasts,
        on_progress=on_progress,
    )


@router.get("", response_model=MemoryPage)
async def list_memories(
    decade: str,
    limit: int = Query(default=20, ge=1, le=100),
    cursor: Optional[str] = None,
    ctx: ArchiveContext = Depends(get_archive),
) -> MemoryPage:
    return await ctx.memories.get_memories_by_decade(decade, limit=limit, cursor=cursor)


@router.get("/search")
async def search_memories(
    q: str = Query(..., min_length=1),
    decade: Optional[str] = None,
    ctx: ArchiveContext = Depends(get_archive),
) -> List[Dict[str, Any]]:
    return await ctx.memories.search_memories(q, decade=decade)


@router.get("/stats/decades", response_model=List[DecadeStats])
async def decade_stats(ctx: ArchiveContext = Depends(get_archive)) -> List[DecadeStats]:
    return await ctx.memories.get_decade_stats()


@router.get("/stats/community", response_model=CommunityStats)
async def community_stats(ctx: ArchiveContext = Depends(get_archive)) -> CommunityStats:
    return await ctx.memories.get_community_stats()


@router.get("/recent-joins")
async def recent_joins(
    limit: int = Query(default=5, ge=1, le=50),
    ctx: ArchiveContext = Depends(get_archive),
) -> List[Dict[str, Any]]:
    return await ctx.memories.get_recent_joins(limit=limit)


@router.get("/{memory_id}")
async def get_memory(memory_id: str, ctx: ArchiveContext = Depends(get_archive)) -> Dict[str, Any]:
    memory = await ctx.memories.get_memory(memory_id)
    if memory is None:
        raise NotFound(f"Memory {memory_id} not found")
    return memory


@router.post("/{memory_id}/reactions", response_model=ReactionResult)
async def toggle_reaction(
    memory_id: str,
    body: ReactionRequest,
    session: Session = Depends(require_session),
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> ReactionResult:
    return await ctx.reactions.toggle(session, memory_id, body.type, toasts=workspace.toasts)


@router.get("/{memory_id}/comments")
async def list_comments(
    memory_id: str, ctx: ArchiveContext = Depends(get_archive)
) -> List[Dict[str, Any]]:
    return await ctx.memories.get_comments(memory_id)


@router.post("/{memory_id}/comments", status_code=201)
async def add_comment(
    memory_id: str,
    body: CommentCreate,
    session: Session = Depends(require_session),
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> Dict[str, Any]:
    return await ctx.memories.add_comment(session, memory_id, body.text, toasts=workspace.toasts)
