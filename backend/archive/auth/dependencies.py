"""FastAPI dependencies resolving the calling client and its session."""
from typing import Optional

from fastapi import Depends, Header

from archive.context import ArchiveContext, get_context
from archive.errors import NotAuthenticated
from archive.ui.workspace import ClientWorkspace

from .schemas import Session


def get_archive() -> ArchiveContext:
    return get_context()


def get_client_id(x_client_id: Optional[str] = Header(default=None)) -> str:
    """Workspace key sent by the client; clients that send none share ``default``."""
    return x_client_id or "default"


def get_workspace(
    client_id: str = Depends(get_client_id),
    ctx: ArchiveContext = Depends(get_archive),
) -> ClientWorkspace:
    return ctx.workspaces.get(client_id)


async def get_optional_session(
    authorization: Optional[str] = Header(default=None),
    ctx: ArchiveContext = Depends(get_archive),
) -> Optional[Session]:
    """Session for an ``Authorization: Bearer <token>`` header, else None (guest)."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return await ctx.sessions.get(token.strip())


async def require_session(
    session: Optional[Session] = Depends(get_optional_session),
) -> Session:
    if session is None:
        raise NotAuthenticated("Please sign in to continue")
    return session
