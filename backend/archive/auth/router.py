"""Auth router — account and session endpoints.

Endpoints:
    POST /auth/register        - Create an account and sign in
    POST /auth/login           - Sign in with email + password
    POST /auth/logout          - End the caller's session
    POST /auth/reset-password  - Email a password reset link
    GET  /auth/me              - Caller's profile document
    PUT  /auth/preferences     - Update notification preferences
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from archive.context import ArchiveContext
from archive.ui.workspace import ClientWorkspace

from .dependencies import get_archive, get_client_id, get_optional_session, get_workspace, require_session
from .schemas import (
    LoginRequest,
    NotificationPreferences,
    PasswordResetRequest,
    RegisterRequest,
    Session,
    SessionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=SessionResponse, status_code=201)
async def register(
    body: RegisterRequest,
    client_id: str = Depends(get_client_id),
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> SessionResponse:
    session = await ctx.auth.register(
        body.email,
        body.password,
        body.display_name,
        class_year=body.class_year,
        client_id=client_id,
        toasts=workspace.toasts,
    )
    return SessionResponse.from_session(session)


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    client_id: str = Depends(get_client_id),
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> SessionResponse:
    session = await ctx.auth.login(
        body.email, body.password, client_id=client_id, toasts=workspace.toasts
    )
    logger.info("[auth] %s signed in from client %s", session.user_id, client_id)
    return SessionResponse.from_session(session)


@router.post("/logout", status_code=204)
async def logout(
    session: Optional[Session] = Depends(get_optional_session),
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> None:
    await ctx.auth.logout(session, toasts=workspace.toasts)


@router.post("/reset-password")
async def reset_password(
    body: PasswordResetRequest,
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> dict:
    await ctx.auth.reset_password(body.email, toasts=workspace.toasts)
    return {"status": "sent"}


@router.get("/me")
async def me(
    session: Session = Depends(require_session),
    ctx: ArchiveContext = Depends(get_archive),
) -> Dict[str, Any]:
    return await ctx.auth.load_profile(session)


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    body: NotificationPreferences,
    session: Session = Depends(require_session),
    workspace: ClientWorkspace = Depends(get_workspace),
    ctx: ArchiveContext = Depends(get_archive),
) -> NotificationPreferences:
    return await ctx.auth.update_notification_preferences(session, body, toasts=workspace.toasts)
