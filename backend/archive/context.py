"""Process-wide service container.

``build_context`` wires backends, the session registry, workspaces and the
services from an :class:`AppConfig`. The lifespan handler in ``main`` installs
the result with :func:`set_context`; routers read it with :func:`get_context`.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from archive.auth.service import AuthService
from archive.auth.session_store import SessionStore
from archive.backends import Backends, build_backends
from archive.config import AppConfig
from archive.invites.service import InviteService
from archive.memories.reactions import ReactionService
from archive.memories.service import MemoryService
from archive.memories.side_effects import BestEffortRunner
from archive.ui.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


@dataclass
class ArchiveContext:
    config:       AppConfig
    backends:     Backends
    sessions:     SessionStore
    workspaces:   WorkspaceManager
    side_effects: BestEffortRunner
    auth:         AuthService
    memories:     MemoryService
    reactions:    ReactionService
    invites:      InviteService

    async def start(self) -> None:
        await self.sessions.start()
        await self.workspaces.start()

    async def close(self) -> None:
        """Finish pending side effects, drop sessions and workspaces, release backends."""
        await self.side_effects.drain()
        await self.sessions.stop()
        await self.workspaces.stop()
        self.backends.close()


def build_context(config: AppConfig, backends: Optional[Backends] = None) -> ArchiveContext:
    """Wire every service for *config*; pass *backends* to override the adapters."""
    backends = backends or build_backends(config)
    timeout = config.backends.call_timeout_seconds

    sessions = SessionStore(default_ttl_seconds=config.auth.session_ttl_minutes * 60)
    workspaces = WorkspaceManager(ui_settings=config.ui, upload_settings=config.uploads)
    sessions.subscribe(workspaces.handle_session_event)

    side_effects = BestEffortRunner()
    return ArchiveContext(
        config=config,
        backends=backends,
        sessions=sessions,
        workspaces=workspaces,
        side_effects=side_effects,
        auth=AuthService(backends, sessions, call_timeout=timeout),
        memories=MemoryService(
            backends,
            side_effects=side_effects,
            upload_settings=config.uploads,
            call_timeout=timeout,
        ),
        reactions=ReactionService(backends),
        invites=InviteService(backends, call_timeout=timeout),
    )


_context: Optional[ArchiveContext] = None


def get_context() -> ArchiveContext:
    """Return the installed context.

    Raises:
        RuntimeError: Before the application has started.
    """
    if _context is None:
        raise RuntimeError("Archive context is not initialised")
    return _context


def set_context(context: Optional[ArchiveContext]) -> None:
    global _context
    _context = context
