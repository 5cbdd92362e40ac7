"""Abstract interfaces for the external services the archive delegates to.

Every concrete backend (DuckDB, local disk, S3, Firebase, …) implements one
of these so the workflow layer stays backend-agnostic:

    * IdentityProvider — account sign-up / sign-in / password reset
    * DocumentStore    — collections of JSON-like documents
    * BlobStore        — durable file storage addressed by path
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

# (bytes_transferred, total_bytes)
ProgressCallback = Callable[[int, int], None]

# (field, value) equality filter
Filter = Tuple[str, Any]


# ---------------------------------------------------------------------------
# Field sentinels
# ---------------------------------------------------------------------------


class ServerTimestamp:
    """Replaced by the store's current UTC time when the write is applied."""

    def __repr__(self) -> str:
        return "ServerTimestamp()"


SERVER_TIMESTAMP = ServerTimestamp()


@dataclass(frozen=True)
class Increment:
    """Atomically add ``amount`` to a numeric field (missing counts as 0)."""
    amount: int = 1


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass
class Identity:
    """Account as known by the identity provider."""
    user_id: str
    email: str
    display_name: str = ""
    id_token: Optional[str] = None


@dataclass
class Page:
    """One page of a document query."""
    items: List[Dict[str, Any]] = field(default_factory=list)
    cursor: Optional[str] = None
    has_more: bool = False


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class IdentityProvider(ABC):

    @abstractmethod
    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
        attrs: Optional[Dict[str, Any]] = None,
    ) -> Identity:
        """Create an account and return its identity.

        Raises:
            AuthFailed: If the email is taken or the password is refused.
        """

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        """Verify credentials.

        Raises:
            AuthFailed: On unknown email or wrong password.
        """

    @abstractmethod
    async def sign_out(self, user_id: str) -> None:
        """Revoke provider-side state for *user_id* (no-op where stateless)."""

    @abstractmethod
    async def send_password_reset(self, email: str) -> None:
        """Ask the provider to email a password reset link."""


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentTransaction(ABC):
    """Operations available inside :meth:`DocumentStore.transaction`."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def create(self, collection: str, fields: Dict[str, Any]) -> str: ...

    @abstractmethod
    async def set(
        self, collection: str, doc_id: str, fields: Dict[str, Any], merge: bool = False
    ) -> None: ...

    @abstractmethod
    async def patch(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None: ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool: ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        where: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        start_after: Optional[str] = None,
    ) -> Page: ...


class DocumentStore(DocumentTransaction):
    """Document database with collection paths like ``memories/{id}/comments``.

    Returned documents are plain dicts that always include their ``id``.
    ``patch`` accepts dotted field paths (``reactions.swim``) and both
    write methods resolve :class:`Increment` and :data:`SERVER_TIMESTAMP`.
    """

    @abstractmethod
    async def count(self, collection: str) -> int: ...

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[DocumentTransaction]:
        """Run a group of reads and writes atomically.

        Commits when the block exits normally and rolls back when it raises.
        """

    def close(self) -> None:
        """Release underlying resources."""


# ---------------------------------------------------------------------------
# Blobs
# ---------------------------------------------------------------------------


class BlobStore(ABC):

    @abstractmethod
    async def put(
        self,
        data: bytes,
        path: str,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Store *data* at *path* and return its public download URL.

        ``on_progress`` is called with ``(bytes_transferred, total_bytes)``
        as the transfer advances; the last call reports completion.
        """

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Delete the blob at *path*; return False when it did not exist."""
