"""External service adapters.

The archive delegates accounts, documents and files to backends behind the
interfaces in :mod:`archive.backends.base`; :func:`build_backends` picks the
concrete adapters from config.
"""
from .base import (
    SERVER_TIMESTAMP,
    BlobStore,
    DocumentStore,
    DocumentTransaction,
    Identity,
    IdentityProvider,
    Increment,
    Page,
)
from .registry import Backends, Unavailable, build_backends, with_deadline

__all__ = [
    "SERVER_TIMESTAMP",
    "BlobStore",
    "DocumentStore",
    "DocumentTransaction",
    "Identity",
    "IdentityProvider",
    "Increment",
    "Page",
    "Backends",
    "Unavailable",
    "build_backends",
    "with_deadline",
]
