"""Backend wiring: which adapter serves each external service.

A service that is switched off in config is represented by an
:class:`Unavailable` value instead of being left as None, so callers ask the
container for the service and get a :class:`ServiceUnavailable` error with
a reason when it is missing.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, TypeVar, Union

from archive.config import AppConfig
from archive.errors import BackendTimeout, ServiceUnavailable

from .base import BlobStore, DocumentStore, IdentityProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Unavailable:
    """Placeholder for a backend service that is not configured."""
    service: str
    reason: str = "not configured"

    def error(self) -> ServiceUnavailable:
        return ServiceUnavailable(
            f"The {self.service} service is {self.reason}. This is a demo.",
        )


@dataclass
class Backends:
    identity:  Union[IdentityProvider, Unavailable]
    documents: Union[DocumentStore, Unavailable]
    blobs:     Union[BlobStore, Unavailable]

    def require_identity(self) -> IdentityProvider:
        if isinstance(self.identity, Unavailable):
            raise self.identity.error()
        return self.identity

    def require_documents(self) -> DocumentStore:
        if isinstance(self.documents, Unavailable):
            raise self.documents.error()
        return self.documents

    def require_blobs(self) -> BlobStore:
        if isinstance(self.blobs, Unavailable):
            raise self.blobs.error()
        return self.blobs

    @property
    def demo_mode(self) -> bool:
        return any(
            isinstance(s, Unavailable)
            for s in (self.identity, self.documents, self.blobs)
        )

    def close(self) -> None:
        if isinstance(self.documents, DocumentStore):
            self.documents.close()


async def with_deadline(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """Await *awaitable*, converting a missed deadline into BackendTimeout."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise BackendTimeout(f"{operation} did not complete within {timeout:g}s") from exc


def build_backends(config: AppConfig) -> Backends:
    """Instantiate the adapters selected in ``config.backends``."""
    cfg = config.backends

    documents: Union[DocumentStore, Unavailable]
    if cfg.documents == "duckdb":
        from .duckdb_store import DuckDBDocumentStore
        documents = DuckDBDocumentStore(db_path=config.storage.db_path)
    else:
        documents = Unavailable("document store")

    identity: Union[IdentityProvider, Unavailable]
    if cfg.identity == "firebase":
        api_key = config.secrets.firebase.api_key
        if api_key:
            from .firebase_identity import FirebaseIdentityProvider
            identity = FirebaseIdentityProvider(api_key=api_key, timeout=cfg.call_timeout_seconds)
        else:
            identity = Unavailable("identity", "missing a Firebase api_key")
    elif cfg.identity == "local":
        if isinstance(documents, Unavailable):
            identity = Unavailable("identity", "unavailable without the document store")
        else:
            from .local_identity import LocalIdentityProvider
            identity = LocalIdentityProvider(
                documents, min_password_length=config.auth.min_password_length
            )
    else:
        identity = Unavailable("identity")

    blobs: Union[BlobStore, Unavailable]
    if cfg.blobs == "s3":
        if cfg.s3_bucket:
            from .s3_blob import S3BlobStore
            aws = config.secrets.aws
            blobs = S3BlobStore(
                bucket=cfg.s3_bucket,
                region=aws.region or "us-east-1",
                public_base_url=cfg.s3_public_base_url,
                aws_access_key_id=aws.access_key_id,
                aws_secret_access_key=aws.secret_access_key,
            )
        else:
            blobs = Unavailable("file storage", "missing an S3 bucket name")
    elif cfg.blobs == "local":
        from .local_blob import LocalBlobStore
        blobs = LocalBlobStore(
            upload_dir=config.storage.upload_dir,
            public_base_url=config.server.public_base_url,
        )
    else:
        blobs = Unavailable("file storage")

    backends = Backends(identity=identity, documents=documents, blobs=blobs)
    if backends.demo_mode:
        logger.warning("Some backend services are not configured - running in demo mode")
    return backends
