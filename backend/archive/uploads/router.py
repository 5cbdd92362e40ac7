"""FastAPI router serving attachments stored by the local blob store."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from archive.auth.dependencies import get_archive
from archive.backends.local_blob import LocalBlobStore
from archive.context import ArchiveContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{path:path}")
async def download_file(path: str, ctx: ArchiveContext = Depends(get_archive)) -> FileResponse:
    """Download an attachment by its storage path.

    Only the local blob store is served from here; S3 attachments are
    addressed by their bucket URL.
    """
    blobs = ctx.backends.blobs
    if not isinstance(blobs, LocalBlobStore):
        raise HTTPException(status_code=404, detail="File not found")

    target = blobs.resolve(path)
    if target is None:
        raise HTTPException(status_code=404, detail="File not found")

    meta = blobs.metadata(path)
    return FileResponse(
        path=str(target),
        media_type=meta.get("contentType", "application/octet-stream"),
        filename=meta.get("originalName", target.name),
    )
