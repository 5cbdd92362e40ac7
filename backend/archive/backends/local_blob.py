"""Local-disk blob store.

Blobs are written to ``{upload_dir}/{path}`` with a JSON sidecar holding
their metadata, and served back by the ``/files`` router.
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from .base import BlobStore, ProgressCallback

logger = logging.getLogger(__name__)

_META_SUFFIX = ".meta.json"
_PARTIAL_SUFFIX = ".part"


class LocalBlobStore(BlobStore):
    """Blob store rooted at a local directory."""

    CHUNK_SIZE = 64 * 1024

    def __init__(self, upload_dir: str = "uploads", public_base_url: str = "http://localhost:8000") -> None:
        self._root = Path(upload_dir)
        self._public_base_url = public_base_url.rstrip("/")
        self._ensure_upload_dir()

    def _ensure_upload_dir(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, path: str) -> Path:
        root = self._root.resolve()
        target = (root / path).resolve()
        if target == root or root not in target.parents:
            raise ValueError(f"Blob path escapes the upload directory: {path!r}")
        return target

    def url_for(self, path: str) -> str:
        return f"{self._public_base_url}/files/{path}"

    def resolve(self, path: str) -> Optional[Path]:
        """Return the on-disk file for *path*, or None if absent or invalid."""
        if path.endswith(_META_SUFFIX):
            return None
        try:
            target = self._path_for(path)
        except ValueError:
            return None
        return target if target.is_file() else None

    def metadata(self, path: str) -> Dict[str, str]:
        target = self.resolve(path)
        if target is None:
            return {}
        sidecar = target.with_name(target.name + _META_SUFFIX)
        if not sidecar.exists():
            return {}
        return json.loads(sidecar.read_text(encoding="utf-8"))

    async def put(
        self,
        data: bytes,
        path: str,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        target = self._path_for(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        total = len(data)
        transferred = 0
        # Written under a temporary name so a cancelled put leaves nothing behind.
        partial = target.with_name(target.name + _PARTIAL_SUFFIX)
        try:
            with partial.open("wb") as fh:
                for offset in range(0, total, self.CHUNK_SIZE):
                    chunk = data[offset:offset + self.CHUNK_SIZE]
                    fh.write(chunk)
                    transferred += len(chunk)
                    if on_progress:
                        on_progress(transferred, total)
                    # Let other tasks run between chunks
                    await asyncio.sleep(0)
            partial.replace(target)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        if total == 0 and on_progress:
            on_progress(0, 0)

        sidecar = target.with_name(target.name + _META_SUFFIX)
        sidecar.write_text(
            json.dumps({"contentType": content_type, **(metadata or {})}),
            encoding="utf-8",
        )

        logger.info(f"Saved blob: {target} ({total} bytes)")
        return self.url_for(path)

    async def delete(self, path: str) -> bool:
        target = self.resolve(path)
        if target is None:
            return False
        target.unlink()
        sidecar = target.with_name(target.name + _META_SUFFIX)
        if sidecar.exists():
            sidecar.unlink()
        logger.info(f"Deleted blob: {target}")
        return True
