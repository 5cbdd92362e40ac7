"""Sequential attachment uploads with weighted progress reporting.

Files are uploaded one after another, so overall progress is simply the
bytes of settled files plus the in-flight file's fraction, each file
weighted by its original size. A file is settled once it succeeds or fails;
only the last settlement reports 100.
"""
import asyncio
import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple

from archive.auth.schemas import Session
from archive.backends.base import BlobStore
from archive.backends.registry import with_deadline
from archive.config import UploadSettings
from archive.errors import ArchiveError, BackendTimeout, NotAuthenticated, ValidationFailed
from archive.validation import sanitize_filename, validate_file

from .compression import compress_image
from .schemas import PendingAttachment, UploadFailure, UploadResult, UploadSuccess

logger = logging.getLogger(__name__)

# (overall_percent, current_file_index (1-based), total_files)
BatchProgressCallback = Callable[[float, int, int], None]

# Highest value an in-flight report may show; 100 is reserved for the end.
_IN_FLIGHT_CAP = 99.9


class UploadOrchestrator:
    """Uploads pending attachments for one memory record.

    Args:
        blobs: Destination blob store.
        settings: Size ceiling, allow-list and compression knobs.
        call_timeout: Deadline in seconds for each blob upload.
    """

    def __init__(
        self,
        blobs: BlobStore,
        settings: Optional[UploadSettings] = None,
        call_timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._blobs = blobs
        self._settings = settings or UploadSettings()
        self._call_timeout = call_timeout
        self._clock = clock

    # -----------------------------------------------------------------------
    # Single file
    # -----------------------------------------------------------------------

    async def upload_file(
        self,
        session: Optional[Session],
        attachment: PendingAttachment,
        memory_id: str,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> UploadSuccess:
        """Validate, optionally compress, and upload one attachment.

        Raises:
            NotAuthenticated: Without a session.
            ValidationFailed: When the file is too large or of a disallowed type.
            BackendTimeout: When the upload misses its deadline.
            BackendError: On blob store failure.
        """
        if session is None:
            raise NotAuthenticated("Must be signed in to upload files")

        check = validate_file(
            attachment.name,
            attachment.size,
            attachment.media_type,
            max_size=self._settings.max_file_size_bytes,
            allowed_types=self._settings.allowed_mime_types,
        )
        if not check.valid:
            raise ValidationFailed(
                check.error or "Invalid file",
                title="File Too Large" if check.reason == "size" else "Invalid File",
            )

        data, media_type = await self._maybe_compress(attachment)

        timestamp_ms = int(self._clock() * 1000)
        path = f"memories/{memory_id}/{timestamp_ms}_{sanitize_filename(attachment.name)}"

        try:
            url = await with_deadline(
                self._blobs.put(
                    data,
                    path,
                    media_type,
                    metadata={
                        "uploadedBy": session.user_id,
                        "originalName": attachment.name,
                        "memoryId": memory_id,
                    },
                    on_progress=on_progress,
                ),
                self._call_timeout,
                f'Upload of "{attachment.name}"',
            )
        except Exception:
            await self._discard(path)
            raise

        return UploadSuccess(
            url=url,
            path=path,
            name=attachment.name,
            size=len(data),
            type=media_type,
        )

    async def _discard(self, path: str) -> None:
        """Best-effort removal of whatever a failed upload left in storage."""
        try:
            await with_deadline(self._blobs.delete(path), self._call_timeout, f"Cleanup of {path}")
        except Exception as e:
            logger.warning("Could not remove partial upload %s: %s", path, e)

    async def _maybe_compress(self, attachment: PendingAttachment) -> Tuple[bytes, str]:
        s = self._settings
        if not (
            s.compress_images
            and attachment.media_type.startswith("image/")
            and attachment.size > s.compress_threshold_bytes
        ):
            return attachment.data, attachment.media_type

        try:
            compressed = await asyncio.to_thread(
                compress_image, attachment.data, s.compress_max_width, s.compress_quality
            )
        except Exception as e:  # Pillow raises a variety of errors for bad input
            logger.warning("Compression failed for %s, uploading original: %s", attachment.name, e)
            return attachment.data, attachment.media_type

        if len(compressed) >= attachment.size:
            logger.debug("Compression did not shrink %s; keeping original", attachment.name)
            return attachment.data, attachment.media_type

        logger.info("Compressed %s: %d -> %d", attachment.name, attachment.size, len(compressed))
        return compressed, "image/jpeg"

    # -----------------------------------------------------------------------
    # Batch
    # -----------------------------------------------------------------------

    async def upload_many(
        self,
        session: Optional[Session],
        attachments: Sequence[PendingAttachment],
        memory_id: str,
        on_progress: Optional[BatchProgressCallback] = None,
    ) -> List[UploadResult]:
        """Upload *attachments* in order; one result per input, same order."""
        total_files = len(attachments)
        weights = [max(a.size, 1) for a in attachments]
        total_weight = sum(weights)
        completed = 0
        last_reported = 0.0

        def report(percent: float, index: int) -> None:
            nonlocal last_reported
            percent = max(last_reported, min(percent, 100.0))
            last_reported = percent
            if on_progress:
                on_progress(percent, index, total_files)

        results: List[UploadResult] = []
        for i, attachment in enumerate(attachments):
            weight = weights[i]

            def file_progress(transferred: int, total: int, _weight: int = weight, _index: int = i + 1) -> None:
                fraction = min(transferred / total, 1.0) if total else 1.0
                percent = (completed + fraction * _weight) / total_weight * 100
                report(min(percent, _IN_FLIGHT_CAP), _index)

            try:
                result: UploadResult = await self.upload_file(
                    session, attachment, memory_id, on_progress=file_progress
                )
            except ArchiveError as e:
                logger.error(f"Error uploading file {attachment.name}: {e.message}")
                result = UploadFailure(name=attachment.name, error=e.message, kind=_failure_kind(e))
            except Exception as e:
                logger.error(f"Error uploading file {attachment.name}: {e}")
                result = UploadFailure(name=attachment.name, error=str(e) or type(e).__name__)

            results.append(result)
            completed += weight
            report(completed / total_weight * 100, i + 1)

        return results


def _failure_kind(error: ArchiveError) -> str:
    if isinstance(error, ValidationFailed):
        return "validation"
    if isinstance(error, BackendTimeout):
        return "timeout"
    return "backend"
