"""Input validation helpers shared by the upload, invite and memory flows."""
import re
from dataclasses import dataclass
from typing import Iterable, Optional

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

ALLOWED_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class FileCheck:
    """Outcome of :func:`validate_file`."""
    valid: bool
    error: Optional[str] = None
    reason: Optional[str] = None  # "size" | "type"


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):g}MB"


def validate_file(
    name: str,
    size: int,
    media_type: str,
    max_size: int = MAX_FILE_SIZE_BYTES,
    allowed_types: Iterable[str] = ALLOWED_MIME_TYPES,
) -> FileCheck:
    """Check a file against the size ceiling and the media-type allow-list.

    Size is checked first, so an oversized file of a disallowed type reports
    the size problem.
    """
    if size > max_size:
        return FileCheck(
            valid=False,
            error=f'File "{name}" exceeds {_megabytes(max_size)} limit',
            reason="size",
        )
    if media_type not in tuple(allowed_types):
        return FileCheck(
            valid=False,
            error=f'File type "{media_type}" is not allowed. Please upload images or PDFs.',
            reason="type",
        )
    return FileCheck(valid=True)


def is_valid_email(email: str) -> bool:
    """True for addresses shaped like ``local-part@domain.tld``."""
    return bool(email) and _EMAIL_RE.match(email) is not None


def sanitize_filename(name: str) -> str:
    """Replace everything outside ``[A-Za-z0-9.-]`` with underscores."""
    return re.sub(r"[^a-zA-Z0-9.\-]", "_", name)
