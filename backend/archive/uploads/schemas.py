"""Schemas for attachment uploads.

This module defines the data models for attaching files to memories:
- PendingAttachment: A file selected by the user but not yet uploaded
- UploadSuccess / UploadFailure: Per-file outcome of a batch upload
- FileType: Enum for categorizing attachments (image, pdf, other)
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Union

from pydantic import BaseModel, Field


class FileType(str, Enum):
    """Attachment categories, derived from the MIME type."""
    IMAGE = "image"
    PDF = "pdf"
    OTHER = "other"


def get_file_type(mime_type: str) -> FileType:
    """Determine file type category from MIME type.

    Examples:
        >>> get_file_type("image/jpeg")
        FileType.IMAGE
        >>> get_file_type("application/pdf")
        FileType.PDF
        >>> get_file_type("text/plain")
        FileType.OTHER
    """
    if mime_type.startswith("image/"):
        return FileType.IMAGE
    if mime_type == "application/pdf":
        return FileType.PDF
    return FileType.OTHER


@dataclass
class PendingAttachment:
    """A locally selected file waiting to be uploaded."""
    name: str
    media_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def file_type(self) -> FileType:
        return get_file_type(self.media_type)


class UploadSuccess(BaseModel):
    """An attachment that reached the blob store."""
    ok: Literal[True] = True
    url: str = Field(..., min_length=1, description="Public download URL")
    path: str = Field(..., description="Storage path inside the blob store")
    name: str = Field(..., description="Original filename")
    size: int = Field(..., description="Uploaded size in bytes (after compression)")
    type: str = Field(..., description="Uploaded MIME type")


class UploadFailure(BaseModel):
    """An attachment that was rejected or failed to upload."""
    ok: Literal[False] = False
    name: str = Field(..., description="Original filename")
    error: str = Field(..., description="Why the upload failed")
    kind: Literal["validation", "timeout", "backend"] = "backend"


UploadResult = Union[UploadSuccess, UploadFailure]


class PendingAttachmentInfo(BaseModel):
    """Pending attachment as listed to clients (no file content)."""
    index: int
    name: str
    size: int
    media_type: str
    file_type: FileType


def describe_pending(attachments: List[PendingAttachment]) -> List[PendingAttachmentInfo]:
    return [
        PendingAttachmentInfo(
            index=i,
            name=a.name,
            size=a.size,
            media_type=a.media_type,
            file_type=a.file_type,
        )
        for i, a in enumerate(attachments)
    ]
