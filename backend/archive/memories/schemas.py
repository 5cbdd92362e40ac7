"""Pydantic schemas for memories, comments, reactions and decade stats."""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from archive.uploads.schemas import UploadFailure, UploadResult, UploadSuccess


class Decade(str, Enum):
    """The eight timeline periods."""
    D1950S = "1950s"
    D1960S = "1960s"
    D1970S = "1970s"
    D1980S = "1980s"
    D1990S = "1990s"
    D2000S = "2000s"
    D2010S = "2010s"
    D2020S = "2020s"


DECADE_TAGLINES: Dict[str, str] = {
    "1950s": "The Founding Years",
    "1960s": "Building Tradition",
    "1970s": "The Rise",
    "1980s": "Dynasty Beginnings",
    "1990s": "The Golden Era",
    "2000s": "New Millennium",
    "2010s": "Modern Excellence",
    "2020s": "The New Wave",
}


class ContributionType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    STORY = "story"


ReactionType = Literal["swim", "heart", "celebrate"]
REACTION_TYPES = ("swim", "heart", "celebrate")

# Collection names
MEMORIES = "memories"
DECADES = "decades"
NOTIFICATIONS = "notifications"
USERS = "users"
INVITES = "invites"


def comments_collection(memory_id: str) -> str:
    return f"{MEMORIES}/{memory_id}/comments"


def reactions_collection(memory_id: str) -> str:
    return f"{MEMORIES}/{memory_id}/reactions"


class MemoryDraft(BaseModel):
    """Fields the contributor fills in on the contribute form."""
    title: str = Field(default="", max_length=200)
    decade: str = Field(default="")
    story: str = Field(default="")
    memory_type: ContributionType = ContributionType.PHOTO


class SubmissionResult(BaseModel):
    """Outcome of the two-phase memory submission."""
    memory_id: str
    uploads: List[UploadResult] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    dropped: List[str] = Field(default_factory=list, description="Names of files that failed to upload")

    @classmethod
    def build(
        cls,
        memory_id: str,
        uploads: List[UploadResult],
    ) -> "SubmissionResult":
        return cls(
            memory_id=memory_id,
            uploads=uploads,
            images=[u.url for u in uploads if isinstance(u, UploadSuccess)],
            dropped=[u.name for u in uploads if isinstance(u, UploadFailure)],
        )


class ReactionRequest(BaseModel):
    type: str = Field(..., description="swim, heart or celebrate")


class ReactionResult(BaseModel):
    memory_id: str
    type: ReactionType
    active: bool = Field(..., description="True when the user now holds this reaction")
    reactions: Dict[str, int]


class CommentCreate(BaseModel):
    text: str = Field(..., max_length=2000)


class MemoryPage(BaseModel):
    memories: List[Dict[str, Any]]
    cursor: Optional[str] = None
    has_more: bool = False


class DecadeStats(BaseModel):
    decade: str
    tagline: str
    memoryCount: int = 0
    contributorCount: int = 0


class CommunityStats(BaseModel):
    userCount: int = 0
    memoryCount: int = 0
    decadeCount: int = 8
