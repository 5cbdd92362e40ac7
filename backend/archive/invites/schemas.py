"""Pydantic schemas for classmate invitations."""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class StageEmailRequest(BaseModel):
    email: str


class SendInvitesRequest(BaseModel):
    personal_message: str = Field(default="", max_length=2000)


class InviteOutcome(BaseModel):
    """What happened to one staged address during a batch send."""
    email: str
    status: Literal["sent", "duplicate", "failed"]
    invite_id: Optional[str] = None
    error: Optional[str] = None


class InviteBatchResult(BaseModel):
    outcomes: List[InviteOutcome] = Field(default_factory=list)

    @property
    def sent(self) -> List[str]:
        return [o.email for o in self.outcomes if o.status == "sent"]

    @property
    def duplicates(self) -> List[str]:
        return [o.email for o in self.outcomes if o.status == "duplicate"]

    @property
    def failed(self) -> List[str]:
        return [o.email for o in self.outcomes if o.status == "failed"]


class StagedEmails(BaseModel):
    emails: List[str]
