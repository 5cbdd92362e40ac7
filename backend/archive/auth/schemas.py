"""Pydantic schemas for accounts and sessions."""
import time
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Session(BaseModel):
    """A signed-in client. Guests have no Session at all."""
    token: str = Field(..., description="Opaque bearer token")
    user_id: str
    display_name: str = ""
    email: str
    client_id: str = Field(default="default", description="Workspace that signed in")
    created_at: float = Field(default_factory=time.time)

    @property
    def label(self) -> str:
        """Name shown in the UI: display name, else the email's local part."""
        return self.display_name or self.email.split("@")[0]


class SessionEvent(BaseModel):
    kind: Literal["signed_in", "signed_out"]
    session: Session


class NotificationPreferences(BaseModel):
    """Per-user email notification settings (stored camelCase)."""
    newMemoriesFromEra: bool = True
    taggedInMemory:     bool = True
    allNewUploads:      bool = False
    weeklyDigest:       bool = True
    emailFrequency:     Literal["immediate", "daily", "weekly"] = "daily"


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1, max_length=100)
    class_year: Optional[str] = Field(default=None, max_length=10)


class LoginRequest(BaseModel):
    email: str
    password: str


class PasswordResetRequest(BaseModel):
    email: str


class SessionResponse(BaseModel):
    token: str
    user_id: str
    display_name: str
    email: str

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            token=session.token,
            user_id=session.user_id,
            display_name=session.display_name,
            email=session.email,
        )
