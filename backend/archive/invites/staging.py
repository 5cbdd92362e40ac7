"""Client-held list of email addresses staged for a batch invite."""
from typing import List

from archive.errors import DuplicateInvite, ValidationFailed
from archive.validation import is_valid_email


class InviteList:
    """Ordered, duplicate-free list of recipient addresses."""

    def __init__(self) -> None:
        self._emails: List[str] = []

    def add(self, email: str) -> str:
        """Trim and stage *email*; the list is unchanged when this raises.

        Raises:
            ValidationFailed: Empty or malformed address.
            DuplicateInvite: Address already staged.
        """
        email = email.strip()
        if not is_valid_email(email):
            raise ValidationFailed("Please enter a valid email address", title="Invalid Email")
        if email in self._emails:
            raise DuplicateInvite("This email is already in your invite list")
        self._emails.append(email)
        return email

    def remove(self, email: str) -> bool:
        if email in self._emails:
            self._emails.remove(email)
            return True
        return False

    @property
    def emails(self) -> List[str]:
        return list(self._emails)

    def clear(self) -> None:
        self._emails.clear()

    def __len__(self) -> int:
        return len(self._emails)
