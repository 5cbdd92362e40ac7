"""Toast notifications shown to a client.

Toasts auto-dismiss after a fixed duration (5 seconds by default) and can be
closed early. Expiry is evaluated lazily against an injectable clock, so no
timers are needed.
"""
import itertools
import time
from typing import Callable, List, Optional

from pydantic import BaseModel

ICON_OK = "✓"
ICON_WARNING = "⚠️"
ICON_PARTY = "🎉"
ICON_WAVE = "👋"
ICON_MAIL = "📧"
ICON_UPLOAD = "📤"
ICON_INFO = "ℹ️"


class Toast(BaseModel):
    id: int
    title: str
    message: str
    icon: str = ICON_OK
    created_at: float
    expires_at: float


class ToastCenter:
    """Holds the visible toasts for one client."""

    def __init__(
        self,
        duration_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._duration = duration_seconds
        self._clock = clock
        self._ids = itertools.count(1)
        self._toasts: List[Toast] = []

    def show(self, title: str, message: str, icon: str = ICON_OK) -> Toast:
        now = self._clock()
        toast = Toast(
            id=next(self._ids),
            title=title,
            message=message,
            icon=icon,
            created_at=now,
            expires_at=now + self._duration,
        )
        self._toasts.append(toast)
        return toast

    def active(self) -> List[Toast]:
        """Toasts still on screen, oldest first."""
        now = self._clock()
        self._toasts = [t for t in self._toasts if t.expires_at > now]
        return list(self._toasts)

    def dismiss(self, toast_id: int) -> bool:
        before = len(self._toasts)
        self._toasts = [t for t in self._toasts if t.id != toast_id]
        return len(self._toasts) != before

    def latest(self) -> Optional[Toast]:
        active = self.active()
        return active[-1] if active else None


def notify(toasts: Optional[ToastCenter], title: str, message: str, icon: str = ICON_OK) -> None:
    """Show a toast when a toast center is attached; services call this."""
    if toasts is not None:
        toasts.show(title, message, icon)
