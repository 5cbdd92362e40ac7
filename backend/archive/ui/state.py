"""View / decade / contribution-type state for one client.

Each selector holds exactly one value at a time, so exactly one view and one
decade are active whatever sequence of switches the client performs.
"""
from enum import Enum
from typing import Callable, Dict, List, Literal, Optional

from pydantic import BaseModel

from archive.auth.schemas import Session
from archive.memories.schemas import DECADE_TAGLINES, ContributionType, Decade, DecadeStats


class View(str, Enum):
    TIMELINE = "timeline"
    CONTRIBUTE = "contribute"
    INVITE = "invite"
    COMMUNITY = "community"


CharLevel = Literal["ok", "warning", "error"]


class CharCount(BaseModel):
    count: int
    limit: int
    level: CharLevel

    @property
    def label(self) -> str:
        return f"{self.count} / {self.limit}"


def char_count(text: str, warning_at: int = 1800, limit: int = 2000) -> CharCount:
    """Story length indicator: ``warning`` past *warning_at*, ``error`` past *limit*."""
    count = len(text)
    if count > limit:
        level: CharLevel = "error"
    elif count > warning_at:
        level = "warning"
    else:
        level = "ok"
    return CharCount(count=count, limit=limit, level=level)


class UISnapshot(BaseModel):
    view: View
    decade: Decade
    contribution_type: ContributionType
    show_attachment_zone: bool
    authenticated: bool
    greeting: str
    decade_info: DecadeStats


DecadeListener = Callable[[DecadeStats], None]


class UIState:
    """Selectors plus the session mirror for one client."""

    def __init__(self, default_decade: str = "1990s") -> None:
        self.view: View = View.TIMELINE
        self.decade: Decade = Decade(default_decade)
        self.contribution_type: ContributionType = ContributionType.PHOTO
        self.authenticated: bool = False
        self.greeting: str = "Sign In"
        self._decade_stats: Dict[str, DecadeStats] = {}
        self._decade_listeners: List[DecadeListener] = []

    # -----------------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------------

    def switch_view(self, view: View) -> View:
        self.view = View(view)
        return self.view

    def switch_decade(self, decade: Decade) -> DecadeStats:
        """Select *decade* and ask listeners to re-render its memory list."""
        self.decade = Decade(decade)
        info = self.decade_info()
        for listener in list(self._decade_listeners):
            listener(info)
        return info

    def switch_contribution_type(self, contribution_type: ContributionType) -> bool:
        """Select a contribution type; returns whether the attachment zone shows."""
        self.contribution_type = ContributionType(contribution_type)
        return self.show_attachment_zone

    @property
    def show_attachment_zone(self) -> bool:
        return self.contribution_type != ContributionType.STORY

    def on_decade_changed(self, listener: DecadeListener) -> None:
        self._decade_listeners.append(listener)

    # -----------------------------------------------------------------------
    # Data mirrored into the view
    # -----------------------------------------------------------------------

    def load_decade_stats(self, stats: List[DecadeStats]) -> None:
        self._decade_stats = {s.decade: s for s in stats}

    def decade_info(self) -> DecadeStats:
        label = self.decade.value
        return self._decade_stats.get(
            label,
            DecadeStats(decade=label, tagline=DECADE_TAGLINES[label]),
        )

    def apply_session(self, session: Optional[Session]) -> None:
        if session is not None:
            self.authenticated = True
            self.greeting = f"Welcome, {session.label}"
        else:
            self.authenticated = False
            self.greeting = "Sign In"

    def snapshot(self) -> UISnapshot:
        return UISnapshot(
            view=self.view,
            decade=self.decade,
            contribution_type=self.contribution_type,
            show_attachment_zone=self.show_attachment_zone,
            authenticated=self.authenticated,
            greeting=self.greeting,
            decade_info=self.decade_info(),
        )
