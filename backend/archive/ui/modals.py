"""Modal dialog visibility with background scroll locking."""
from typing import List, Set

KNOWN_MODALS = ("auth-modal", "notification-modal", "memory-modal")


class ModalState:
    """Tracks which modals are open; the page scroll is locked while any is."""

    def __init__(self) -> None:
        self._open: Set[str] = set()

    def open(self, modal_id: str) -> None:
        if modal_id not in KNOWN_MODALS:
            raise KeyError(modal_id)
        self._open.add(modal_id)

    def close(self, modal_id: str) -> None:
        self._open.discard(modal_id)

    def close_all(self) -> None:
        self._open.clear()

    def is_open(self, modal_id: str) -> bool:
        return modal_id in self._open

    @property
    def open_modals(self) -> List[str]:
        return sorted(self._open)

    @property
    def scroll_locked(self) -> bool:
        return bool(self._open)
