"""Single-slot in-flight handle.

Learn: Everything on the client runs on one event loop, so this isn't a
lock against concurrent memory access. It stops *logically* overlapping
operations: a second submit tap, a swipe while the previous record is
still loading. One slot object replaces the pile of isLoading /
isSubmitting booleans that can drift out of sync with each other.
"""

from typing import Optional


class InFlightSlot:
    """At most one outstanding operation; others are rejected, not queued."""

    def __init__(self) -> None:
        self._holder: Optional[object] = None
        self._label: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self._holder is not None

    @property
    def label(self) -> Optional[str]:
        """What the current holder is doing (for logs and UI)."""
        return self._label

    def try_acquire(self, label: str = "") -> Optional[object]:
        """Take the slot. Returns a token, or None if it's already held."""
        if self._holder is not None:
            return None
        self._holder = object()
        self._label = label
        return self._holder

    def release(self, token: object) -> None:
        """Free the slot. A stale token (from an abandoned holder) is ignored."""
        if token is self._holder:
            self._holder = None
            self._label = None
