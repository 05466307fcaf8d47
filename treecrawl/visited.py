"""Thread-safe visited-URL tracking for one crawl run."""

from __future__ import annotations

import threading

from .url import normalize_for_visit


class VisitedTracker:
    """Deduplicate URLs across a whole crawl.

    - `check_and_mark` is the single atomic check-and-set used by crawl tasks.
    - `is_visited` is a pure peek used when deciding whether to schedule a link.
    - URLs are compared without their fragment.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._visited: set[str] = set()

    def check_and_mark(self, url: str) -> bool:
        """Return True if `url` was already visited; otherwise mark it and return False."""

        key = normalize_for_visit(url)
        with self._lock:
            if key in self._visited:
                return True
            self._visited.add(key)
            return False

    def is_visited(self, url: str) -> bool:
        key = normalize_for_visit(url)
        with self._lock:
            return key in self._visited

    def visited_count(self) -> int:
        with self._lock:
            return len(self._visited)

    def reset(self) -> None:
        with self._lock:
            self._visited.clear()


__all__ = ["VisitedTracker"]
