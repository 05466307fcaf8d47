"""Thread-safe collection of per-URL crawl errors."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Any

from .types import CrawlError, ErrorCategory


class ErrorCollector:
    """Append-only store of `CrawlError` records shared by crawl tasks.

    Appends take a short lock; readers get snapshots so reporting never
    blocks workers for long.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: list[CrawlError] = []

    def add(self, error: CrawlError | None) -> None:
        """Record one error. `None` is ignored."""

        if error is None:
            return
        with self._lock:
            self._errors.append(error)

    def all(self) -> list[CrawlError]:
        with self._lock:
            return list(self._errors)

    def by_category(self, category: ErrorCategory) -> list[CrawlError]:
        return [error for error in self.all() if error.category == category]

    def statistics(self) -> dict[ErrorCategory, int]:
        """Return error counts per category, in first-seen category order."""

        return dict(Counter(error.category for error in self.all()))

    def total(self) -> int:
        with self._lock:
            return len(self._errors)

    def has_errors(self) -> bool:
        return self.total() > 0

    def reset(self) -> None:
        with self._lock:
            self._errors.clear()

    def __len__(self) -> int:
        return self.total()

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary payload."""

        errors = self.all()
        return {
            "total": len(errors),
            "by_category": {
                category.value: count
                for category, count in Counter(error.category for error in errors).items()
            },
            "errors": [error.to_json() for error in errors],
        }


__all__ = ["ErrorCollector"]
