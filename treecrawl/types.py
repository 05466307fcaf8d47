"""Core type definitions for the crawl engine.

Only `constants` is imported here; every other module builds on these records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Iterator

from .constants import MAX_HEADING_LEVEL, ROOT_HEADING_LEVEL, ROOT_HEADING_TEXT


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for reports."""

    return utc_now().isoformat(timespec="seconds")


class ErrorCategory(str, Enum):
    """Failure categories recorded per URL during a crawl."""

    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    INVALID_URL = "invalid_url"
    PARSING_ERROR = "parsing_error"
    ROBOTS_BLOCKED = "robots_blocked"
    THREAD_INTERRUPTED = "thread_interrupted"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        return _CATEGORY_DESCRIPTIONS[self]

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]


_CATEGORY_DESCRIPTIONS: dict[ErrorCategory, str] = {
    ErrorCategory.NETWORK_ERROR: "Network connectivity issue",
    ErrorCategory.HTTP_ERROR: "HTTP response error",
    ErrorCategory.TIMEOUT: "Request timeout",
    ErrorCategory.INVALID_URL: "Malformed or invalid URL",
    ErrorCategory.PARSING_ERROR: "HTML parsing failure",
    ErrorCategory.ROBOTS_BLOCKED: "Blocked by robots.txt",
    ErrorCategory.THREAD_INTERRUPTED: "Task execution interrupted",
    ErrorCategory.UNKNOWN: "Unexpected error",
}

_CATEGORY_LABELS: dict[ErrorCategory, str] = {
    ErrorCategory.NETWORK_ERROR: "Network Errors",
    ErrorCategory.HTTP_ERROR: "HTTP Errors",
    ErrorCategory.TIMEOUT: "Timeout Errors",
    ErrorCategory.INVALID_URL: "Invalid URL Errors",
    ErrorCategory.PARSING_ERROR: "Parsing Errors",
    ErrorCategory.ROBOTS_BLOCKED: "Robots.txt Blocked",
    ErrorCategory.THREAD_INTERRUPTED: "Task Interruptions",
    ErrorCategory.UNKNOWN: "Unknown Errors",
}


@dataclass(frozen=True, slots=True)
class Heading:
    """A page heading; level 0 is the synthetic bucket before the first heading."""

    level: int
    text: str

    def __post_init__(self) -> None:
        if not ROOT_HEADING_LEVEL <= self.level <= MAX_HEADING_LEVEL:
            raise ValueError(f"Heading level must be 0..{MAX_HEADING_LEVEL}, got {self.level}")

    @classmethod
    def page_root(cls) -> "Heading":
        return cls(ROOT_HEADING_LEVEL, ROOT_HEADING_TEXT)

    @property
    def is_page_root(self) -> bool:
        return self.level == ROOT_HEADING_LEVEL


@dataclass(frozen=True, slots=True)
class Section:
    """A heading and the ordered, de-duplicated links found under it."""

    heading: Heading
    links: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "links", tuple(dict.fromkeys(self.links)))

    def to_json(self) -> JSONDict:
        return {
            "level": self.heading.level,
            "heading": self.heading.text,
            "links": list(self.links),
        }


@dataclass(frozen=True, slots=True)
class PageSections:
    """Structured page returned by the page fetcher."""

    url: str
    sections: tuple[Section, ...] = ()
    title: str | None = None

    def all_links(self) -> list[str]:
        return _flatten_links(self.sections)


@dataclass(frozen=True, slots=True)
class FetchFailure:
    """Typed retrieval failure returned by the page fetcher."""

    category: "ErrorCategory"
    message: str
    status_code: int | None = None
    details: str = ""


@dataclass(frozen=True, slots=True)
class PageResult:
    """One node of the crawl tree.

    Nodes are immutable; attaching children produces a new node via
    `with_children`, so finished subtrees can be handed across threads.
    """

    url: str
    depth: int
    broken: bool = False
    sections: tuple[Section, ...] = ()
    children: frozenset["PageResult"] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "sections", tuple(self.sections))
        object.__setattr__(self, "children", frozenset(self.children))
        if self.depth < 0:
            raise ValueError("depth must be >= 0")
        if self.broken and (self.sections or self.children):
            raise ValueError("A broken page cannot carry sections or children")

    @classmethod
    def broken_link(cls, url: str, depth: int) -> "PageResult":
        return cls(url=url, depth=depth, broken=True)

    def with_children(self, children: Iterable["PageResult"]) -> "PageResult":
        return PageResult(
            url=self.url,
            depth=self.depth,
            broken=self.broken,
            sections=self.sections,
            children=frozenset(children),
        )

    def all_links(self) -> list[str]:
        """Return links across all sections in first-seen order."""

        return _flatten_links(self.sections)

    def iter_pages(self) -> Iterator["PageResult"]:
        """Yield this node and every descendant (pre-order)."""

        yield self
        for child in self.children:
            yield from child.iter_pages()

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "depth": self.depth,
            "broken": self.broken,
            "sections": [section.to_json() for section in self.sections],
            "children": [
                child.to_json() for child in sorted(self.children, key=lambda page: page.url)
            ],
        }


def _flatten_links(sections: Iterable[Section]) -> list[str]:
    seen: dict[str, None] = {}
    for section in sections:
        for link in section.links:
            seen.setdefault(link, None)
    return list(seen)


@dataclass(frozen=True, slots=True)
class CrawlError:
    """One recorded per-URL failure."""

    url: str
    depth: int
    category: ErrorCategory
    message: str
    details: str = ""
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("CrawlError requires a URL")
        if not isinstance(self.category, ErrorCategory):
            raise ValueError(f"Invalid error category: {self.category!r}")
        if not self.message or not self.message.strip():
            raise ValueError("CrawlError message cannot be empty")
        if self.details is None:
            object.__setattr__(self, "details", "")

    @classmethod
    def from_exception(
        cls,
        *,
        url: str,
        depth: int,
        category: ErrorCategory,
        message: str,
        exc: BaseException,
    ) -> "CrawlError":
        return cls(
            url=url,
            depth=depth,
            category=category,
            message=message,
            details=f"{exc.__class__.__name__}: {exc}",
        )

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "depth": self.depth,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
        }


__all__ = [
    "CrawlError",
    "ErrorCategory",
    "FetchFailure",
    "Heading",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "PageResult",
    "PageSections",
    "Section",
    "utc_now",
    "utc_now_iso",
]
