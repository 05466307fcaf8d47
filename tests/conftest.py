"""Shared fakes for crawler tests."""

from __future__ import annotations

import threading
import time
from typing import Mapping

import pytest

from treecrawl.config import CrawlConfig
from treecrawl.types import ErrorCategory, FetchFailure, Heading, PageSections, Section


class FakePageSource:
    """Deterministic page source backed by a url -> links graph.

    Every known URL yields one H1 section holding its links. Unknown URLs
    yield an HTTP 404 failure. `raises` maps URLs to exceptions thrown from
    `fetch_and_parse`; `delays` maps URLs to seconds slept before answering.
    """

    def __init__(
        self,
        graph: Mapping[str, list[str]],
        *,
        raises: Mapping[str, Exception] | None = None,
        delays: Mapping[str, float] | None = None,
    ) -> None:
        self.graph = dict(graph)
        self.raises = dict(raises or {})
        self.delays = dict(delays or {})
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def fetch_and_parse(self, url: str) -> PageSections | FetchFailure:
        with self._lock:
            self.calls.append(url)

        delay = self.delays.get(url)
        if delay:
            time.sleep(delay)

        if url in self.raises:
            raise self.raises[url]

        links = self.graph.get(url)
        if links is None:
            return FetchFailure(
                category=ErrorCategory.HTTP_ERROR,
                message=f"HTTP error fetching {url}: 404",
                status_code=404,
            )
        if not links:
            return PageSections(url=url)
        return PageSections(
            url=url,
            sections=(Section(heading=Heading(1, "Title"), links=tuple(links)),),
        )


class FakeRobotsLoader:
    """Return canned robots.txt bodies keyed by robots URL; counts calls."""

    def __init__(self, bodies: Mapping[str, str | None] | None = None) -> None:
        self.bodies = dict(bodies or {})
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, robots_url: str) -> str | None:
        with self._lock:
            self.calls.append(robots_url)
        return self.bodies.get(robots_url)


class RecordingReporter:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def render(self, root, config, errors=None):
        self.calls.append((root, config, errors))


@pytest.fixture
def page_source():
    return FakePageSource


@pytest.fixture
def robots_loader():
    return FakeRobotsLoader


@pytest.fixture
def recording_reporter():
    return RecordingReporter()


@pytest.fixture
def make_config(tmp_path):
    def _make(root_url: str = "http://a.test", max_depth: int = 1, domains="a.test", **kwargs):
        kwargs.setdefault("report_path", str(tmp_path / "report.md"))
        return CrawlConfig.create(root_url, max_depth, domains, **kwargs)

    return _make
