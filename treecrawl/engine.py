"""Crawl orchestration: bounded-depth traversal that builds the result tree.

Two scheduling modes share one per-page algorithm:

- sequential: plain depth-first recursion on the calling thread;
- concurrent: each child page is a task on a `ThreadPoolExecutor`. A parent
  submits all of its eligible children, then blocks on each of them with a
  per-child timeout before attaching the results. Siblings run in parallel
  while the parent/child edge stays synchronous.

All mutable crawl state (visited set, robots cache, error collector) lives in
a per-run context that is built by `crawl()` and passed to every task.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import requests

from .config import CrawlConfig
from .errors import ErrorCollector
from .robots import RobotsLoader, RobotsPolicyCache, RobotsTxtLoader
from .types import (
    CrawlError,
    ErrorCategory,
    FetchFailure,
    JSONDict,
    PageResult,
    PageSections,
    utc_now_iso,
)
from .url import is_allowed_domain, normalize_for_visit
from .visited import VisitedTracker

LOGGER = logging.getLogger(__name__)


class PageSource(Protocol):
    def fetch_and_parse(self, url: str) -> PageSections | FetchFailure: ...


class Reporter(Protocol):
    def render(
        self,
        root: PageResult,
        config: CrawlConfig,
        errors: ErrorCollector | None = None,
    ) -> Any: ...


class _CancelScope:
    """Cooperative cancellation flag inherited by a whole subtree."""

    def __init__(self, parent: "_CancelScope | None" = None) -> None:
        self._event = threading.Event()
        self._parent = parent

    def child(self) -> "_CancelScope":
        return _CancelScope(self)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        scope: _CancelScope | None = self
        while scope is not None:
            if scope._event.is_set():
                return True
            scope = scope._parent
        return False


@dataclass(slots=True)
class _CrawlContext:
    config: CrawlConfig
    visited: VisitedTracker
    errors: ErrorCollector
    robots: RobotsPolicyCache | None
    executor: concurrent.futures.ThreadPoolExecutor | None = None
    owned_loader: RobotsTxtLoader | None = None


@dataclass(slots=True)
class CrawlRun:
    """Outcome of one `CrawlEngine.crawl` call."""

    config: CrawlConfig
    root: PageResult | None
    errors: ErrorCollector
    visited_count: int = 0
    duration_seconds: float = 0.0
    started_at: str = field(default_factory=utc_now_iso)
    finished_at: str | None = None

    @property
    def ok(self) -> bool:
        return self.root is not None

    def summary(self) -> JSONDict:
        pages = list(self.root.iter_pages()) if self.root is not None else []
        broken = sum(1 for page in pages if page.broken)
        return {
            "root_url": self.config.root_url,
            "mode": "concurrent" if self.config.concurrent else "sequential",
            "pages_total": len(pages),
            "pages_ok": len(pages) - broken,
            "pages_broken": broken,
            "visited_urls": self.visited_count,
            "errors_total": self.errors.total(),
            "errors_by_category": {
                category.value: count for category, count in self.errors.statistics().items()
            },
            "duration_seconds": self.duration_seconds,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


class CrawlEngine:
    """Explore the link graph from `config.root_url` and build a `PageResult` tree."""

    def __init__(
        self,
        fetcher: PageSource,
        *,
        robots_loader: RobotsLoader | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.robots_loader = robots_loader
        self.reporter = reporter

    def crawl(self, config: CrawlConfig) -> CrawlRun:
        """Run one crawl. Per-page failures never escape; see `CrawlRun.errors`."""

        started = time.perf_counter()
        context = self._new_context(config)
        run = CrawlRun(config=config, root=None, errors=context.errors)

        LOGGER.info(
            "Starting %s crawl: url=%s, depth=%d, domains=%s",
            "concurrent" if config.concurrent else "sequential",
            config.root_url,
            config.max_depth,
            ", ".join(config.allowed_domains) or "none",
        )

        try:
            if config.concurrent:
                run.root = self._crawl_concurrent(context)
            else:
                run.root = self._crawl_page(context, config.root_url, 0, _CancelScope())
        except Exception:
            LOGGER.exception("Fatal error during crawl of %s", config.root_url)
        finally:
            if context.owned_loader is not None:
                context.owned_loader.close()

        run.visited_count = context.visited.visited_count()
        run.duration_seconds = time.perf_counter() - started
        run.finished_at = utc_now_iso()

        LOGGER.info(
            "Crawl completed in %.2fs. Visited %d URLs, %d errors",
            run.duration_seconds,
            run.visited_count,
            context.errors.total(),
        )
        if context.errors.has_errors():
            LOGGER.info(
                "Error breakdown: %s",
                {category.value: count for category, count in context.errors.statistics().items()},
            )
        if context.robots is not None:
            LOGGER.debug("robots.txt policies cached for: %s", ", ".join(context.robots.cached_hosts()))

        self._emit_report(run)
        return run

    def _new_context(self, config: CrawlConfig) -> _CrawlContext:
        robots: RobotsPolicyCache | None = None
        owned_loader: RobotsTxtLoader | None = None
        if config.respect_robots:
            loader = self.robots_loader
            if loader is None:
                owned_loader = RobotsTxtLoader(config.user_agent)
                loader = owned_loader
            robots = RobotsPolicyCache(config.user_agent, loader=loader)

        return _CrawlContext(
            config=config,
            visited=VisitedTracker(),
            errors=ErrorCollector(),
            robots=robots,
            owned_loader=owned_loader,
        )

    def _crawl_concurrent(self, context: _CrawlContext) -> PageResult:
        LOGGER.info("Using worker pool with %d threads", context.config.max_workers)
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=context.config.max_workers,
            thread_name_prefix="crawler-worker",
        )
        context.executor = executor
        try:
            return self._crawl_page(context, context.config.root_url, 0, _CancelScope())
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
            context.executor = None

    def _crawl_page(
        self,
        context: _CrawlContext,
        url: str,
        depth: int,
        scope: _CancelScope,
    ) -> PageResult:
        try:
            return self._visit(context, url, depth, scope)
        except Exception as exc:
            self._record_error(
                context,
                CrawlError.from_exception(
                    url=url,
                    depth=depth,
                    category=ErrorCategory.UNKNOWN,
                    message="Unexpected error during crawl",
                    exc=exc,
                ),
            )
            return PageResult.broken_link(url, depth)

    def _visit(
        self,
        context: _CrawlContext,
        url: str,
        depth: int,
        scope: _CancelScope,
    ) -> PageResult:
        config = context.config

        if depth > config.max_depth:
            LOGGER.debug("Depth %d exceeds max depth %d: %s", depth, config.max_depth, url)
            return PageResult.broken_link(url, depth)

        if scope.cancelled:
            return self._interrupted(context, url, depth)

        if context.visited.check_and_mark(url):
            LOGGER.debug("URL already visited: %s", url)
            return PageResult.broken_link(url, depth)

        if not is_allowed_domain(url, config.allowed_domains):
            LOGGER.debug("Domain not allowed: %s", url)
            self._record_error(
                context,
                CrawlError(
                    url=url,
                    depth=depth,
                    category=ErrorCategory.INVALID_URL,
                    message="Domain not in allowed list",
                ),
            )
            return PageResult.broken_link(url, depth)

        if context.robots is not None and not context.robots.is_allowed(url):
            LOGGER.debug("Blocked by robots.txt: %s", url)
            self._record_error(
                context,
                CrawlError(
                    url=url,
                    depth=depth,
                    category=ErrorCategory.ROBOTS_BLOCKED,
                    message="Blocked by robots.txt",
                ),
            )
            return PageResult.broken_link(url, depth)

        if scope.cancelled:
            return self._interrupted(context, url, depth)

        outcome = self._fetch(context, url, depth)
        if outcome is None:
            return PageResult.broken_link(url, depth)

        page = PageResult(url=url, depth=depth, sections=outcome.sections)
        links = page.all_links()
        LOGGER.debug("Parsed %d sections and %d links from %s", len(page.sections), len(links), url)

        eligible = self._eligible_links(context, links, depth)
        if not eligible or scope.cancelled:
            return page

        if context.executor is None:
            children = [self._crawl_page(context, link, depth + 1, scope) for link in eligible]
        else:
            children = self._crawl_children(context, eligible, depth + 1, scope)

        return page.with_children(children)

    def _fetch(self, context: _CrawlContext, url: str, depth: int) -> PageSections | None:
        try:
            outcome = self.fetcher.fetch_and_parse(url)
        except requests.Timeout as exc:
            error = CrawlError.from_exception(
                url=url,
                depth=depth,
                category=ErrorCategory.TIMEOUT,
                message=f"Timeout fetching {url}",
                exc=exc,
            )
        except requests.RequestException as exc:
            error = CrawlError.from_exception(
                url=url,
                depth=depth,
                category=ErrorCategory.NETWORK_ERROR,
                message=f"Network error fetching {url}",
                exc=exc,
            )
        else:
            if not isinstance(outcome, FetchFailure):
                return outcome
            error = CrawlError(
                url=url,
                depth=depth,
                category=outcome.category,
                message=outcome.message,
                details=outcome.details,
            )

        self._record_error(context, error)
        return None

    @staticmethod
    def _eligible_links(context: _CrawlContext, links: list[str], depth: int) -> list[str]:
        """Links worth scheduling as children: unseen, in scope, within depth.

        The visited check is a peek; the child marks itself when it starts.
        """

        config = context.config
        if depth + 1 > config.max_depth:
            return []

        eligible: dict[str, None] = {}
        for link in links:
            key = normalize_for_visit(link)
            if key in eligible:
                continue
            if context.visited.is_visited(key):
                continue
            if not is_allowed_domain(key, config.allowed_domains):
                continue
            eligible[key] = None
        return list(eligible)

    def _crawl_children(
        self,
        context: _CrawlContext,
        links: list[str],
        depth: int,
        scope: _CancelScope,
    ) -> list[PageResult]:
        assert context.executor is not None

        submitted: list[tuple[str, _CancelScope, concurrent.futures.Future[PageResult]]] = []
        for link in links:
            child_scope = scope.child()
            future = context.executor.submit(self._crawl_page, context, link, depth, child_scope)
            submitted.append((link, child_scope, future))

        children: list[PageResult] = []
        for link, child_scope, future in submitted:
            child = self._await_child(context, link, depth, child_scope, future)
            if child is not None:
                children.append(child)
        return children

    def _await_child(
        self,
        context: _CrawlContext,
        url: str,
        depth: int,
        scope: _CancelScope,
        future: concurrent.futures.Future[PageResult],
    ) -> PageResult | None:
        # A child no worker has picked up yet runs on this thread; the parent
        # would otherwise hold a pool slot while waiting for it.
        if future.cancel():
            return self._run_reclaimed(context, url, depth, scope)

        timeout = context.config.child_timeout_seconds
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            scope.cancel()
            self._record_timeout(context, url, depth, timeout)
        except concurrent.futures.CancelledError:
            self._record_error(
                context,
                CrawlError(
                    url=url,
                    depth=depth,
                    category=ErrorCategory.THREAD_INTERRUPTED,
                    message="Crawl task was cancelled",
                ),
            )
        except Exception as exc:
            self._record_error(
                context,
                CrawlError.from_exception(
                    url=url,
                    depth=depth,
                    category=ErrorCategory.UNKNOWN,
                    message="Error executing crawl task",
                    exc=exc,
                ),
            )
        return None

    def _run_reclaimed(
        self,
        context: _CrawlContext,
        url: str,
        depth: int,
        scope: _CancelScope,
    ) -> PageResult | None:
        """Run a reclaimed child inline, bounded by the same per-child timeout.

        When the deadline passes the subtree is cancelled and the result,
        however far it got, is discarded.
        """

        timeout = context.config.child_timeout_seconds
        expired = threading.Event()

        def _expire() -> None:
            expired.set()
            scope.cancel()

        timer = threading.Timer(timeout, _expire)
        timer.daemon = True
        timer.start()
        try:
            child = self._crawl_page(context, url, depth, scope)
        finally:
            timer.cancel()

        if not expired.is_set():
            return child
        self._record_timeout(context, url, depth, timeout)
        return None

    def _record_timeout(self, context: _CrawlContext, url: str, depth: int, timeout: float) -> None:
        LOGGER.warning("Timeout waiting for result from %s", url)
        self._record_error(
            context,
            CrawlError(
                url=url,
                depth=depth,
                category=ErrorCategory.TIMEOUT,
                message=f"Task execution timeout after {timeout:g}s",
            ),
        )

    def _interrupted(self, context: _CrawlContext, url: str, depth: int) -> PageResult:
        LOGGER.debug("Skipping %s: its branch was cancelled", url)
        self._record_error(
            context,
            CrawlError(
                url=url,
                depth=depth,
                category=ErrorCategory.THREAD_INTERRUPTED,
                message="Branch cancelled after parent timeout",
            ),
        )
        return PageResult.broken_link(url, depth)

    @staticmethod
    def _record_error(context: _CrawlContext, error: CrawlError) -> None:
        LOGGER.warning(
            "Crawl error for %s at depth %d: %s - %s",
            error.url,
            error.depth,
            error.category.value,
            error.message,
        )
        context.errors.add(error)

    def _emit_report(self, run: CrawlRun) -> None:
        if self.reporter is None:
            return
        if run.root is None:
            LOGGER.warning("No crawl results generated - check configuration and connectivity")
            return

        errors = run.errors if run.config.detailed_errors else None
        try:
            self.reporter.render(run.root, run.config, errors)
        except Exception:
            LOGGER.exception("Failed to write report for %s", run.config.root_url)


__all__ = [
    "CrawlEngine",
    "CrawlRun",
    "PageSource",
    "Reporter",
]
