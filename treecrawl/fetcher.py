"""Page retrieval over `requests` plus section parsing."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

import requests

from .config import CrawlConfig
from .constants import HTML_CONTENT_TYPES, RETRYABLE_STATUS_CODES
from .parsers import HTMLParser
from .types import ErrorCategory, FetchFailure, PageSections
from .url import is_http_url

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _AttemptConfig:
    attempts: int
    backoff_seconds: float


class PageFetcher:
    """Fetch a URL and turn it into ordered heading/link sections.

    `fetch_and_parse` never raises for retrieval problems: it returns a
    `FetchFailure` carrying the error category instead. Sessions are kept per
    thread so one fetcher can serve a whole worker pool.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        parser: HTMLParser | None = None,
    ) -> None:
        self.config = config
        self.parser = parser or HTMLParser()

        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

        self._closed = False
        self._closed_lock = threading.Lock()

    def fetch_and_parse(self, url: str) -> PageSections | FetchFailure:
        if not is_http_url(url):
            return FetchFailure(
                category=ErrorCategory.INVALID_URL,
                message=f"Invalid URL: {url}",
            )

        if self._is_closed():
            return FetchFailure(
                category=ErrorCategory.NETWORK_ERROR,
                message="Fetcher is closed",
            )

        attempt_cfg = _AttemptConfig(
            attempts=max(1, self.config.retries + 1),
            backoff_seconds=max(0.0, self.config.retry_backoff_seconds),
        )

        outcome = self._fetch_with_retries(url, attempt_cfg)
        if isinstance(outcome, FetchFailure):
            return outcome
        return self._parse_response(url, outcome)

    def close(self) -> None:
        with self._closed_lock:
            self._closed = True

        # Worker threads each own a session; close all of them, not just ours.
        with self._sessions_lock:
            sessions = list(self._sessions)
            self._sessions.clear()
        for session in sessions:
            session.close()
        self._thread_local = threading.local()

    def __enter__(self) -> "PageFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _is_closed(self) -> bool:
        with self._closed_lock:
            return self._closed

    def _fetch_with_retries(
        self,
        url: str,
        attempt_cfg: _AttemptConfig,
    ) -> requests.Response | FetchFailure:
        last_outcome: requests.Response | FetchFailure | None = None

        for attempt in range(1, attempt_cfg.attempts + 1):
            outcome = self._fetch_once(url)
            last_outcome = outcome

            if self._is_terminal(outcome):
                break

            if attempt < attempt_cfg.attempts:
                LOGGER.debug("Retrying %s (attempt %d/%d)", url, attempt + 1, attempt_cfg.attempts)
                if attempt_cfg.backoff_seconds > 0:
                    # Linear backoff: attempt N waits N * backoff_seconds.
                    time.sleep(attempt_cfg.backoff_seconds * attempt)

        if last_outcome is None:
            return FetchFailure(category=ErrorCategory.UNKNOWN, message="Unknown fetch failure")

        if isinstance(last_outcome, requests.Response) and last_outcome.status_code >= 400:
            return FetchFailure(
                category=ErrorCategory.HTTP_ERROR,
                message=f"HTTP error fetching {url}: {last_outcome.status_code}",
                status_code=last_outcome.status_code,
            )
        return last_outcome

    def _fetch_once(self, url: str) -> requests.Response | FetchFailure:
        LOGGER.debug("Fetching document from: %s", url)
        try:
            return self._thread_local_session().get(
                url,
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.request_timeout_seconds,
                allow_redirects=True,
            )
        except requests.Timeout as exc:
            return FetchFailure(
                category=ErrorCategory.TIMEOUT,
                message=f"Timeout fetching {url}",
                details=f"{exc.__class__.__name__}: {exc}",
            )
        except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema,
                requests.exceptions.InvalidSchema) as exc:
            return FetchFailure(
                category=ErrorCategory.INVALID_URL,
                message=f"Invalid URL: {url}",
                details=f"{exc.__class__.__name__}: {exc}",
            )
        except requests.RequestException as exc:
            return FetchFailure(
                category=ErrorCategory.NETWORK_ERROR,
                message=f"Network error fetching {url}",
                details=f"{exc.__class__.__name__}: {exc}",
            )

    @staticmethod
    def _is_terminal(outcome: requests.Response | FetchFailure) -> bool:
        if isinstance(outcome, FetchFailure):
            return outcome.category == ErrorCategory.INVALID_URL

        status = outcome.status_code
        return status not in RETRYABLE_STATUS_CODES and status < 500

    def _parse_response(self, url: str, response: requests.Response) -> PageSections | FetchFailure:
        content_type = (response.headers.get("Content-Type") or "").split(";", maxsplit=1)[0]
        content_type = content_type.strip().lower()
        if content_type and content_type not in HTML_CONTENT_TYPES:
            return FetchFailure(
                category=ErrorCategory.PARSING_ERROR,
                message=f"Unsupported content type for {url}: {content_type}",
                status_code=response.status_code,
            )

        final_url = response.url or url
        try:
            return self.parser.parse(response.content or b"", base_url=final_url)
        except Exception as exc:
            return FetchFailure(
                category=ErrorCategory.PARSING_ERROR,
                message=f"Failed to parse {url}",
                status_code=response.status_code,
                details=f"{exc.__class__.__name__}: {exc}",
            )

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session


__all__ = ["PageFetcher"]
