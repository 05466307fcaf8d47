"""robots.txt parsing, path matching, and the per-host policy cache."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, Iterable
from urllib.parse import urlsplit

import requests

from .constants import DEFAULT_ROBOTS_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from .url import host_key

LOGGER = logging.getLogger(__name__)

RobotsLoader = Callable[[str], "str | None"]


def normalize_robots_path(path: str | None) -> str:
    """Normalize a robots.txt rule or request path to an absolute prefix.

    Dot segments are resolved. Anything that climbs above the root, is blank,
    or fails to parse collapses to `/`.
    """

    if path is None or not path.strip():
        return "/"

    # A leading "//" would otherwise be read as an authority.
    candidate = re.sub(r"^/{2,}", "/", path.strip())
    try:
        raw = urlsplit(candidate).path
    except ValueError:
        LOGGER.warning("Failed to normalize path '%s', defaulting to root '/'", path)
        return "/"

    if not raw:
        return "/"

    collapsed = re.sub(r"/{2,}", "/", raw)
    absolute = collapsed.startswith("/")
    raw_segments = collapsed.split("/")
    trailing = collapsed.endswith("/") or raw_segments[-1] in {".", ".."}

    segments: list[str] = []
    for segment in raw_segments:
        if not segment or segment == ".":
            continue
        if segment == "..":
            if segments and segments[-1] != "..":
                segments.pop()
            else:
                segments.append("..")
            continue
        segments.append(segment)

    if ".." in segments:
        return "/"

    normalized = "/".join(segments)
    if trailing and segments:
        normalized += "/"
    if absolute or not normalized.startswith("/"):
        normalized = "/" + normalized
    return normalized


@dataclass(frozen=True, slots=True)
class RobotsPolicy:
    """Parsed robots.txt rules for one host.

    `allowed` prefixes always win over `disallowed` ones. `crawl_delay` is
    kept for callers but never enforced by the engine.
    """

    disallowed: frozenset[str] = frozenset()
    allowed: frozenset[str] = frozenset()
    crawl_delay: int | None = None

    @classmethod
    def allow_all(cls) -> "RobotsPolicy":
        return cls()

    @classmethod
    def from_rules(
        cls,
        *,
        disallow: Iterable[str] = (),
        allow: Iterable[str] = (),
        crawl_delay: int | None = None,
    ) -> "RobotsPolicy":
        """Build a policy from raw rule paths (normalized here)."""

        return cls(
            disallowed=frozenset(normalize_robots_path(path) for path in disallow),
            allowed=frozenset(normalize_robots_path(path) for path in allow),
            crawl_delay=crawl_delay,
        )

    @property
    def is_empty(self) -> bool:
        return not self.disallowed and not self.allowed

    def is_allowed(self, url: str) -> bool:
        try:
            path = urlsplit(url).path or "/"
        except ValueError:
            path = "/"
        normalized = normalize_robots_path(path)

        if any(normalized.startswith(prefix) for prefix in self.allowed):
            return True
        if any(normalized.startswith(prefix) for prefix in self.disallowed):
            return False
        return True


def parse_robots_txt(text: str, user_agent: str = DEFAULT_USER_AGENT) -> RobotsPolicy:
    """Parse raw robots.txt text into the policy that applies to `user_agent`."""

    disallowed: set[str] = set()
    allowed: set[str] = set()
    crawl_delay: int | None = None
    applies_to_us = False
    agent = user_agent.strip().lower()

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith("#") or ":" not in line:
            continue

        key, value = line.split(":", maxsplit=1)
        key = key.strip().lower()
        value = value.split("#", maxsplit=1)[0].strip()

        if key == "user-agent":
            applies_to_us = value == "*" or value.lower() == agent
            continue

        if not applies_to_us:
            continue

        if key == "disallow":
            if value:
                disallowed.add(normalize_robots_path(value))
        elif key == "allow":
            if value:
                allowed.add(normalize_robots_path(value))
        elif key == "crawl-delay":
            try:
                crawl_delay = int(value)
            except ValueError:
                LOGGER.warning("Invalid crawl-delay value in robots.txt: %s", value)

    LOGGER.info(
        "Finished parsing robots.txt: %d allowed, %d disallowed paths, delay %s",
        len(allowed),
        len(disallowed),
        crawl_delay,
    )
    return RobotsPolicy(
        disallowed=frozenset(disallowed),
        allowed=frozenset(allowed),
        crawl_delay=crawl_delay,
    )


class RobotsTxtLoader:
    """Download robots.txt bodies with one `requests.Session` per thread."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        *,
        timeout_seconds: float = DEFAULT_ROBOTS_TIMEOUT_SECONDS,
    ) -> None:
        self.user_agent = user_agent
        self.timeout_seconds = timeout_seconds
        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def __call__(self, robots_url: str) -> str | None:
        LOGGER.info("Fetching robots.txt from %s", robots_url)
        response = self._session().get(
            robots_url,
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout_seconds,
            allow_redirects=True,
        )
        if response.status_code >= 400:
            LOGGER.debug("robots.txt at %s returned HTTP %d", robots_url, response.status_code)
            return None
        return response.text

    def close(self) -> None:
        with self._sessions_lock:
            sessions = list(self._sessions)
            self._sessions.clear()
        for session in sessions:
            session.close()
        self._thread_local = threading.local()

    def _session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session


class RobotsPolicyCache:
    """Per-host cache of robots policies for one crawl run.

    Policies are loaded lazily on first access to a host. A per-host lock makes
    the first load compute-if-absent, so concurrent tasks hitting a new host
    trigger exactly one download. Loading fails open.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        *,
        loader: RobotsLoader | None = None,
    ) -> None:
        self.user_agent = user_agent
        self._loader = loader or RobotsTxtLoader(user_agent)

        self._lock = threading.Lock()
        self._host_locks: dict[str, threading.Lock] = {}
        self._policies: dict[str, RobotsPolicy] = {}

    def get_policy(self, url: str) -> RobotsPolicy:
        key = host_key(url)
        if not key:
            return RobotsPolicy.allow_all()

        with self._lock:
            policy = self._policies.get(key)
            if policy is not None:
                return policy
            host_lock = self._host_locks.setdefault(key, threading.Lock())

        with host_lock:
            with self._lock:
                policy = self._policies.get(key)
            if policy is not None:
                return policy

            policy = self._load(url, key)
            with self._lock:
                self._policies[key] = policy
            return policy

    def is_allowed(self, url: str) -> bool:
        return self.get_policy(url).is_allowed(url)

    def cached_hosts(self) -> list[str]:
        with self._lock:
            return sorted(self._policies)

    def clear(self) -> None:
        with self._lock:
            self._policies.clear()
            self._host_locks.clear()

    def _load(self, url: str, key: str) -> RobotsPolicy:
        scheme = (urlsplit(url).scheme or "http").lower()
        robots_url = f"{scheme}://{key}/robots.txt"

        try:
            text = self._loader(robots_url)
        except Exception as exc:
            LOGGER.warning(
                "No robots.txt found or failed to load for %s: %s: %s",
                key,
                exc.__class__.__name__,
                exc,
            )
            return RobotsPolicy.allow_all()

        if text is None:
            LOGGER.warning("No robots.txt found for %s, allowing everything", key)
            return RobotsPolicy.allow_all()

        policy = parse_robots_txt(text, self.user_agent)
        if policy.is_empty:
            LOGGER.debug("robots.txt for %s has no rules for %s", key, self.user_agent)
        return policy


__all__ = [
    "RobotsLoader",
    "RobotsPolicy",
    "RobotsPolicyCache",
    "RobotsTxtLoader",
    "normalize_robots_path",
    "parse_robots_txt",
]
