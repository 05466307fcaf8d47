"""URL normalization, domain filtering, and href resolution helpers."""

from __future__ import annotations

from typing import Iterable
from urllib.parse import urldefrag, urljoin, urlsplit


DEFAULT_ALLOWED_SCHEMES = ("http", "https")


def normalize_for_visit(url: str) -> str:
    """Canonicalize a URL for visited comparison.

    Only the fragment is dropped: scheme, authority, path and query stay
    significant, so `/page` and `/page#x` collapse while `/page?x=1` does not.
    """

    return urldefrag(url.strip())[0]


def host_from_url(url: str) -> str:
    """Extract the lower-cased host from a URL, or "" when there is none."""

    try:
        parsed = urlsplit(url)
    except ValueError:
        return ""
    return (parsed.hostname or "").strip().lower()


def host_key(url: str) -> str:
    """Return `host[:port]` used to key per-host state such as robots policies."""

    try:
        parsed = urlsplit(url)
        port = parsed.port
    except ValueError:
        return ""

    host = (parsed.hostname or "").strip().lower()
    if not host:
        return ""
    if port is not None:
        return f"{host}:{port}"
    return host


def normalize_allowed_domains(domains: Iterable[str] | str | None) -> tuple[str, ...]:
    """Lower-case allow-list entries and drop blanks, preserving order."""

    if domains is None:
        return ()
    if isinstance(domains, str):
        domains = domains.split(",")

    out: dict[str, None] = {}
    for domain in domains:
        normalized = str(domain).strip().lower()
        if normalized:
            out.setdefault(normalized, None)
    return tuple(out)


def is_allowed_domain(url: str, allowed_domains: Iterable[str]) -> bool:
    """Return True if the URL host ends with any allow-list entry.

    This is a plain suffix test without a dot boundary, so `example.com`
    also admits `notexample.com`. An empty allow-list admits nothing.
    """

    host = host_from_url(url)
    if not host:
        return False

    for domain in allowed_domains:
        suffix = domain.strip().lower()
        if suffix and host.endswith(suffix):
            return True
    return False


def is_http_url(url: str, allowed_schemes: Iterable[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """Return True if URL is absolute and has an allowed HTTP-like scheme."""

    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.scheme.lower() in {scheme.lower() for scheme in allowed_schemes}


def resolve_href(base_url: str, href: str | None) -> str | None:
    """Resolve a possibly relative href against the page base URL.

    A href that cannot be joined is kept as a literal when it still parses
    as a URL on its own; only hopelessly malformed values are dropped.
    """

    if href is None:
        return None

    candidate = href.strip()
    if not candidate:
        return None

    try:
        return urljoin(base_url, candidate)
    except ValueError:
        pass

    try:
        urlsplit(candidate)
    except ValueError:
        return None
    return candidate


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "host_from_url",
    "host_key",
    "is_allowed_domain",
    "is_http_url",
    "normalize_allowed_domains",
    "normalize_for_visit",
    "resolve_href",
]
