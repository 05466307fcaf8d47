"""Crawler-wide defaults shared by config, fetcher, robots and reporter."""

from __future__ import annotations

import os


DEFAULT_USER_AGENT = "SimpleWebCrawlerBot/1.0"

DEFAULT_REQUEST_TIMEOUT_SECONDS = 2.0
DEFAULT_ROBOTS_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRIES = 0
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5

# Parent tasks block on each child subtree for at most this long.
DEFAULT_CHILD_TIMEOUT_SECONDS = 300.0
DEFAULT_MAX_WORKERS = (os.cpu_count() or 2) * 2

DEFAULT_CONCURRENT = False
DEFAULT_RESPECT_ROBOTS = True
DEFAULT_DETAILED_ERRORS = True

DEFAULT_REPORT_PATH = "report.md"

MAX_HEADING_LEVEL = 6
ROOT_HEADING_LEVEL = 0
ROOT_HEADING_TEXT = "Page Root"

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
RETRYABLE_STATUS_CODES = frozenset({408, 429})

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")


__all__ = [
    "DEFAULT_CHILD_TIMEOUT_SECONDS",
    "DEFAULT_CONCURRENT",
    "DEFAULT_DETAILED_ERRORS",
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_REPORT_PATH",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "DEFAULT_RESPECT_ROBOTS",
    "DEFAULT_RETRIES",
    "DEFAULT_RETRY_BACKOFF_SECONDS",
    "DEFAULT_ROBOTS_TIMEOUT_SECONDS",
    "DEFAULT_USER_AGENT",
    "HTML_CONTENT_TYPES",
    "JSON_INDENT",
    "MAX_HEADING_LEVEL",
    "RETRYABLE_STATUS_CODES",
    "ROOT_HEADING_LEVEL",
    "ROOT_HEADING_TEXT",
    "SUPPORTED_CONFIG_SUFFIXES",
]
