"""Bounded-depth web crawler: config, shared types, and crawl components."""

from .config import CrawlConfig, load_config, load_config_payload, save_config
from .engine import CrawlEngine, CrawlRun, PageSource, Reporter
from .errors import ErrorCollector
from .fetcher import PageFetcher
from .parsers import HTMLParser, HTMLParserConfig
from .reporter import JsonReporter, MarkdownReporter, count_pages, reporter_for_path
from .robots import (
    RobotsPolicy,
    RobotsPolicyCache,
    RobotsTxtLoader,
    normalize_robots_path,
    parse_robots_txt,
)
from .types import (
    CrawlError,
    ErrorCategory,
    FetchFailure,
    Heading,
    PageResult,
    PageSections,
    Section,
    utc_now_iso,
)
from .url import (
    host_from_url,
    host_key,
    is_allowed_domain,
    is_http_url,
    normalize_allowed_domains,
    normalize_for_visit,
    resolve_href,
)
from .visited import VisitedTracker

__version__ = "0.1.0"

__all__ = [
    "CrawlConfig",
    "CrawlEngine",
    "CrawlError",
    "CrawlRun",
    "ErrorCategory",
    "ErrorCollector",
    "FetchFailure",
    "HTMLParser",
    "HTMLParserConfig",
    "Heading",
    "JsonReporter",
    "MarkdownReporter",
    "PageFetcher",
    "PageResult",
    "PageSections",
    "PageSource",
    "Reporter",
    "RobotsPolicy",
    "RobotsPolicyCache",
    "RobotsTxtLoader",
    "Section",
    "VisitedTracker",
    "count_pages",
    "host_from_url",
    "host_key",
    "is_allowed_domain",
    "is_http_url",
    "load_config",
    "load_config_payload",
    "normalize_allowed_domains",
    "normalize_for_visit",
    "normalize_robots_path",
    "parse_robots_txt",
    "reporter_for_path",
    "resolve_href",
    "save_config",
    "utc_now_iso",
]
