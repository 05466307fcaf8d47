"""CLI entrypoint for bounded-depth crawls."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from .config import CrawlConfig, load_config_payload
from .engine import CrawlEngine, CrawlRun
from .fetcher import PageFetcher
from .reporter import reporter_for_path


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="treecrawl",
        description=(
            "Crawl a site up to a maximum depth within allowed domains and write "
            "a hierarchical report of headings and links."
        ),
    )

    parser.add_argument("root_url", nargs="?", default=None, help="Root URL to start from.")
    parser.add_argument("max_depth", nargs="?", type=int, default=None, help="Maximum crawl depth (>= 0).")
    parser.add_argument(
        "domains",
        nargs="?",
        default=None,
        help="Comma-separated allowed domain suffixes (e.g. example.com,example.org).",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config. Command-line values override it.",
    )
    parser.add_argument(
        "--concurrent",
        dest="concurrent",
        action="store_true",
        default=None,
        help="Crawl sibling pages in parallel on a worker pool.",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=None,
        help="Worker pool size; implies --concurrent.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds a parent waits for one child subtree in concurrent mode.",
    )
    parser.add_argument("--request_timeout", type=float, default=None)
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--retry_backoff_seconds", type=float, default=None)

    parser.add_argument("--user_agent", type=str, default=None)
    parser.add_argument(
        "--respect_robots",
        dest="respect_robots",
        action="store_true",
        default=None,
        help="Respect robots.txt (default comes from config).",
    )
    parser.add_argument(
        "--no_respect_robots",
        dest="respect_robots",
        action="store_false",
        help="Ignore robots.txt.",
    )
    parser.add_argument(
        "--report",
        type=str,
        default=None,
        help="Report path; a .json suffix writes JSON, anything else Markdown.",
    )
    parser.add_argument(
        "--no_error_details",
        dest="detailed_errors",
        action="store_false",
        default=None,
        help="Leave the error summary out of the report.",
    )
    parser.add_argument(
        "--log_file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    parser.add_argument(
        "--print_summary_json",
        action="store_true",
        help="Print the full run summary as JSON after the crawl.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    payload: dict[str, Any] = {}
    if args.config is not None:
        payload.update(load_config_payload(args.config))

    if args.root_url is not None:
        payload["root_url"] = args.root_url
    if args.max_depth is not None:
        payload["max_depth"] = args.max_depth
    if args.domains is not None:
        payload["allowed_domains"] = args.domains

    if "root_url" not in payload or "max_depth" not in payload:
        raise ValueError("A root URL and max depth are required (positional or via --config).")

    if args.concurrent is not None:
        payload["concurrent"] = args.concurrent
    if args.threads is not None:
        payload["concurrent"] = True
        payload["max_workers"] = args.threads
    if args.timeout is not None:
        payload["child_timeout_seconds"] = args.timeout
    if args.request_timeout is not None:
        payload["request_timeout_seconds"] = args.request_timeout
    if args.retries is not None:
        payload["retries"] = args.retries
    if args.retry_backoff_seconds is not None:
        payload["retry_backoff_seconds"] = args.retry_backoff_seconds
    if args.user_agent is not None:
        payload["user_agent"] = args.user_agent
    if args.respect_robots is not None:
        payload["respect_robots"] = args.respect_robots
    if args.report is not None:
        payload["report_path"] = args.report
    if args.detailed_errors is not None:
        payload["detailed_errors"] = args.detailed_errors

    return CrawlConfig.from_dict(payload)


def setup_logging(verbose: bool, log_file: Path | None = None) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # urllib3 logs every connection at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_summary(run: CrawlRun, *, print_summary_json: bool) -> None:
    summary = run.summary()

    print("\n=== Crawl Complete ===")
    print(f"root_url: {summary['root_url']}")
    print(f"mode: {summary['mode']}")
    print(f"report: {run.config.report_path}")

    print("\n--- Core Stats ---")
    for key in [
        "pages_total",
        "pages_ok",
        "pages_broken",
        "visited_urls",
        "errors_total",
        "duration_seconds",
    ]:
        print(f"{key}: {summary[key]}")

    if print_summary_json:
        print("\n--- Full Summary JSON ---")
        print(json.dumps(summary, indent=2, sort_keys=True))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        config = build_config(args)
    except Exception as exc:
        logging.error("Failed to build config: %s", exc)
        return 2

    try:
        with PageFetcher(config) as fetcher:
            engine = CrawlEngine(fetcher, reporter=reporter_for_path(config.report_path))
            run = engine.crawl(config)
    except KeyboardInterrupt:
        logging.error("Interrupted by user")
        return 130
    except Exception:
        logging.exception("Crawl execution failed")
        return 1

    if not run.ok:
        logging.error("Crawl produced no result for %s", config.root_url)
        return 1

    print_summary(run, print_summary_json=args.print_summary_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
