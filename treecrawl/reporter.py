"""Report writers for finished crawl trees.

Reporters own the on-disk format. They receive the complete, immutable tree
after the crawl and never see partial results.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import TextIO

from .config import CrawlConfig
from .constants import JSON_INDENT
from .errors import ErrorCollector
from .types import CrawlError, ErrorCategory, PageResult, Section, utc_now_iso

LOGGER = logging.getLogger(__name__)


def _sorted_children(page: PageResult) -> list[PageResult]:
    return sorted(page.children, key=lambda child: child.url)


def count_pages(root: PageResult) -> tuple[int, int]:
    """Return `(total, successful)` page counts for a tree."""

    total = 0
    successful = 0
    for page in root.iter_pages():
        total += 1
        if not page.broken:
            successful += 1
    return total, successful


class MarkdownReporter:
    """Write the crawl tree as Markdown with blockquote-nested headings."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = None if path is None else Path(path)

    def render(
        self,
        root: PageResult,
        config: CrawlConfig,
        errors: ErrorCollector | None = None,
    ) -> Path:
        out_path = self.path or Path(config.report_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)

        with out_path.open("w", encoding="utf-8") as handle:
            self.write(handle, root, config, errors)

        LOGGER.info("Successfully wrote report to '%s'", out_path)
        return out_path

    def write(
        self,
        out: TextIO,
        root: PageResult,
        config: CrawlConfig,
        errors: ErrorCollector | None = None,
    ) -> None:
        self._write_header(out, config)
        if errors is not None:
            self._write_execution_summary(out, root, errors)
        self._write_page(out, root)
        if errors is not None and errors.has_errors():
            self._write_error_summary(out, errors)

    @staticmethod
    def _write_header(out: TextIO, config: CrawlConfig) -> None:
        out.write(f"# Crawl Report: {config.root_url}\n")
        out.write(f"**Max Depth:** {config.max_depth}  \n")
        out.write(f"**Domains:** {', '.join(config.allowed_domains) or 'none'}\n\n")
        out.write("---\n\n")

    @staticmethod
    def _write_execution_summary(out: TextIO, root: PageResult, errors: ErrorCollector) -> None:
        total, successful = count_pages(root)
        out.write("## Execution Summary\n\n")
        out.write(f"**Total Pages Processed:** {total}  \n")
        out.write(f"**Successful Pages:** {successful}  \n")
        out.write(f"**Broken/Failed Pages:** {total - successful}  \n")
        out.write(f"**Total Errors:** {errors.total()}  \n")
        out.write("\n---\n\n")

    def _write_page(self, out: TextIO, page: PageResult) -> None:
        out.write(f"## Page: {page.url}\n")
        out.write(f"**Depth:** {page.depth}  \n")
        out.write(f"**Status:** {'Broken' if page.broken else 'OK'}\n\n")

        if not page.broken:
            self._write_content(out, page)

        for child in _sorted_children(page):
            out.write("---\n\n")
            self._write_page(out, child)

    def _write_content(self, out: TextIO, page: PageResult) -> None:
        out.write("### Content\n\n")

        if not page.sections:
            out.write("*(No headings or links found)*\n\n")
            return

        for section in page.sections:
            if section.heading.is_page_root:
                self._write_root_links(out, section)
                break

        for section in page.sections:
            if not section.heading.is_page_root:
                self._write_section(out, section)

    @staticmethod
    def _write_root_links(out: TextIO, section: Section) -> None:
        if not section.links:
            return
        out.write("**Links Before First Heading:**\n")
        for link in section.links:
            out.write(f"* {link}\n")
        out.write("\n")

    @staticmethod
    def _write_section(out: TextIO, section: Section) -> None:
        quote = ">" * section.heading.level
        out.write(f"{quote}**H{section.heading.level}: {section.heading.text}**\n")
        for link in section.links:
            out.write(f"{quote}* {link}\n")
        out.write("\n")

    def _write_error_summary(self, out: TextIO, errors: ErrorCollector) -> None:
        out.write("---\n\n")
        out.write("## Error Summary\n\n")

        out.write("### Error Statistics\n\n")
        for category, count in errors.statistics().items():
            out.write(f"**{category.label}:** {count}  \n")
        out.write("\n")

        out.write("### Error Details\n\n")
        grouped: dict[ErrorCategory, list[CrawlError]] = defaultdict(list)
        for error in errors.all():
            grouped[error.category].append(error)

        for category, items in grouped.items():
            out.write(f"#### {category.label}\n\n")
            for error in items:
                out.write(f"- **URL:** {error.url}  \n")
                out.write(f"  **Depth:** {error.depth}  \n")
                out.write(f"  **Time:** {error.timestamp.strftime('%H:%M:%S')}  \n")
                out.write(f"  **Message:** {error.message}  \n")
                if error.details:
                    out.write(f"  **Details:** {error.details}  \n")
                out.write("\n")


class JsonReporter:
    """Write the crawl tree, config and error log as one JSON document."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = None if path is None else Path(path)

    def render(
        self,
        root: PageResult,
        config: CrawlConfig,
        errors: ErrorCollector | None = None,
    ) -> Path:
        out_path = self.path or Path(config.report_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)

        total, successful = count_pages(root)
        payload = {
            "generated_at": utc_now_iso(),
            "config": config.to_dict(),
            "summary": {
                "pages_total": total,
                "pages_ok": successful,
                "pages_broken": total - successful,
            },
            "root": root.to_json(),
            "errors": None if errors is None else errors.to_json(),
        }
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )

        LOGGER.info("Successfully wrote report to '%s'", out_path)
        return out_path


def reporter_for_path(path: str | Path) -> MarkdownReporter | JsonReporter:
    """Pick a reporter from the report file extension."""

    report_path = Path(path)
    if report_path.suffix.lower() == ".json":
        return JsonReporter(report_path)
    return MarkdownReporter(report_path)


__all__ = [
    "JsonReporter",
    "MarkdownReporter",
    "count_pages",
    "reporter_for_path",
]
