"""HTML parser: ordered headings with the links that follow each of them."""

from __future__ import annotations

from dataclasses import dataclass

from bs4 import BeautifulSoup
from bs4.element import Tag

from ..constants import MAX_HEADING_LEVEL
from ..types import Heading, PageSections, Section
from ..url import resolve_href


@dataclass(slots=True)
class HTMLParserConfig:
    """Config for section extraction."""

    features: str = "lxml"
    max_heading_level: int = MAX_HEADING_LEVEL
    honor_base_href: bool = True


class HTMLParser:
    """Split a document into sections keyed by its `h1`..`hN` headings.

    Elements are visited in document order. Every non-empty heading opens a
    new section; links seen before the first heading land in a synthetic
    level-0 "Page Root" section, which is dropped when it stays empty.
    """

    def __init__(self, config: HTMLParserConfig | None = None) -> None:
        self.config = config or HTMLParserConfig()
        self._heading_tags = [f"h{level}" for level in range(1, self.config.max_heading_level + 1)]

    def parse(self, html: str | bytes, *, base_url: str) -> PageSections:
        soup = BeautifulSoup(html, self.config.features)
        link_base = self._link_base(soup, base_url)

        buckets: list[tuple[Heading, dict[str, None]]] = [(Heading.page_root(), {})]

        for element in soup.find_all([*self._heading_tags, "a"]):
            if element.name == "a":
                link = resolve_href(link_base, element.get("href"))
                if link is not None:
                    buckets[-1][1].setdefault(link, None)
                continue

            heading = self._heading_from(element)
            if heading is not None:
                buckets.append((heading, {}))

        sections = tuple(
            Section(heading=heading, links=tuple(links))
            for heading, links in buckets
            if not heading.is_page_root or links
        )
        return PageSections(url=base_url, sections=sections, title=self._extract_title(soup))

    @staticmethod
    def _heading_from(element: Tag) -> Heading | None:
        text = " ".join(element.get_text(" ", strip=True).split())
        if not text:
            return None
        return Heading(level=int(element.name[1:]), text=text)

    def _link_base(self, soup: BeautifulSoup, base_url: str) -> str:
        if not self.config.honor_base_href:
            return base_url
        base_tag = soup.find("base", href=True)
        if base_tag is None:
            return base_url
        resolved = resolve_href(base_url, base_tag.get("href"))
        return resolved or base_url

    @staticmethod
    def _extract_title(soup: BeautifulSoup) -> str | None:
        if soup.title is None:
            return None
        title = " ".join(soup.title.get_text(" ", strip=True).split())
        return title or None


__all__ = [
    "HTMLParser",
    "HTMLParserConfig",
]
