"""Tests for treecrawl.parsers.html_parser."""

from __future__ import annotations

from treecrawl.parsers import HTMLParser, HTMLParserConfig

BASE = "http://a.test/dir/page"

PAGE = """
<html>
  <head><title> Example  Page </title></head>
  <body>
    <nav><a href="/intro">Intro</a></nav>
    <h1>Main</h1>
    <p><a href="/a">A</a> and <a href="/a#x">A again</a> and <a href="/a">dup</a></p>
    <h2>  Sub
        heading </h2>
    <a href="https://other.test/b">B</a>
    <h3>   </h3>
    <a href="c">C</a>
    <a>no href</a>
    <a href="   ">blank</a>
  </body>
</html>
"""


class TestSections:
    def setup_method(self):
        self.result = HTMLParser().parse(PAGE, base_url=BASE)

    def test_section_order_and_levels(self):
        headings = [(s.heading.level, s.heading.text) for s in self.result.sections]
        assert headings == [(0, "Page Root"), (1, "Main"), (2, "Sub heading")]

    def test_links_before_first_heading(self):
        assert self.result.sections[0].links == ("http://a.test/intro",)

    def test_links_resolved_and_deduplicated(self):
        assert self.result.sections[1].links == ("http://a.test/a", "http://a.test/a#x")

    def test_empty_heading_skipped(self):
        assert self.result.sections[2].links == ("https://other.test/b", "http://a.test/dir/c")

    def test_title_and_url(self):
        assert self.result.title == "Example Page"
        assert self.result.url == BASE


class TestEdgeCases:
    def test_no_root_section_when_page_starts_with_heading(self):
        result = HTMLParser().parse("<h1>Top</h1><a href='/x'>x</a>", base_url="http://a.test/")
        assert [s.heading.text for s in result.sections] == ["Top"]

    def test_empty_document(self):
        result = HTMLParser().parse("", base_url="http://a.test/")
        assert result.sections == ()
        assert result.title is None

    def test_heading_without_links_kept(self):
        result = HTMLParser().parse("<h2>Alone</h2>", base_url="http://a.test/")
        (section,) = result.sections
        assert section.heading.level == 2
        assert section.links == ()

    def test_nested_markup_in_heading(self):
        result = HTMLParser().parse("<h1>Hello <em>big</em> world</h1>", base_url="http://a.test/")
        assert result.sections[0].heading.text == "Hello big world"

    def test_link_inside_heading_belongs_to_it(self):
        result = HTMLParser().parse("<h2><a href='/h'>H</a></h2>", base_url="http://a.test/")
        assert result.sections[0].links == ("http://a.test/h",)

    def test_base_href_honored(self):
        html = "<head><base href='http://cdn.test/root/'></head><a href='x'>x</a>"
        result = HTMLParser().parse(html, base_url="http://a.test/page")
        assert result.all_links() == ["http://cdn.test/root/x"]

    def test_base_href_ignored_when_disabled(self):
        html = "<head><base href='http://cdn.test/root/'></head><a href='x'>x</a>"
        parser = HTMLParser(HTMLParserConfig(honor_base_href=False))
        result = parser.parse(html, base_url="http://a.test/page")
        assert result.all_links() == ["http://a.test/x"]

    def test_bytes_input(self):
        result = HTMLParser().parse(b"<h4>Bytes</h4><a href='/b'>b</a>", base_url="http://a.test/")
        assert result.sections[0].links == ("http://a.test/b",)

    def test_max_heading_level_limits_sections(self):
        parser = HTMLParser(HTMLParserConfig(max_heading_level=2))
        result = parser.parse("<h1>One</h1><h3>Three</h3><a href='/x'>x</a>", base_url="http://a.test/")
        (section,) = result.sections
        assert section.heading.text == "One"
        assert section.links == ("http://a.test/x",)
