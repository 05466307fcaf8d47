"""Tests for treecrawl.fetcher."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from treecrawl.config import CrawlConfig
from treecrawl.fetcher import PageFetcher
from treecrawl.types import ErrorCategory, FetchFailure, PageSections


def _response(
    status: int = 200,
    body: bytes = b"<h1>Hi</h1><a href='/next'>n</a>",
    content_type: str = "text/html; charset=utf-8",
    url: str = "http://a.test/",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body
    response.headers["Content-Type"] = content_type
    response.url = url
    return response


@pytest.fixture
def config():
    return CrawlConfig.create("http://a.test/", 1, "a.test", retry_backoff_seconds=0.0)


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def fetcher(config, session):
    fetcher = PageFetcher(config)
    with patch.object(PageFetcher, "_thread_local_session", return_value=session):
        yield fetcher


class TestFetchAndParse:
    def test_success(self, fetcher, session, config):
        session.get.return_value = _response()

        result = fetcher.fetch_and_parse("http://a.test/")

        assert isinstance(result, PageSections)
        assert result.all_links() == ["http://a.test/next"]
        _, kwargs = session.get.call_args
        assert kwargs["headers"] == {"User-Agent": config.user_agent}
        assert kwargs["timeout"] == config.request_timeout_seconds

    def test_links_resolved_against_final_url(self, fetcher, session):
        session.get.return_value = _response(
            body=b"<a href='page'>p</a>",
            url="http://a.test/moved/",
        )
        result = fetcher.fetch_and_parse("http://a.test/old")
        assert result.all_links() == ["http://a.test/moved/page"]

    def test_http_error(self, fetcher, session):
        session.get.return_value = _response(status=404)

        result = fetcher.fetch_and_parse("http://a.test/missing")

        assert isinstance(result, FetchFailure)
        assert result.category == ErrorCategory.HTTP_ERROR
        assert result.status_code == 404

    def test_timeout(self, fetcher, session):
        session.get.side_effect = requests.Timeout("read timed out")
        result = fetcher.fetch_and_parse("http://a.test/")
        assert result.category == ErrorCategory.TIMEOUT
        assert result.details.startswith("Timeout:")

    def test_connection_error(self, fetcher, session):
        session.get.side_effect = requests.ConnectionError("refused")
        result = fetcher.fetch_and_parse("http://a.test/")
        assert result.category == ErrorCategory.NETWORK_ERROR

    def test_non_html_is_parsing_error(self, fetcher, session):
        session.get.return_value = _response(body=b"%PDF-1.4", content_type="application/pdf")
        result = fetcher.fetch_and_parse("http://a.test/doc.pdf")
        assert result.category == ErrorCategory.PARSING_ERROR
        assert "application/pdf" in result.message

    def test_missing_content_type_is_parsed(self, fetcher, session):
        response = _response()
        del response.headers["Content-Type"]
        session.get.return_value = response
        assert isinstance(fetcher.fetch_and_parse("http://a.test/"), PageSections)

    def test_parser_exception_is_parsing_error(self, config, session):
        parser = MagicMock()
        parser.parse.side_effect = RuntimeError("bad markup")
        fetcher = PageFetcher(config, parser=parser)
        session.get.return_value = _response()

        with patch.object(PageFetcher, "_thread_local_session", return_value=session):
            result = fetcher.fetch_and_parse("http://a.test/")

        assert result.category == ErrorCategory.PARSING_ERROR
        assert result.details == "RuntimeError: bad markup"

    @pytest.mark.parametrize("url", ["ftp://a.test/file", "not a url", "mailto:x@a.test"])
    def test_invalid_url_not_requested(self, fetcher, session, url):
        result = fetcher.fetch_and_parse(url)
        assert result.category == ErrorCategory.INVALID_URL
        session.get.assert_not_called()

    def test_closed_fetcher(self, fetcher, session):
        fetcher.close()
        result = fetcher.fetch_and_parse("http://a.test/")
        assert result.category == ErrorCategory.NETWORK_ERROR
        session.get.assert_not_called()


class TestRetries:
    def test_server_error_retried(self, config, session):
        fetcher = PageFetcher(config.replace(retries=2, retry_backoff_seconds=0.0))
        session.get.side_effect = [_response(status=503), _response()]

        with patch.object(PageFetcher, "_thread_local_session", return_value=session):
            result = fetcher.fetch_and_parse("http://a.test/")

        assert isinstance(result, PageSections)
        assert session.get.call_count == 2

    def test_network_error_retried_until_exhausted(self, config, session):
        fetcher = PageFetcher(config.replace(retries=1, retry_backoff_seconds=0.0))
        session.get.side_effect = requests.ConnectionError("down")

        with patch.object(PageFetcher, "_thread_local_session", return_value=session):
            result = fetcher.fetch_and_parse("http://a.test/")

        assert result.category == ErrorCategory.NETWORK_ERROR
        assert session.get.call_count == 2

    def test_client_error_not_retried(self, config, session):
        fetcher = PageFetcher(config.replace(retries=3, retry_backoff_seconds=0.0))
        session.get.return_value = _response(status=404)

        with patch.object(PageFetcher, "_thread_local_session", return_value=session):
            result = fetcher.fetch_and_parse("http://a.test/")

        assert result.status_code == 404
        assert session.get.call_count == 1

    def test_backoff_is_linear(self, config, session):
        fetcher = PageFetcher(config.replace(retries=2, retry_backoff_seconds=0.25))
        session.get.return_value = _response(status=429)

        with patch.object(PageFetcher, "_thread_local_session", return_value=session), patch(
            "treecrawl.fetcher.time.sleep"
        ) as sleep:
            result = fetcher.fetch_and_parse("http://a.test/")

        assert result.category == ErrorCategory.HTTP_ERROR
        assert [call.args[0] for call in sleep.call_args_list] == [0.25, 0.5]


class TestSessions:
    def test_close_closes_sessions_from_every_thread(self, config):
        fetcher = PageFetcher(config)
        created: list[MagicMock] = []

        def _new_session():
            session = MagicMock(spec=requests.sessions.Session)
            created.append(session)
            return session

        with patch("treecrawl.fetcher.requests.Session", side_effect=_new_session):
            workers = [threading.Thread(target=fetcher._thread_local_session) for _ in range(3)]
            for worker in workers:
                worker.start()
            for worker in workers:
                worker.join()
            fetcher._thread_local_session()

        fetcher.close()

        assert len(created) == 4
        for session in created:
            session.close.assert_called_once_with()
