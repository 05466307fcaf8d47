"""Tests for treecrawl.crawl (CLI)."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

from treecrawl.crawl import build_config, main, parse_args, setup_logging


@pytest.fixture
def fake_fetcher(page_source):
    source = page_source(
        {
            "http://a.test": ["http://a.test/about", "http://b.test/x"],
            "http://a.test/about": [],
        }
    )

    class _Fetcher:
        def __init__(self, config):
            self.config = config

        def __enter__(self):
            return source

        def __exit__(self, exc_type, exc, tb):
            return None

    with patch("treecrawl.crawl.PageFetcher", _Fetcher), patch("treecrawl.crawl.setup_logging"):
        yield source


class TestBuildConfig:
    def test_positionals(self):
        config = build_config(parse_args(["http://a.test", "2", "a.test,b.test"]))
        assert config.root_url == "http://a.test"
        assert config.max_depth == 2
        assert config.allowed_domains == ("a.test", "b.test")
        assert config.concurrent is False

    def test_threads_imply_concurrent(self):
        config = build_config(parse_args(["http://a.test", "1", "a.test", "--threads", "3"]))
        assert config.concurrent is True
        assert config.max_workers == 3

    def test_flags(self):
        args = parse_args(
            [
                "http://a.test",
                "1",
                "a.test",
                "--concurrent",
                "--timeout",
                "7.5",
                "--request_timeout",
                "3",
                "--retries",
                "2",
                "--user_agent",
                "TestBot/2",
                "--no_respect_robots",
                "--no_error_details",
                "--report",
                "out.json",
            ]
        )
        config = build_config(args)
        assert config.concurrent is True
        assert config.child_timeout_seconds == 7.5
        assert config.request_timeout_seconds == 3.0
        assert config.retries == 2
        assert config.user_agent == "TestBot/2"
        assert config.respect_robots is False
        assert config.detailed_errors is False
        assert config.report_path == "out.json"

    def test_config_file_with_overrides(self, tmp_path):
        path = tmp_path / "crawl.yaml"
        path.write_text(
            "root_url: http://a.test\nmax_depth: 4\nallowed_domains: [a.test]\nconcurrent: true\n",
            encoding="utf-8",
        )
        config = build_config(parse_args(["--config", str(path)]))
        assert config.max_depth == 4
        assert config.concurrent is True

        overridden = build_config(parse_args(["http://c.test", "1", "c.test", "--config", str(path)]))
        assert overridden.root_url == "http://c.test"
        assert overridden.max_depth == 1
        assert overridden.allowed_domains == ("c.test",)
        assert overridden.concurrent is True

    def test_robots_flag_overrides_config_file(self, tmp_path):
        path = tmp_path / "crawl.json"
        path.write_text(
            json.dumps({"root_url": "http://a.test", "max_depth": 1, "respect_robots": False}),
            encoding="utf-8",
        )
        assert build_config(parse_args(["--config", str(path)])).respect_robots is False
        config = build_config(
            parse_args(["--config", str(path), "--respect_robots", "--retry_backoff_seconds", "1.5"])
        )
        assert config.respect_robots is True
        assert config.retry_backoff_seconds == 1.5

    def test_missing_root(self):
        with pytest.raises(ValueError):
            build_config(parse_args([]))


class TestMain:
    def test_success_writes_report(self, fake_fetcher, tmp_path, capsys):
        report = tmp_path / "report.md"
        code = main(["http://a.test", "1", "a.test", "--no_respect_robots", "--report", str(report)])

        assert code == 0
        assert "http://b.test/x" not in fake_fetcher.calls
        text = report.read_text(encoding="utf-8")
        assert "## Page: http://a.test/about" in text
        out = capsys.readouterr().out
        assert "=== Crawl Complete ===" in out
        assert "pages_total: 2" in out

    def test_json_report_and_summary(self, fake_fetcher, tmp_path, capsys):
        report = tmp_path / "report.json"
        code = main(
            [
                "http://a.test",
                "1",
                "a.test",
                "--no_respect_robots",
                "--concurrent",
                "--report",
                str(report),
                "--print_summary_json",
            ]
        )

        assert code == 0
        payload = json.loads(report.read_text(encoding="utf-8"))
        assert payload["summary"]["pages_total"] == 2
        assert '"mode": "concurrent"' in capsys.readouterr().out

    def test_invalid_config_exit_code(self, fake_fetcher):
        assert main(["not-a-url", "1", "a.test"]) == 2

    def test_negative_depth_exit_code(self, fake_fetcher):
        assert main(["http://a.test", "-1", "a.test"]) == 2

    def test_non_integer_depth_is_usage_error(self):
        with pytest.raises(SystemExit) as excinfo:
            parse_args(["http://a.test", "deep", "a.test"])
        assert excinfo.value.code == 2

    def test_keyboard_interrupt(self, tmp_path):
        with patch("treecrawl.crawl.setup_logging"), patch(
            "treecrawl.crawl.PageFetcher", side_effect=KeyboardInterrupt
        ):
            code = main(["http://a.test", "1", "a.test", "--report", str(tmp_path / "r.md")])
        assert code == 130


class TestSetupLogging:
    def test_file_handler(self, tmp_path):
        root = logging.getLogger()
        saved_handlers = list(root.handlers)
        saved_level = root.level
        log_file = tmp_path / "logs" / "crawl.log"
        try:
            setup_logging(verbose=True, log_file=log_file)
            logging.getLogger("treecrawl.test").debug("hello from test")
            for handler in root.handlers:
                handler.flush()
            assert root.level == logging.DEBUG
            assert "hello from test" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
