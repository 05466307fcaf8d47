"""Tests for treecrawl.visited."""

from __future__ import annotations

import threading

from treecrawl.visited import VisitedTracker


class TestCheckAndMark:
    def test_first_call_false_then_true(self):
        tracker = VisitedTracker()
        assert tracker.check_and_mark("http://a.test/page") is False
        assert tracker.check_and_mark("http://a.test/page") is True
        assert tracker.check_and_mark("http://a.test/page") is True

    def test_fragments_share_entry(self):
        tracker = VisitedTracker()
        assert tracker.check_and_mark("http://a.test/page") is False
        assert tracker.check_and_mark("http://a.test/page#x") is True

    def test_query_is_distinct(self):
        tracker = VisitedTracker()
        tracker.check_and_mark("http://a.test/page")
        assert tracker.check_and_mark("http://a.test/page?x=1") is False

    def test_is_visited_does_not_mark(self):
        tracker = VisitedTracker()
        assert tracker.is_visited("http://a.test/") is False
        assert tracker.visited_count() == 0
        assert tracker.check_and_mark("http://a.test/") is False
        assert tracker.is_visited("http://a.test/#top") is True

    def test_exactly_one_winner_across_threads(self):
        tracker = VisitedTracker()
        barrier = threading.Barrier(16)
        results: list[bool] = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            seen = tracker.check_and_mark("http://a.test/contended")
            with lock:
                results.append(seen)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(False) == 1
        assert results.count(True) == 15


class TestState:
    def test_visited_count_ignores_fragments(self):
        tracker = VisitedTracker()
        for url in ["http://a.test/x#frag", "http://a.test/x", "http://a.test/y"]:
            tracker.check_and_mark(url)
        assert tracker.visited_count() == 2

    def test_reset(self):
        tracker = VisitedTracker()
        tracker.check_and_mark("http://a.test/x")
        tracker.reset()
        assert tracker.visited_count() == 0
        assert tracker.check_and_mark("http://a.test/x") is False

    def test_trackers_are_independent(self):
        first = VisitedTracker()
        second = VisitedTracker()
        first.check_and_mark("http://a.test/")
        assert second.is_visited("http://a.test/") is False
