"""Tests for famgraph/tasks.py — fire-and-forget dispatchers."""
import logging
import threading

from famgraph.tasks import BackgroundDispatcher, InlineDispatcher


def _boom():
    raise OSError("disk full")


class TestInlineDispatcher:
    def test_runs_immediately(self):
        seen = []
        InlineDispatcher().submit("record", seen.append, 1)
        assert seen == [1]

    def test_failure_logged_not_raised(self, caplog):
        with caplog.at_level(logging.WARNING, logger="famgraph.tasks"):
            InlineDispatcher().submit("write save", _boom)
        assert "Could not write save: disk full" in caplog.text


class TestBackgroundDispatcher:
    def test_preserves_submission_order(self):
        seen = []
        d = BackgroundDispatcher()
        for i in range(20):
            d.submit("record", seen.append, i)
        d.shutdown()
        assert seen == list(range(20))

    def test_runs_off_caller_thread(self):
        names = []
        d = BackgroundDispatcher()
        d.submit("record", lambda: names.append(threading.current_thread().name))
        d.shutdown()
        assert names[0].startswith("famgraph-io")

    def test_failure_does_not_stop_queue(self):
        seen = []
        d = BackgroundDispatcher()
        d.submit("fail", _boom)
        d.submit("record", seen.append, "after")
        d.shutdown()
        assert seen == ["after"]
