"""Tests for logging_utils module."""

from __future__ import annotations

from loguru import logger

from tasksync.logging_utils import configure_logging, pretty, summarize_view
from tasksync.model import Task, View


class TestSummarizeView:
    def test_none(self):
        assert summarize_view(None) == {"view": None}

    def test_empty(self):
        result = summarize_view(View.empty())
        assert result == {
            "incomplete_n": 0,
            "completed_n": 0,
            "newest_incomplete": None,
            "newest_completed": None,
        }

    def test_counts_and_newest(self):
        view = View(
            incomplete=(Task(id="b", created_at=2.0), Task(id="a", created_at=1.0)),
            completed=(Task(id="c", completed=True, progress=100),),
        )
        result = summarize_view(view)
        assert result["incomplete_n"] == 2
        assert result["completed_n"] == 1
        assert result["newest_incomplete"] == "b"
        assert result["newest_completed"] == "c"


class TestPretty:
    def test_json(self):
        assert pretty({"a": 1}, indent=None) == '{"a": 1}'

    def test_non_serializable_uses_str(self):
        assert "Task(" in pretty({"task": Task(id="t1")})


def test_configure_logging_sets_level(capsys):
    configure_logging("warning")
    logger.info("hidden message")
    logger.warning("visible message")
    err = capsys.readouterr().err
    assert "visible message" in err
    assert "hidden message" not in err
