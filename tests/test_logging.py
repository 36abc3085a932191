"""
Case History — Structured Logging Tests

Tests:
  - every entry is a JSON line with the base schema
  - structured fields from extra are merged
  - level filtering: DEBUG shows resolver decisions, INFO hides them
  - reconfiguring does not duplicate handlers
"""

import io
import json
import logging
import os
import sys
import unittest

_base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _base not in sys.path:
    sys.path.insert(0, _base)

from engine.config_loader import EngineConfig
from engine.history_level import HistoryLevel
from engine.history_policy import HistoryPolicyResolver
from engine.logging import JSONFormatter, configure_logging, get_logger
from registry.provider import InMemoryDefinitionProvider


def _parse_log_lines(buf):
    buf.seek(0)
    return [json.loads(line) for line in buf.readlines() if line.strip()]


class _LoggingCase(unittest.TestCase):

    def tearDown(self):
        configure_logging(level="WARNING", stream=io.StringIO())


class TestJSONFormatter(_LoggingCase):

    def test_schema(self):
        buf = io.StringIO()
        configure_logging(level="INFO", stream=buf)
        get_logger("test").info("hello %s", "world")

        entries = _parse_log_lines(buf)
        self.assertEqual(len(entries), 1)
        entry = entries[0]
        for key in ("timestamp", "level", "logger", "message", "service.name", "service.version"):
            self.assertIn(key, entry)
        self.assertEqual(entry["message"], "hello world")
        self.assertEqual(entry["logger"], "case_history.test")
        self.assertEqual(entry["service.name"], "case_history")

    def test_structured_fields_merged(self):
        buf = io.StringIO()
        configure_logging(level="INFO", stream=buf)
        get_logger("test").info("x", extra={"structured": {"case_definition_id": "c:1"}})
        self.assertEqual(_parse_log_lines(buf)[0]["case_definition_id"], "c:1")

    def test_exception_info(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.getLogger("case_history.test").makeRecord(
                "case_history.test", logging.ERROR, "", 0, "failed", (), sys.exc_info(),
            )
        entry = json.loads(formatter.format(record))
        self.assertEqual(entry["exception.type"], "ValueError")
        self.assertEqual(entry["exception.message"], "boom")


class TestLevelFiltering(_LoggingCase):

    def _resolve(self):
        resolver = HistoryPolicyResolver(
            EngineConfig(HistoryLevel.TASK, False), InMemoryDefinitionProvider(),
        )
        resolver.has_task_history_level("claim:1")

    def test_debug_shows_decisions(self):
        buf = io.StringIO()
        configure_logging(level="DEBUG", stream=buf)
        self._resolve()
        entries = _parse_log_lines(buf)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]["message"], "Current history level: task, level required: task")
        self.assertEqual(entries[0]["history_level"], "task")
        self.assertEqual(entries[0]["required_level"], "task")
        self.assertEqual(entries[0]["source"], "engine")

    def test_info_hides_decisions(self):
        buf = io.StringIO()
        configure_logging(level="INFO", stream=buf)
        self._resolve()
        self.assertEqual(_parse_log_lines(buf), [])


class TestConfigure(_LoggingCase):

    def test_no_duplicate_handlers(self):
        configure_logging(level="INFO", stream=io.StringIO())
        buf = io.StringIO()
        root = configure_logging(level="INFO", stream=buf)
        self.assertEqual(len(root.handlers), 1)
        get_logger("test").warning("once")
        self.assertEqual(len(_parse_log_lines(buf)), 1)

    def test_text_format(self):
        buf = io.StringIO()
        configure_logging(level="INFO", stream=buf, fmt="text")
        get_logger("test").info("plain line")
        self.assertIn("INFO case_history.test: plain line", buf.getvalue())

    def test_root_logger_name(self):
        self.assertEqual(get_logger().name, "case_history")


if __name__ == "__main__":
    unittest.main()
