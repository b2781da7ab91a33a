"""Tests for logging and timing utilities."""

import json
import logging

from nuportal.utils.logging_config import JsonFormatter
from nuportal.utils.timing import timed_operation


class TestJsonFormatter:
    """Tests for JSON log rendering."""

    def test_extra_fields_included(self):
        record = logging.LogRecord(
            "nuportal.test", logging.INFO, __file__, 1, "API request completed", (), None
        )
        record.status_code = 200
        record.method = "GET"

        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "API request completed"
        assert data["level"] == "INFO"
        assert data["logger"] == "nuportal.test"
        assert data["status_code"] == 200
        assert data["method"] == "GET"
        assert "msg" not in data


class TestTimedOperation:
    """Tests for the timing context manager."""

    def test_duration_recorded(self):
        with timed_operation("noop") as timer:
            pass

        assert timer.end_time is not None
        assert timer.duration_ms >= 0

    def test_duration_recorded_on_error(self):
        try:
            with timed_operation("boom") as timer:
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert timer.end_time is not None
