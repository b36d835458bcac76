import json
import logging
import sys

import structlog

from vestry.config import LoggingConfig
from vestry.utils.logs import HANDLER_NAME, build_formatter, configure_logging


def test_json_output_includes_extra_fields():
    record = logging.LogRecord("vestry.scheduling", logging.INFO, __file__, 1, "tick %s", ("done",), None)
    record.job = "weekly_schedule"
    entry = json.loads(build_formatter("json").format(record))
    assert entry["level"] == "info"
    assert entry["logger"] == "vestry.scheduling"
    assert entry["event"] == "tick done"
    assert entry["job"] == "weekly_schedule"
    assert "timestamp" in entry


def test_json_output_renders_exceptions():
    try:
        raise ValueError("boom")
    except ValueError:
        exc_info = sys.exc_info()
    record = logging.LogRecord("vestry", logging.ERROR, __file__, 1, "failed", None, exc_info)
    entry = json.loads(build_formatter("json").format(record))
    assert entry["level"] == "error"
    assert "ValueError: boom" in entry["exception"]


def test_text_output_is_not_json():
    record = logging.LogRecord("vestry", logging.WARNING, __file__, 1, "slow tick", None, None)
    line = build_formatter("text").format(record)
    assert "slow tick" in line
    assert not line.startswith("{")


def test_configure_logging_replaces_own_handler():
    root = logging.getLogger()
    level = root.level
    try:
        configure_logging(LoggingConfig(level="debug", format="text"))
        configure_logging(LoggingConfig(level="warning"))
        ours = [h for h in root.handlers if h.get_name() == HANDLER_NAME]
        assert len(ours) == 1
        assert isinstance(ours[0].formatter, structlog.stdlib.ProcessorFormatter)
        assert root.level == logging.WARNING
    finally:
        for handler in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
            root.removeHandler(handler)
        root.setLevel(level)
        structlog.reset_defaults()
