"""Tests for logging setup."""

import json
import logging
import logging.handlers

import pytest

from libre_follow.utils.logger import JSONFormatter, get_formatter, parse_log_size, setup_logger


@pytest.fixture
def logger_name(request):
    name = f"libre_follow_test.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_console_handler_and_level(logger_name):
    logger = setup_logger(logger_name, {"level": "WARNING"})
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1


def test_explicit_level_wins_over_config(logger_name):
    logger = setup_logger(logger_name, {"level": "WARNING"}, log_level="debug")
    assert logger.level == logging.DEBUG


def test_setup_is_idempotent(logger_name):
    logger = setup_logger(logger_name)
    assert setup_logger(logger_name) is logger
    assert len(logger.handlers) == 1


def test_rotating_file_handler(logger_name, tmp_path):
    log_file = tmp_path / "logs" / "follow.log"
    logger = setup_logger(logger_name, {"file": str(log_file), "max_size": "1KB", "backup_count": 2})

    logger.info("reading 142 mg/dL")
    for handler in logger.handlers:
        handler.flush()

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].maxBytes == 1024
    assert "reading 142 mg/dL" in log_file.read_text(encoding="utf-8")


@pytest.mark.parametrize("text,expected", [
    ("10MB", 10 * 1024 * 1024),
    ("1kb", 1024),
    ("512", 512),
    (" 2 mb ", 2 * 1024 * 1024),
    ("1.5 GB", int(1.5 * 1024 ** 3)),
])
def test_parse_log_size(text, expected):
    assert parse_log_size(text) == expected


def test_parse_log_size_rejects_garbage():
    with pytest.raises(ValueError):
        parse_log_size("lots")


def test_json_formatter():
    record = logging.LogRecord("libre_follow.x", logging.INFO, __file__, 10, "value %s", ("142",), None)
    entry = json.loads(JSONFormatter().format(record))
    assert entry["message"] == "value 142"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "libre_follow.x"


def test_unknown_format_type_falls_back():
    assert isinstance(get_formatter("nope"), logging.Formatter)
    assert isinstance(get_formatter("json"), JSONFormatter)


def test_threaded_format_includes_thread_name():
    record = logging.LogRecord("libre_follow.x", logging.INFO, __file__, 10, "tick", (), None)
    record.threadName = "FollowTimer"
    assert get_formatter("threaded").format(record) == "INFO [FollowTimer] tick"
