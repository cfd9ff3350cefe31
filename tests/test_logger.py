"""Tests for logging setup and the JSON formatter."""

import json
import logging
import sys

import pytest

from ondevice_rag.logger import JSONFormatter, setup_logger


def make_record(msg="hello", **extra):
    record = logging.LogRecord(
        name="ondevice_rag.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestJSONFormatter:

    def test_includes_message_and_extra_fields(self):
        payload = json.loads(JSONFormatter().format(make_record(document_index=3, chunks=2)))

        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "ondevice_rag.test"
        assert payload["document_index"] == 3
        assert payload["chunks"] == 2

    def test_redacts_secrets(self):
        payload = json.loads(JSONFormatter().format(
            make_record(api_key="sk-123", headers={"Authorization": "Bearer x"})
        ))

        assert payload["api_key"] == "***REDACTED***"
        assert payload["headers"]["Authorization"] == "***REDACTED***"

    def test_truncates_long_strings(self):
        payload = json.loads(JSONFormatter().format(make_record(prompt="x" * 5000)))

        assert payload["prompt"].endswith("...(truncated)")
        assert len(payload["prompt"]) < 5000

    def test_exception_block(self):
        try:
            raise ValueError("bad vector")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        payload = json.loads(JSONFormatter().format(record))

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["message"] == "bad vector"


@pytest.mark.unit
class TestSetupLogger:

    def test_env_selects_level_and_json(self, monkeypatch):
        monkeypatch.setenv("RAG_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("RAG_LOG_JSON", "1")

        log = setup_logger("ondevice_rag.test_env")

        assert log.level == logging.DEBUG
        assert isinstance(log.handlers[0].formatter, JSONFormatter)

    def test_repeated_setup_keeps_one_handler(self):
        log = setup_logger("ondevice_rag.test_repeat", level="INFO", use_json=False)
        setup_logger("ondevice_rag.test_repeat", level="WARNING", use_json=True)

        assert len(log.handlers) == 1
        assert log.level == logging.WARNING
        assert isinstance(log.handlers[0].formatter, JSONFormatter)
