"""Tests for fhirside.core.observability."""

import json
import logging

import pytest
import structlog

from fhirside.core.observability import configure_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_json_renderer(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("INFO", "json")

        structlog.get_logger("fhirside.test").info("export_started", job_id="abc")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "export_started"
        assert event["job_id"] == "abc"
        assert event["level"] == "info"

    def test_level_filter(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("WARNING", "console")

        structlog.get_logger("fhirside.test").info("hidden_event")

        assert "hidden_event" not in capsys.readouterr().out
        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self) -> None:
        configure_logging("LOUD")
        assert logging.getLogger().level == logging.INFO
