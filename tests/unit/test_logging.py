"""Logging setup: service context and stdlib routing through structlog."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from greenquest.config import Settings
from greenquest.middleware.logging import HANDLER_NAME, add_service_context, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    noisy_level = logging.getLogger("sqlalchemy.engine").level
    yield
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(noisy_level)
    structlog.reset_defaults()


class TestServiceContext:

    def test_adds_deployment_fields(self):
        processor = add_service_context(Settings(app_version="1.2.3", environment="staging"))
        event = processor(None, "info", {"event": "started"})
        assert event == {
            "event": "started",
            "service": "greenquest",
            "version": "1.2.3",
            "environment": "staging",
        }

    def test_keeps_fields_already_bound(self):
        processor = add_service_context(Settings(environment="staging"))
        event = processor(None, "info", {"event": "x", "environment": "override"})
        assert event["environment"] == "override"


class TestSetupLogging:

    def test_single_handler_across_calls(self, restore_logging):
        settings = Settings(log_format="console")
        setup_logging(settings)
        setup_logging(settings)
        ours = [h for h in logging.getLogger().handlers if h.get_name() == HANDLER_NAME]
        assert len(ours) == 1

    def test_quiets_sql_echo(self, restore_logging):
        setup_logging(Settings(log_level="DEBUG", log_format="console"))
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_stdlib_record_rendered_as_json(self, restore_logging, capsys):
        setup_logging(Settings(log_format="json", environment="test"))
        logging.getLogger("greenquest.ranking.service").info("Rankings recomputed for %s", "overall")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Rankings recomputed for overall"
        assert record["level"] == "info"
        assert record["logger"] == "greenquest.ranking.service"
        assert record["environment"] == "test"
        assert record["service"] == "greenquest"
