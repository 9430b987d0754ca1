"""
Logging Setup Tests
"""

import logging

import structlog

from duoreel.config import get_settings
from duoreel.core.logging import NOISY_LOGGERS, add_service_context, setup_logging


def test_http_client_loggers_are_quieted():
    setup_logging("DEBUG")

    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_quiet_loggers_follow_stricter_levels():
    setup_logging("ERROR")
    assert logging.getLogger("httpx").level == logging.ERROR
    setup_logging()


def test_service_context_is_added():
    processor = add_service_context("production")

    event = processor(None, "info", {"event": "match_created"})

    assert event == {"event": "match_created", "service": "duoreel", "environment": "production"}


def test_service_context_keeps_explicit_values():
    processor = add_service_context("production")

    event = processor(None, "info", {"event": "x", "service": "import-worker"})

    assert event["service"] == "import-worker"


def test_production_pipeline_renders_json(monkeypatch):
    monkeypatch.setattr(get_settings(), "environment", "production")
    setup_logging()
    processors = structlog.get_config()["processors"]
    monkeypatch.undo()
    setup_logging()

    assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    assert any(getattr(p, "__qualname__", "").startswith("add_service_context") for p in processors)
