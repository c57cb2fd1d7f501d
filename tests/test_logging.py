"""Tests for logging setup and Decimal rendering."""

import json
import logging
from decimal import Decimal

import pytest
import structlog

from aggregator.logging import NOISY_LOGGERS, render_decimals, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    noisy_levels = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, noisy_level in noisy_levels.items():
        logging.getLogger(name).setLevel(noisy_level)


def test_render_decimals_stringifies_top_level_values() -> None:
    event = {"event": "changes_detected", "price": Decimal("0.000125"), "events": 3}

    rendered = render_decimals(logging.getLogger("test"), "info", event)

    assert rendered == {"event": "changes_detected", "price": "0.000125", "events": 3}


def test_json_output_is_parseable(capsys, restore_logging) -> None:
    setup_logging("INFO", "json")

    structlog.get_logger("aggregator.test").info(
        "aggregation_complete", tokens=2, threshold=Decimal("0.05")
    )
    payload = json.loads(capsys.readouterr().err.strip().splitlines()[-1])

    assert payload["event"] == "aggregation_complete"
    assert payload["threshold"] == "0.05"
    assert payload["level"] == "info"


def test_client_loggers_quieted(restore_logging) -> None:
    setup_logging("DEBUG", "console")

    assert logging.getLogger().level == logging.DEBUG
    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING
