# tests/conftest.py
import logging
import os

import pytest

from objslots.core import log, metrics
from objslots.core.metrics import start_exporter, stop_exporter


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_logging_and_metrics():
    # reads LOG_LEVEL / LOG_JSON / .env
    log.setup()

    interval = float(os.getenv("METRICS_INTERVAL_TEST", "1.0"))
    json_mode = (os.getenv("LOG_JSON", "0") == "1")
    start_exporter(interval_sec=interval, json_mode=json_mode,
                   logger=logging.getLogger("objslots.metrics"))
    yield
    stop_exporter()


@pytest.fixture
def fresh_metrics():
    metrics.reset()
    yield
    metrics.reset()
