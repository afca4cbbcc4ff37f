"""Shared fixtures: every test starts with no client and a fresh span slot."""

import pytest

from statly_observe import api
from statly_observe.logger import set_default_logger
from statly_observe.telemetry import reset_provider


@pytest.fixture(autouse=True)
def _isolate_globals():
    reset_provider()
    yield
    api.close()
    reset_provider()
    set_default_logger(None)
