"""Fixtures shared by the unit tests."""

import logging

import pytest

from oneshot.domain.correlation_id import clear_correlation_id


@pytest.fixture(autouse=True)
def oneshot_logs_reach_caplog():
    """Route ``oneshot.*`` records to the root logger for caplog and reset the request id."""
    logger = logging.getLogger("oneshot")
    previous = logger.propagate
    logger.propagate = True
    clear_correlation_id()
    yield
    clear_correlation_id()
    logger.propagate = previous
