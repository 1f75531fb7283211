"""Tests for logging setup."""

import logging

import pytest

from opfp.telemetry import init_telemetry, verbosity_to_level


@pytest.mark.parametrize(
    "verbosity,level",
    [(0, logging.ERROR), (1, logging.WARNING), (2, logging.INFO), (3, logging.DEBUG), (5, logging.DEBUG)],
)
def test_verbosity_to_level(verbosity, level):
    assert verbosity_to_level(verbosity) == level


def test_init_sets_root_level_and_quiets_httpx():
    init_telemetry(verbosity=2)
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
    assert len(logging.getLogger().handlers) == 1


def test_init_json_logs_with_callsite():
    init_telemetry(verbosity=4, json_logs=True)
    assert logging.getLogger().level == logging.DEBUG
