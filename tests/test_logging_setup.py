# tests/test_logging_setup.py

from __future__ import annotations

import logging

import pytest

from pomo.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    ("name", "level", "shown"),
    [
        ("pomo.session.runtime", logging.DEBUG, True),
        ("py.warnings", logging.WARNING, True),
        ("py.warnings", logging.INFO, False),
        ("asyncio", logging.WARNING, False),
        ("asyncio", logging.ERROR, True),
    ],
)
def test_console_filter_thresholds(name: str, level: int, shown: bool) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown
