from __future__ import annotations

import io
import logging

import pytest

from astrobridge.boot.logging import _coerce_level, configure_logging


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, logging.INFO),
        ("", logging.INFO),
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
        ("15", 15),
        (logging.ERROR, logging.ERROR),
        ("not-a-level", logging.INFO),
    ],
)
def test_coerce_level(value, expected) -> None:
    assert _coerce_level(value) == expected


def test_configure_logging_applies_level() -> None:
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    stream = io.StringIO()
    try:
        level = configure_logging(level="warning", stream=stream)
        logging.getLogger("astrobridge.test").warning("engine reloaded")
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

    assert level == logging.WARNING
    assert "engine reloaded" in stream.getvalue()
