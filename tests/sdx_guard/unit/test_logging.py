from __future__ import annotations

import logging
import sys
from collections.abc import Callable

import pytest
import structlog

from sdx_guard.logging import (
    configure_structlog,
    get_log_level_value,
    log_info,
    log_warning,
    render_error_field,
)
from tests.sdx_guard.support.fakes import FakeLogger


def _configured_renderer() -> object:
    root_handler = logging.getLogger().handlers[0]
    formatter = root_handler.formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    return formatter.processors[-1]


def test_get_log_level_value_maps_known_levels() -> None:
    assert get_log_level_value("debug") == logging.DEBUG
    assert get_log_level_value("INFO") == logging.INFO
    assert get_log_level_value(" warning ") == logging.WARNING
    assert get_log_level_value("ERROR") == logging.ERROR
    assert get_log_level_value("critical") == logging.CRITICAL


def test_get_log_level_value_rejects_unknown_level() -> None:
    with pytest.raises(ValueError):
        get_log_level_value("TRACE")


def test_configure_structlog_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)

    first_logger = configure_structlog(log_level="INFO")
    second_logger = configure_structlog(log_level="DEBUG")

    assert len(logging.getLogger().handlers) == 1
    assert logging.getLogger().level == logging.DEBUG
    assert first_logger is not None
    assert second_logger is not None


def test_configure_structlog_uses_console_renderer_for_tty(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: True, raising=False)

    configure_structlog(log_level="INFO")

    assert isinstance(_configured_renderer(), structlog.dev.ConsoleRenderer)


def test_configure_structlog_uses_json_renderer_for_non_tty(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)

    configure_structlog(log_level="INFO")

    assert isinstance(_configured_renderer(), structlog.processors.JSONRenderer)


def test_render_error_field_serializes_exceptions() -> None:
    event_dict = {"event": "x", "error": KeyError("missing")}

    rendered = render_error_field(None, "warning", event_dict)

    assert rendered["error"] == {"type": "KeyError", "message": "'missing'"}


def test_render_error_field_leaves_other_values() -> None:
    event_dict = {"event": "x", "error": "plain text"}

    assert render_error_field(None, "warning", event_dict)["error"] == "plain text"


class _CaptureHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.mark.parametrize(
    ("log_fn", "level"),
    [
        (log_info, "info"),
        (log_warning, "warning"),
    ],
)
def test_structured_log_helpers_forward_keyword_fields(
    log_fn: Callable[..., None],
    level: str,
    fake_logger: FakeLogger,
) -> None:
    logger = fake_logger

    log_fn(logger, "circuit_breaker.event", tags=["circuit-breaker", "svc"], trace_id="t")

    assert logger.calls == [
        (
            level,
            "circuit_breaker.event",
            {"tags": ["circuit-breaker", "svc"], "trace_id": "t"},
        )
    ]


def test_stdlib_logger_receives_fields_as_extra() -> None:
    logger = logging.getLogger("tests.sdx_guard.stdlib")
    logger.propagate = False
    logger.setLevel(logging.INFO)
    handler = _CaptureHandler()
    logger.addHandler(handler)
    try:
        log_warning(logger, "circuit_breaker.fallback", trace_id="abc", tags=["t"])
    finally:
        logger.removeHandler(handler)

    assert len(handler.records) == 1
    record = handler.records[0]
    assert record.getMessage() == "circuit_breaker.fallback"
    assert record.__dict__["trace_id"] == "abc"
    assert record.__dict__["tags"] == ["t"]
