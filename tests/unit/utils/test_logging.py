import logging

import pytest

from sqlbind.utils.logging import (
    CorrelationIDFilter,
    StructuredFormatter,
    configure_logging,
    get_correlation_id,
    get_logger,
    log_with_context,
    set_correlation_id,
)
from sqlbind.utils.serializers import from_json


@pytest.fixture(autouse=True)
def _clear_correlation_id() -> None:
    set_correlation_id(None)


def make_record(message: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("sqlbind.test", logging.INFO, __file__, 10, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_get_logger_uses_namespace() -> None:
    assert get_logger().name == "sqlbind"
    assert get_logger("driver").name == "sqlbind.driver"
    assert get_logger("sqlbind.core").name == "sqlbind.core"


def test_get_logger_adds_filter_once() -> None:
    logger = get_logger("filters")
    get_logger("filters")

    assert sum(isinstance(f, CorrelationIDFilter) for f in logger.filters) == 1


def test_structured_formatter_renders_json() -> None:
    set_correlation_id("abc-123")
    record = make_record(extra_fields={"parameter_count": 2})

    payload = from_json(StructuredFormatter().format(record))

    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "sqlbind.test"
    assert payload["correlation_id"] == "abc-123"
    assert payload["parameter_count"] == 2


def test_structured_formatter_without_correlation_id() -> None:
    payload = from_json(StructuredFormatter().format(make_record()))

    assert "correlation_id" not in payload
    assert get_correlation_id() is None


def test_correlation_filter_sets_attribute() -> None:
    set_correlation_id("req-1")
    record = make_record()

    assert CorrelationIDFilter().filter(record)
    assert record.correlation_id == "req-1"  # type: ignore[attr-defined]


def test_log_with_context(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("context")

    with caplog.at_level(logging.INFO, logger="sqlbind.context"):
        log_with_context(logger, logging.INFO, "inserted", rows=3)
        log_with_context(logger, logging.DEBUG, "skipped")

    assert [r.getMessage() for r in caplog.records] == ["inserted"]
    assert caplog.records[0].extra_fields == {"rows": 3}  # type: ignore[attr-defined]


def test_configure_logging_installs_handlers() -> None:
    root = logging.getLogger("sqlbind")
    previous = (root.level, list(root.handlers), root.propagate)
    captured: list[logging.LogRecord] = []

    class ListHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            captured.append(record)

    try:
        configure_logging("DEBUG", format_style="simple", extra_handlers=[ListHandler()])

        assert root.level == logging.DEBUG
        assert not root.propagate
        assert len(root.handlers) == 2
        assert isinstance(root.handlers[0].formatter, logging.Formatter)
        assert not isinstance(root.handlers[0].formatter, StructuredFormatter)

        get_logger("configured").debug("hello")
        assert [r.getMessage() for r in captured][-1] == "hello"
    finally:
        root.setLevel(previous[0])
        root.handlers[:] = previous[1]
        root.propagate = previous[2]
