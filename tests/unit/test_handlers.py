"""
Unit tests for the loguru sink and the stdlib logging handler.
"""

import logging

import pytest
from loguru import logger

from log_mailer.handlers import EmailLogHandler, LoguruSink
from log_mailer.models import Severity


class CollectingPipeline:
    def __init__(self):
        self.records = []

    def append(self, record):
        self.records.append(record)


@pytest.fixture
def pipeline():
    return CollectingPipeline()


@pytest.fixture
def loguru_sink(pipeline):
    handler_id = logger.add(LoguruSink(pipeline), level="TRACE")
    yield
    logger.remove(handler_id)


def test_loguru_sink_captures_records(pipeline, loguru_sink):
    """Test loguru records become LogRecords with level, extras and exceptions."""
    logger.bind(request_id="r-1").warning("slow request")
    try:
        1 / 0
    except ZeroDivisionError:
        logger.exception("division failed")

    warn, err = pipeline.records
    assert warn.level == Severity.WARN
    assert warn.message == "slow request"
    assert warn.extra == {"request_id": "r-1"}
    assert warn.logger_name == __name__

    assert err.level == Severity.ERROR
    assert err.error == "ZeroDivisionError: division by zero"
    assert "Traceback" in err.stack_trace


def test_loguru_sink_ignores_own_records(pipeline, loguru_sink):
    """Test records emitted by log_mailer itself are never captured."""
    logger.patch(lambda r: r.update(name="log_mailer.coordinator.dispatcher")).error("internal")
    logger.patch(lambda r: r.update(name="log_mailer_app")).error("user app")
    assert [r.message for r in pipeline.records] == ["user app"]


def test_stdlib_handler(pipeline):
    """Test stdlib records are converted, own loggers skipped."""
    handler = EmailLogHandler(pipeline, level=logging.INFO)
    app_log = logging.getLogger("tests.app")
    own_log = logging.getLogger("log_mailer.pipeline")
    app_log.setLevel(logging.DEBUG)
    app_log.addHandler(handler)
    own_log.addHandler(handler)
    try:
        app_log.debug("filtered by handler level")
        app_log.info("user %s logged in", "ana")
        own_log.error("self")
        try:
            raise KeyError("k")
        except KeyError:
            app_log.critical("lookup failed", exc_info=True)
    finally:
        app_log.removeHandler(handler)
        own_log.removeHandler(handler)

    info, crit = pipeline.records
    assert info.level == Severity.INFO
    assert info.message == "user ana logged in"
    assert info.logger_name == "tests.app"
    assert crit.level == Severity.FATAL
    assert crit.error == "KeyError: 'k'"
    assert crit.timestamp.tzinfo is not None


def test_stdlib_handler_never_raises(pipeline):
    """Test a failing pipeline goes through handleError instead of raising."""

    class Broken:
        def append(self, record):
            raise RuntimeError("pipeline closed")

    handler = EmailLogHandler(Broken())
    handler.handleError = lambda record: setattr(handler, "failed", True)
    handler.emit(logging.makeLogRecord({"name": "x", "msg": "m", "levelno": 40}))
    assert handler.failed
