"""
Unit tests for MessageRenderer.
"""

from datetime import datetime, timezone

import pytest

from log_mailer.coordinator import Part
from log_mailer.mail import MessageRenderer, RenderOptions
from log_mailer.models import LogRecord, Severity

TS = datetime(2024, 3, 15, 10, 30, 0, 123000, tzinfo=timezone.utc)


def make_part(records, index=1, total=1):
    content = b"".join(r.to_line() for r in records)
    return Part(index=index, total=total, content=content, line_count=len(records))


def rec(level, message, **kw):
    return LogRecord(level=level, message=message, timestamp=TS, **kw)


@pytest.fixture
def records():
    return [
        rec(Severity.INFO, "service started", logger_name="app"),
        rec(Severity.ERROR, "db timeout", error="TimeoutError: 5s", stack_trace="Traceback..."),
        rec(Severity.WARN, "slow <query>", extra={"ms": 812}),
    ]


def test_inline_render(records):
    """Test small parts are rendered inline as text and HTML."""
    renderer = MessageRenderer(RenderOptions(), host="web-1")
    msg = renderer.render(make_part(records), {"rotation_cycle": "HOURLY"})

    assert msg.subject.startswith("[LOG] - web-1 [HOURLY] - ")
    assert "(1 of 1)" not in msg.subject
    assert msg.attachment is None
    assert "[2024-03-15 10:30:00.123][INFO][app] service started" in msg.text_body
    assert "db timeout | TimeoutError: 5s\nTraceback..." in msg.text_body
    assert "{ms=812}" in msg.text_body
    assert "Period: HOURLY" in msg.text_body
    # HTML escapes record text
    assert "slow &lt;query&gt;" in msg.html_body
    assert 'class="log-line line-error"' in msg.html_body


def test_multi_part_subject_and_header(records):
    """Test part numbering appears in subject and body."""
    renderer = MessageRenderer(RenderOptions(include_hostname=False), host="web-1")
    msg = renderer.render(make_part(records, index=2, total=3), {})
    assert msg.subject.endswith("(2 of 3)")
    assert "web-1" not in msg.subject
    assert "Part 2 of 3" in msg.text_body
    assert "Part 2 of 3" in msg.html_body


def test_large_part_becomes_attachment(records):
    """Test parts above max_inline_lines get a summary body and the log attached."""
    renderer = MessageRenderer(
        RenderOptions(max_inline_lines=2, app_version="2.1.0"), host="web-1"
    )
    msg = renderer.render(make_part(records, index=1, total=2), {"rotation_cycle": "DAILY"})

    assert msg.attachment_name.startswith("log_attachment_")
    assert msg.attachment_name.endswith("_part1.log")
    text = msg.attachment.decode()
    assert text.count("\n") >= 3
    assert "service started" in text and "slow <query>" in text
    assert "Total Records: 3" in msg.text_body
    assert "ERROR: 1" in msg.text_body
    assert "App Version: 2.1.0" in msg.text_body
    assert "Full log file is attached." in msg.text_body
    assert "service started" not in msg.text_body


def test_attachment_disabled_keeps_inline(records):
    """Test attach_log_file=False always renders inline."""
    renderer = MessageRenderer(RenderOptions(max_inline_lines=1, attach_log_file=False), host="h")
    msg = renderer.render(make_part(records), {})
    assert msg.attachment is None
    assert "service started" in msg.text_body


def test_plain_text_only(records):
    """Test send_as_html=False leaves out the HTML alternative."""
    renderer = MessageRenderer(RenderOptions(send_as_html=False), host="h")
    assert renderer.render(make_part(records), {}).html_body is None


def test_group_by_level_orders_most_severe_first(records):
    """Test grouping sorts by severity and keeps arrival order within a level."""
    renderer = MessageRenderer(RenderOptions(group_by_level=True), host="h")
    body = renderer.render(make_part(records), {}).text_body
    assert body.index("db timeout") < body.index("slow <query>") < body.index("service started")


def test_stack_trace_and_metadata_switches(records):
    """Test stack traces and extras can be left out."""
    renderer = MessageRenderer(
        RenderOptions(include_stack_trace=False, include_metadata=False), host="h"
    )
    body = renderer.render(make_part(records), {}).text_body
    assert "Traceback..." not in body
    assert "{ms=812}" not in body
