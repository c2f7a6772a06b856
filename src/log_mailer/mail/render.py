"""
Message rendering for log parts.

Short parts are rendered inline (HTML + plain text); long parts become a summary body with the
records attached as a plain-text log file.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Any, Iterable, List, Mapping, Optional

from ..coordinator.types import Part, RenderedMessage
from ..models import LogRecord, Severity
from ..utils import format_for_filename, format_for_subject, hostname, local_now, utc_now

_LEVEL_ORDER = [
    Severity.FATAL,
    Severity.ERROR,
    Severity.WARN,
    Severity.INFO,
    Severity.DEBUG,
    Severity.TRACE,
]

_CSS = """
    body { font-family: Arial, sans-serif; color: #333; }
    .header { background-color: #f0f0f0; padding: 10px; border-radius: 5px; }
    .logs { margin: 20px 0; background-color: #fafafa; padding: 10px; border: 1px solid #ddd;
            font-family: monospace; font-size: 0.9em; }
    .log-line { margin: 2px 0; white-space: pre-wrap; }
    .line-fatal { color: #8b0000; font-weight: bold; }
    .line-error { color: #d9534f; }
    .line-warn { color: #f0ad4e; }
    .line-info { color: #5bc0de; }
    .line-debug { color: #999; }
    .line-trace { color: #ccc; }
    table.levels td { padding: 2px 12px 2px 0; }
"""


@dataclass
class RenderOptions:
    subject_prefix: str = "[LOG]"
    include_hostname: bool = True
    use_local_time_in_subject: bool = True
    send_as_html: bool = True
    attach_log_file: bool = True
    max_inline_lines: int = 1000
    include_stack_trace: bool = True
    include_metadata: bool = True
    group_by_level: bool = False
    attachment_file_pattern: str = "log_attachment"
    attachment_extension: str = "log"
    app_version: Optional[str] = None


class MessageRenderer:
    """Turns a :class:`Part` into a :class:`RenderedMessage`."""

    def __init__(self, options: Optional[RenderOptions] = None, *, host: Optional[str] = None):
        self.options = options or RenderOptions()
        self._host = host

    @property
    def host(self) -> str:
        if self._host is None:
            self._host = hostname()
        return self._host

    def render(self, part: Part, metadata: Mapping[str, Any]) -> RenderedMessage:
        opts = self.options
        records = part.records()
        counts = Counter(r.level for r in records)
        period = str(metadata.get("rotation_cycle", ""))
        now = local_now() if opts.use_local_time_in_subject else utc_now()

        subject = self.subject(period, now, part)
        if opts.attach_log_file and len(records) > opts.max_inline_lines:
            attachment_name = self.attachment_name(now, part)
            attachment = self.plain_lines(records).encode("utf-8")
            text = self.text_summary(records, counts, part, period, attachment_name, metadata)
            html = (
                self.html_summary(records, counts, part, period, attachment_name, metadata)
                if opts.send_as_html
                else None
            )
            return RenderedMessage(
                subject=subject,
                text_body=text,
                html_body=html,
                attachment_name=attachment_name,
                attachment=attachment,
            )

        text = self.text_body(records, part, period)
        html = None
        if opts.send_as_html:
            html = self.html_body(records, counts, part, period, metadata)
        return RenderedMessage(subject=subject, text_body=text, html_body=html)

    # --------------- pieces

    def subject(self, period: str, now: datetime, part: Part) -> str:
        host = f" - {self.host}" if self.options.include_hostname else ""
        cycle = f" [{period}]" if period else ""
        if self.options.use_local_time_in_subject:
            stamp = format_for_subject(now)
        else:
            stamp = now.isoformat()
        part_info = f" ({part.label})" if part.total > 1 else ""
        return f"{self.options.subject_prefix}{host}{cycle} - {stamp}{part_info}"

    def attachment_name(self, now: datetime, part: Part) -> str:
        pattern = self.options.attachment_file_pattern
        ext = self.options.attachment_extension
        stamp = format_for_filename(now)
        if part.total > 1:
            return f"{pattern}_{stamp}_part{part.index}.{ext}"
        return f"{pattern}_{stamp}.{ext}"

    def ordered(self, records: List[LogRecord]) -> List[LogRecord]:
        if not self.options.group_by_level:
            return records
        # stable: arrival order is kept within each level
        return sorted(records, key=lambda r: -int(r.level))

    def format_record(self, record: LogRecord) -> str:
        text = record.format_line(include_stack_trace=self.options.include_stack_trace)
        if self.options.include_metadata and record.extra:
            pairs = " ".join(f"{k}={v}" for k, v in record.extra.items())
            text += f" {{{pairs}}}"
        return text

    def plain_lines(self, records: Iterable[LogRecord]) -> str:
        return "".join(self.format_record(r) + "\n" for r in records)

    def text_body(self, records: List[LogRecord], part: Part, period: str) -> str:
        rule = "=" * 60
        out = [rule, "LOG REPORT"]
        if part.total > 1:
            out.append(f"Part {part.label}")
        if period:
            out.append(f"Period: {period}")
        out += [rule, ""]
        out += [self.format_record(r) for r in self.ordered(records)]
        out += ["", rule]
        return "\n".join(out) + "\n"

    def text_summary(
        self,
        records: List[LogRecord],
        counts: Counter,
        part: Part,
        period: str,
        attachment_name: str,
        metadata: Mapping[str, Any],
    ) -> str:
        rule = "=" * 60
        out = [rule, "LOG REPORT SUMMARY"]
        if part.total > 1:
            out.append(f"Part {part.label}")
        out += [rule, f"Total Records: {len(records)}", f"File: {attachment_name}"]
        if period:
            out.append(f"Period: {period}")
        out += self._context_lines(metadata)
        out += ["", "Log Level Distribution:", "-" * 30]
        out += [f"{lvl.name}: {counts[lvl]}" for lvl in _LEVEL_ORDER if counts.get(lvl)]
        out += ["", "Full log file is attached.", rule]
        return "\n".join(out) + "\n"

    def html_body(
        self,
        records: List[LogRecord],
        counts: Counter,
        part: Part,
        period: str,
        metadata: Mapping[str, Any],
    ) -> str:
        rows = "\n".join(self._html_row(r) for r in self.ordered(records))
        return self._html_page(
            "Log Report",
            self._html_header(part, period, metadata) + self._html_levels(counts),
            f'<div class="logs">\n{rows}\n</div>',
        )

    def html_summary(
        self,
        records: List[LogRecord],
        counts: Counter,
        part: Part,
        period: str,
        attachment_name: str,
        metadata: Mapping[str, Any],
    ) -> str:
        body = (
            f"<p><strong>Total records:</strong> {len(records)}</p>"
            f"<p>The full log is attached as <code>{escape(attachment_name)}</code>.</p>"
        )
        return self._html_page(
            "Log Report Summary",
            self._html_header(part, period, metadata) + self._html_levels(counts),
            body,
        )

    # --------------- internals

    def _context_lines(self, metadata: Mapping[str, Any]) -> List[str]:
        out = []
        if self.options.include_hostname:
            out.append(f"Host: {self.host}")
        version = metadata.get("app_version") or self.options.app_version
        if version:
            out.append(f"App Version: {version}")
        return out

    def _html_header(self, part: Part, period: str, metadata: Mapping[str, Any]) -> str:
        items = []
        if part.total > 1:
            items.append(f"<p><strong>Part {part.index} of {part.total}</strong></p>")
        if period:
            items.append(f"<p>Period: {escape(period)}</p>")
        items += [f"<p>{escape(line)}</p>" for line in self._context_lines(metadata)]
        return "\n".join(items)

    def _html_row(self, record: LogRecord) -> str:
        css = f"log-line line-{record.level.name.lower()}"
        return f'<div class="{css}">{escape(self.format_record(record))}</div>'

    def _html_levels(self, counts: Counter) -> str:
        rows = "".join(
            f'<tr><td class="line-{lvl.name.lower()}">{lvl.name}</td><td>{counts[lvl]}</td></tr>'
            for lvl in _LEVEL_ORDER
            if counts.get(lvl)
        )
        return f'<table class="levels">{rows}</table>' if rows else ""

    def _html_page(self, title: str, header: str, body: str) -> str:
        return (
            "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"UTF-8\">\n"
            f"<style>{_CSS}</style>\n</head>\n<body>\n"
            f'<div class="header">\n<h2>{escape(title)}</h2>\n{header}\n</div>\n'
            f"{body}\n</body>\n</html>\n"
        )
