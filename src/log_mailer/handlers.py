"""
Logging front ends feeding an EmailLogPipeline.

Both adapters drop records emitted by ``log_mailer`` itself, so the pipeline's own diagnostics
never feed back into the buffer they describe.
"""

from __future__ import annotations

import logging
import traceback
from datetime import datetime
from typing import Any, Optional, Tuple

from .coordinator.pipeline import EmailLogPipeline
from .models import LogRecord, Severity

_SELF = "log_mailer"


def _is_own(name: Optional[str], ignore: Tuple[str, ...]) -> bool:
    return bool(name) and any(name == p or name.startswith(p + ".") for p in ignore)


def _stringify(extra: dict[str, Any]) -> dict[str, str]:
    return {str(k): str(v) for k, v in extra.items()}


class LoguruSink:
    """Callable sink for ``logger.add(LoguruSink(pipeline), level=...)``."""

    def __init__(self, pipeline: EmailLogPipeline, *, ignore: Tuple[str, ...] = (_SELF,)):
        self.pipeline = pipeline
        self.ignore = ignore

    def __call__(self, message) -> None:
        rec = message.record
        name = rec["name"]
        if _is_own(name, self.ignore):
            return
        error = stack = None
        exc = rec["exception"]
        if exc is not None and exc.type is not None:
            error = f"{exc.type.__name__}: {exc.value}"
            stack = "".join(traceback.format_exception(exc.type, exc.value, exc.traceback))
        self.pipeline.append(
            LogRecord(
                level=Severity.from_levelno(rec["level"].no),
                message=rec["message"],
                timestamp=rec["time"],
                logger_name=name,
                error=error,
                stack_trace=stack,
                extra=_stringify(rec["extra"]),
            )
        )


class EmailLogHandler(logging.Handler):
    """Standard library handler: ``logging.getLogger().addHandler(EmailLogHandler(p))``."""

    def __init__(
        self,
        pipeline: EmailLogPipeline,
        level: int = logging.NOTSET,
        *,
        ignore: Tuple[str, ...] = (_SELF,),
    ):
        super().__init__(level)
        self.pipeline = pipeline
        self.ignore = ignore

    def emit(self, record: logging.LogRecord) -> None:
        if _is_own(record.name, self.ignore):
            return
        try:
            error = stack = None
            if record.exc_info and record.exc_info[0] is not None:
                etype, value, tb = record.exc_info
                error = f"{etype.__name__}: {value}"
                stack = "".join(traceback.format_exception(etype, value, tb))
            elif record.stack_info:
                stack = record.stack_info
            self.pipeline.append(
                LogRecord(
                    level=Severity.from_levelno(record.levelno),
                    message=record.getMessage(),
                    timestamp=_record_time(record),
                    logger_name=record.name,
                    error=error,
                    stack_trace=stack,
                )
            )
        except Exception:
            self.handleError(record)


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created).astimezone()
