"""
Pydantic data models for the log mailer.

Records are persisted one per line as NDJSON, so a line boundary is always a record boundary.
"""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .utils import local_now


class Severity(IntEnum):
    """Closed set of record severities, ordered from least to most severe."""

    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    FATAL = 5

    @classmethod
    def parse(cls, value: "Severity | str | int") -> "Severity":
        """Accept a member, a name/alias or a stdlib/loguru level number."""
        if isinstance(value, Severity):
            return value
        if isinstance(value, int):
            return cls.from_levelno(value)
        name = str(value).strip().upper()
        name = _ALIASES.get(name, name)
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown severity: {value!r}") from None

    @classmethod
    def from_levelno(cls, levelno: int) -> "Severity":
        # stdlib: DEBUG=10 INFO=20 WARNING=30 ERROR=40 CRITICAL=50; loguru adds TRACE=5, SUCCESS=25
        if levelno >= 50:
            return cls.FATAL
        if levelno >= 40:
            return cls.ERROR
        if levelno >= 30:
            return cls.WARN
        if levelno >= 20:
            return cls.INFO
        if levelno >= 10:
            return cls.DEBUG
        return cls.TRACE


_ALIASES = {
    "WARNING": "WARN",
    "CRITICAL": "FATAL",
    "SUCCESS": "INFO",
    "ERR": "ERROR",
}


class LogRecord(BaseModel):
    """Immutable log record as captured from the logging front end."""

    model_config = ConfigDict(frozen=True)

    level: Severity
    message: str
    timestamp: datetime = Field(default_factory=local_now)
    logger_name: Optional[str] = None
    error: Optional[str] = None
    stack_trace: Optional[str] = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, v):
        return Severity.parse(v)

    @field_serializer("level")
    def _dump_level(self, v: Severity) -> str:
        return v.name

    def to_line(self) -> bytes:
        """Serialize as a single NDJSON line (newline included)."""
        return self.model_dump_json().encode("utf-8") + b"\n"

    @classmethod
    def from_line(cls, line: bytes | str) -> "LogRecord":
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        return cls.model_validate_json(line)

    def format_line(self, *, include_stack_trace: bool = True) -> str:
        """Human readable rendering used in message bodies and attachments."""
        ts = self.timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        name = f"[{self.logger_name}]" if self.logger_name else ""
        text = f"[{ts}][{self.level.name}]{name} {self.message}"
        if self.error:
            text += f" | {self.error}"
        if include_stack_trace and self.stack_trace:
            text += "\n" + self.stack_trace.rstrip("\n")
        return text
