"""
Settings for the log mailer.

Read from ``LOG_MAILER_*`` environment variables and ``.env``; keyword arguments win.
Invalid or missing required settings raise ConfigurationError before any record is accepted.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any, List, Optional

from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

from .coordinator.clock import RotationCycle
from .errors import ConfigurationError
from .mail.render import RenderOptions
from .mail.transport import SmtpConfig
from .models import Severity
from .utils import obfuscate_email, split_addresses

AddressList = Annotated[List[str], NoDecode]


class MailerSettings(BaseSettings):
    # SMTP (required)
    smtp_host: str
    smtp_port: int
    from_email: str
    to_emails: AddressList

    # SMTP (optional)
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = False
    start_tls: Optional[bool] = None
    validate_certs: bool = True
    smtp_timeout_sec: float = 30.0

    # envelope / headers
    from_name: Optional[str] = None
    cc_emails: AddressList = []
    bcc_emails: AddressList = []
    reply_to: Optional[str] = None
    subject_prefix: str = "[LOG]"
    include_hostname: bool = True
    use_local_time_in_subject: bool = True
    app_version: Optional[str] = None

    # live file
    log_dir: str = "email_logs"
    file_pattern: str = "email_log"
    file_extension: str = "log"
    attachment_file_pattern: Optional[str] = None
    delete_log_on_restart: bool = False

    # formatting
    send_as_html: bool = True
    attach_log_file: bool = True
    max_inline_lines: int = 1000
    include_stack_trace: bool = True
    include_metadata: bool = True
    group_by_level: bool = False

    # schedule / triggers
    rotation_cycle: RotationCycle = RotationCycle.HOURLY
    send_immediately_on_error: bool = True
    immediate_error_threshold: int = 10
    error_level: Severity = Severity.ERROR
    min_level: Severity = Severity.TRACE

    # sizing / pacing
    max_email_size_bytes: int = 8 * 1024 * 1024
    max_lines_per_email: Optional[int] = 5000
    part_delay_sec: float = 2.0
    max_emails_per_hour: int = 20
    rate_limit_window_sec: float = 3600.0

    dry_run: bool = False

    class Config:
        env_prefix = "LOG_MAILER_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @field_validator("to_emails", "cc_emails", "bcc_emails", mode="before")
    @classmethod
    def _split(cls, v):
        return split_addresses(v)

    @field_validator("rotation_cycle", mode="before")
    @classmethod
    def _cycle(cls, v):
        try:
            return RotationCycle.parse(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from None

    @field_validator("error_level", "min_level", mode="before")
    @classmethod
    def _severity(cls, v):
        return Severity.parse(v)

    @field_validator(
        "smtp_port",
        "max_inline_lines",
        "immediate_error_threshold",
        "max_email_size_bytes",
        "max_emails_per_hour",
    )
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @model_validator(mode="after")
    def _check(self) -> "MailerSettings":
        if not self.to_emails:
            raise ValueError("to_emails must contain at least one address")
        if self.max_lines_per_email is not None and self.max_lines_per_email <= 0:
            raise ValueError("max_lines_per_email must be > 0")
        if self.rate_limit_window_sec <= 0:
            raise ValueError("rate_limit_window_sec must be > 0")
        if self.part_delay_sec < 0:
            raise ValueError("part_delay_sec must be >= 0")
        return self

    # --------------- derived configs

    def smtp_config(self) -> SmtpConfig:
        return SmtpConfig(
            host=self.smtp_host,
            port=self.smtp_port,
            from_email=self.from_email,
            to_emails=list(self.to_emails),
            username=self.username,
            password=self.password,
            use_tls=self.use_tls,
            start_tls=self.start_tls,
            validate_certs=self.validate_certs,
            from_name=self.from_name,
            cc_emails=list(self.cc_emails),
            bcc_emails=list(self.bcc_emails),
            reply_to=self.reply_to,
            timeout_sec=self.smtp_timeout_sec,
        )

    def render_options(self) -> RenderOptions:
        return RenderOptions(
            subject_prefix=self.subject_prefix,
            include_hostname=self.include_hostname,
            use_local_time_in_subject=self.use_local_time_in_subject,
            send_as_html=self.send_as_html,
            attach_log_file=self.attach_log_file,
            max_inline_lines=self.max_inline_lines,
            include_stack_trace=self.include_stack_trace,
            include_metadata=self.include_metadata,
            group_by_level=self.group_by_level,
            attachment_file_pattern=self.attachment_file_pattern or self.file_pattern,
            attachment_extension=self.file_extension,
            app_version=self.app_version,
        )

    def describe(self) -> dict[str, Any]:
        """Settings safe to print: password removed, username masked."""
        out = self.model_dump(mode="json", exclude={"password"})
        out["username"] = obfuscate_email(self.username)
        out["has_password"] = bool(self.password)
        out["rotation_cycle"] = self.rotation_cycle.name
        out["error_level"] = self.error_level.name
        out["min_level"] = self.min_level.name
        return out


def load_settings(**overrides: Any) -> MailerSettings:
    """Build settings from env/.env plus ``overrides``; fail fast on invalid input."""
    try:
        return MailerSettings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid log mailer settings: {problems}") from e


@lru_cache()
def get_settings() -> MailerSettings:
    return load_settings()
