"""
Log Mailer

Buffers application log records in a local file and mails them out in batches: on a rotation
schedule (hourly, daily, ...), when too many errors pile up, or on demand.

Usage:
    from loguru import logger
    from log_mailer import EmailLogPipeline, LoguruSink, load_settings

    pipeline = EmailLogPipeline.from_settings(load_settings())
    async with pipeline:
        logger.add(LoguruSink(pipeline), level="INFO")
        logger.error("payment service unreachable")
"""

from .errors import (
    LogMailerError,
    ConfigurationError,
    StorageError,
    DeliveryError,
    TransientDeliveryError,
    PermanentDeliveryError,
)
from .models import LogRecord, Severity
from .coordinator import (
    EmailLogPipeline,
    CycleOutcome,
    CycleResult,
    DispatchState,
    PipelineStatistics,
    RotationCycle,
)
from .mail import DryRunTransport, MessageRenderer, RenderOptions, SmtpConfig, SmtpTransport
from .config import MailerSettings, load_settings, get_settings
from .handlers import EmailLogHandler, LoguruSink

__version__ = "1.0.0"
__all__ = [
    "EmailLogPipeline",
    "CycleOutcome",
    "CycleResult",
    "DispatchState",
    "PipelineStatistics",
    "RotationCycle",
    "LogRecord",
    "Severity",
    "MailerSettings",
    "load_settings",
    "get_settings",
    "MessageRenderer",
    "RenderOptions",
    "SmtpConfig",
    "SmtpTransport",
    "DryRunTransport",
    "EmailLogHandler",
    "LoguruSink",
    "LogMailerError",
    "ConfigurationError",
    "StorageError",
    "DeliveryError",
    "TransientDeliveryError",
    "PermanentDeliveryError",
]
