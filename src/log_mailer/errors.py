"""
Custom exceptions for the log mailer.

Provides structured error handling for configuration, storage and delivery failures.
"""

from __future__ import annotations


class LogMailerError(Exception):
    """Base error for the log mailer."""

    pass


class ConfigurationError(LogMailerError):
    """Missing or invalid settings; raised before any record is accepted."""

    pass


class StorageError(LogMailerError):
    """The live log file could not be written, detached or read.

    ``path`` is set when the data was already detached and now sits in that file.
    """

    def __init__(self, message: str, *, path=None):
        super().__init__(message)
        self.path = path


class DeliveryError(LogMailerError):
    """A message could not be handed to the mail server."""

    def __init__(self, message: str, *, smtp_code: int | None = None):
        super().__init__(message)
        self.smtp_code = smtp_code


class TransientDeliveryError(DeliveryError):
    """Network, timeout or 4xx SMTP errors; a later cycle may succeed."""

    pass


class PermanentDeliveryError(DeliveryError):
    """Authentication failures and 5xx SMTP errors."""

    pass


def map_smtp_error(e: Exception) -> DeliveryError:
    import asyncio

    import aiosmtplib

    if isinstance(e, DeliveryError):
        return e
    code = getattr(e, "code", None) if isinstance(e, aiosmtplib.SMTPException) else None
    if isinstance(e, aiosmtplib.SMTPAuthenticationError):
        return PermanentDeliveryError(f"authentication failed: {e}", smtp_code=code)
    if isinstance(e, (aiosmtplib.SMTPConnectError, aiosmtplib.SMTPServerDisconnected)):
        return TransientDeliveryError(str(e), smtp_code=code)
    if isinstance(e, (asyncio.TimeoutError, TimeoutError, aiosmtplib.SMTPTimeoutError)):
        return TransientDeliveryError(f"timeout: {e}", smtp_code=code)
    if isinstance(e, OSError):
        return TransientDeliveryError(str(e), smtp_code=code)
    if isinstance(code, int):
        if 400 <= code < 500:
            return TransientDeliveryError(str(e), smtp_code=code)
        if code >= 500:
            return PermanentDeliveryError(str(e), smtp_code=code)
    return DeliveryError(str(e), smtp_code=code)
