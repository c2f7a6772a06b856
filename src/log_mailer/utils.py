"""
Utility functions for the log mailer.

Includes time helpers, host lookup, address parsing and masking.
"""

from __future__ import annotations

import socket
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Get current local datetime (timezone aware)."""
    return datetime.now().astimezone()


def hostname() -> str:
    try:
        return socket.gethostname() or "unknown"
    except OSError:
        return "unknown"


def split_addresses(value: Union[str, Iterable[str], None]) -> List[str]:
    """Normalize a comma-separated string or iterable of addresses to a clean list."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return [str(a).strip() for a in items if a and str(a).strip()]


def obfuscate_email(email: Optional[str]) -> Optional[str]:
    """Mask the local part of an address, e.g. ``jo***n@example.com``."""
    if email is None:
        return None
    if not email:
        return ""
    at = email.find("@")
    if at <= 0:
        return "***"
    local, domain = email[:at], email[at:]
    if len(local) <= 3:
        return f"***{domain}"
    return f"{local[:2]}***{local[-1]}{domain}"


def format_for_filename(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d_%H-%M-%S")


def format_for_subject(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S")
