"""
Delivery transports.

``SmtpTransport`` sends through aiosmtplib; ``DryRunTransport`` keeps messages in memory and
only logs them (test mode / ``--dry-run``).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import List, Optional, Sequence

import aiosmtplib
from loguru import logger

from ..coordinator.types import RenderedMessage
from ..errors import map_smtp_error
from ..utils import obfuscate_email


@dataclass
class SmtpConfig:
    host: str
    port: int
    from_email: str
    to_emails: List[str]
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = False  # implicit TLS (port 465)
    start_tls: Optional[bool] = None  # None: upgrade when the server offers it
    validate_certs: bool = True
    from_name: Optional[str] = None
    cc_emails: List[str] = field(default_factory=list)
    bcc_emails: List[str] = field(default_factory=list)
    reply_to: Optional[str] = None
    timeout_sec: float = 30.0

    @property
    def recipients(self) -> List[str]:
        return [*self.to_emails, *self.cc_emails, *self.bcc_emails]


def build_email(message: RenderedMessage, cfg: SmtpConfig) -> EmailMessage:
    """Build the MIME message: text body, optional HTML alternative and log attachment."""
    msg = EmailMessage()
    msg["From"] = formataddr((cfg.from_name, cfg.from_email)) if cfg.from_name else cfg.from_email
    msg["To"] = ", ".join(cfg.to_emails)
    if cfg.cc_emails:
        msg["Cc"] = ", ".join(cfg.cc_emails)
    if cfg.reply_to:
        msg["Reply-To"] = cfg.reply_to
    msg["Subject"] = message.subject
    msg["Message-ID"] = make_msgid(domain=cfg.from_email.rpartition("@")[2] or None)
    for header, value in message.headers.items():
        if header in msg:
            msg.replace_header(header, value)
        else:
            msg[header] = value

    msg.set_content(message.text_body)
    if message.html_body:
        msg.add_alternative(message.html_body, subtype="html")
    if message.attachment is not None:
        msg.add_attachment(
            message.attachment,
            maintype="text",
            subtype="plain",
            filename=message.attachment_name or "log.txt",
        )
    return msg


class SmtpTransport:
    """Send rendered messages over SMTP with aiosmtplib."""

    def __init__(self, config: SmtpConfig):
        if not config.to_emails:
            raise ValueError("at least one recipient required")
        self.config = config

    async def send(self, message: RenderedMessage) -> None:
        cfg = self.config
        email = build_email(message, cfg)
        try:
            await aiosmtplib.send(
                email,
                sender=cfg.from_email,
                recipients=cfg.recipients,
                hostname=cfg.host,
                port=cfg.port,
                username=cfg.username,
                password=cfg.password,
                use_tls=cfg.use_tls,
                start_tls=cfg.start_tls,
                validate_certs=cfg.validate_certs,
                timeout=cfg.timeout_sec,
            )
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
            raise map_smtp_error(e) from e
        logger.debug(
            f"SMTP {cfg.host}:{cfg.port} accepted '{message.subject}' "
            f"for {len(cfg.recipients)} recipient(s)"
        )

    def describe(self) -> str:
        user = obfuscate_email(self.config.username) or "none"
        return f"smtp://{self.config.host}:{self.config.port} (user: {user})"


class DryRunTransport:
    """Records messages instead of sending them."""

    def __init__(self, outcomes: Optional[Sequence[Optional[Exception]]] = None):
        self.sent: List[RenderedMessage] = []
        # scripted per-call outcomes: None succeeds, an exception is raised
        self._outcomes = list(outcomes or [])

    async def send(self, message: RenderedMessage) -> None:
        await asyncio.sleep(0)
        if self._outcomes:
            outcome = self._outcomes.pop(0)
            if outcome is not None:
                raise outcome
        self.sent.append(message)
        logger.info(f"Dry run: would send '{message.subject}'")

    def describe(self) -> str:
        return "dry-run"
