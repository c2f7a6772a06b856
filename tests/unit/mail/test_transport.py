"""
Unit tests for SMTP and dry-run transports.
"""

from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from log_mailer.coordinator import RenderedMessage
from log_mailer.errors import (
    DeliveryError,
    PermanentDeliveryError,
    TransientDeliveryError,
)
from log_mailer.mail import DryRunTransport, SmtpConfig, SmtpTransport, build_email


@pytest.fixture
def cfg():
    return SmtpConfig(
        host="smtp.example.com",
        port=587,
        from_email="alerts@example.com",
        to_emails=["ops@example.com", "dev@example.com"],
        username="alerts@example.com",
        password="secret",
        start_tls=True,
        from_name="Alerts",
        cc_emails=["lead@example.com"],
        bcc_emails=["audit@example.com"],
        reply_to="noreply@example.com",
    )


@pytest.fixture
def message():
    return RenderedMessage(
        subject="[LOG] - host - 2024-01-01 00:00:00",
        text_body="plain body",
        html_body="<p>html body</p>",
        attachment_name="log_attachment.log",
        attachment=b"line 1\nline 2\n",
    )


def test_build_email_headers_and_parts(cfg, message):
    """Test the MIME message carries headers, alternatives and the attachment."""
    email = build_email(message, cfg)

    assert email["Subject"] == message.subject
    assert email["From"] == "Alerts <alerts@example.com>"
    assert email["To"] == "ops@example.com, dev@example.com"
    assert email["Cc"] == "lead@example.com"
    assert email["Reply-To"] == "noreply@example.com"
    assert email["Bcc"] is None
    assert email["Message-ID"]

    attachments = list(email.iter_attachments())
    assert len(attachments) == 1
    assert attachments[0].get_filename() == "log_attachment.log"
    assert attachments[0].get_content() == "line 1\nline 2\n"
    html = email.get_body(preferencelist=("html",))
    assert "html body" in html.get_content()


def test_build_email_text_only(cfg):
    """Test a plain message has no alternative or attachment."""
    email = build_email(RenderedMessage(subject="s", text_body="only text"), cfg)
    assert not email.is_multipart()
    assert email.get_content().strip() == "only text"


@pytest.mark.asyncio
async def test_smtp_send_uses_envelope_recipients(cfg, message):
    """Test aiosmtplib is called with to + cc + bcc and the TLS settings."""
    with patch("log_mailer.mail.transport.aiosmtplib.send", new_callable=AsyncMock) as send:
        await SmtpTransport(cfg).send(message)

    send.assert_awaited_once()
    kwargs = send.await_args.kwargs
    assert kwargs["recipients"] == [
        "ops@example.com",
        "dev@example.com",
        "lead@example.com",
        "audit@example.com",
    ]
    assert kwargs["hostname"] == "smtp.example.com"
    assert kwargs["port"] == 587
    assert kwargs["start_tls"] is True
    assert kwargs["use_tls"] is False
    assert kwargs["username"] == "alerts@example.com"


@pytest.mark.parametrize(
    "error,expected",
    [
        (aiosmtplib.SMTPAuthenticationError(535, "bad credentials"), PermanentDeliveryError),
        (aiosmtplib.SMTPResponseException(451, "try again later"), TransientDeliveryError),
        (aiosmtplib.SMTPResponseException(550, "mailbox unavailable"), PermanentDeliveryError),
        (aiosmtplib.SMTPConnectError("connection refused"), TransientDeliveryError),
        (aiosmtplib.SMTPServerDisconnected("gone"), TransientDeliveryError),
        (ConnectionResetError("reset"), TransientDeliveryError),
    ],
)
@pytest.mark.asyncio
async def test_smtp_errors_are_classified(cfg, message, error, expected):
    """Test aiosmtplib failures map to transient/permanent delivery errors."""
    with patch(
        "log_mailer.mail.transport.aiosmtplib.send", new_callable=AsyncMock, side_effect=error
    ):
        with pytest.raises(expected) as exc:
            await SmtpTransport(cfg).send(message)
    assert exc.value.__cause__ is error


def test_smtp_error_code_is_kept(cfg):
    """Test the SMTP reply code survives the mapping."""
    from log_mailer.errors import map_smtp_error

    err = map_smtp_error(aiosmtplib.SMTPResponseException(552, "too big"))
    assert isinstance(err, PermanentDeliveryError)
    assert err.smtp_code == 552


def test_smtp_transport_requires_recipients(cfg):
    """Test a config without recipients is rejected."""
    cfg.to_emails = []
    with pytest.raises(ValueError):
        SmtpTransport(cfg)


def test_describe_masks_username(cfg):
    """Test describe() does not leak the full account name."""
    text = SmtpTransport(cfg).describe()
    assert "smtp.example.com:587" in text
    assert "alerts@example.com" not in text


@pytest.mark.asyncio
async def test_dry_run_scripted_outcomes(message):
    """Test the dry-run transport records successes and raises scripted failures."""
    transport = DryRunTransport(outcomes=[None, DeliveryError("x")])
    await transport.send(message)
    with pytest.raises(DeliveryError):
        await transport.send(message)
    await transport.send(message)
    assert len(transport.sent) == 2
