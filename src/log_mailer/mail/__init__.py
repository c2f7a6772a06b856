"""Rendering and delivery collaborators for the dispatch pipeline."""

from .render import MessageRenderer, RenderOptions
from .transport import DryRunTransport, SmtpConfig, SmtpTransport, build_email

__all__ = [
    "MessageRenderer",
    "RenderOptions",
    "SmtpConfig",
    "SmtpTransport",
    "DryRunTransport",
    "build_email",
]
