"""
Ready-made setting overrides.

Provider presets fill in SMTP endpoints; profile presets tune triggers and formatting for common
uses. Combine them with your own values:

    settings = load_settings(
        **gmail("alerts@example.com", app_password),
        **critical_alerts(),
        from_email="alerts@example.com",
        to_emails="oncall@example.com",
    )
"""

from __future__ import annotations

from typing import Any, Dict

# --- SMTP providers ---


def gmail(username: str, app_password: str) -> Dict[str, Any]:
    return {
        "smtp_host": "smtp.gmail.com",
        "smtp_port": 587,
        "start_tls": True,
        "username": username,
        "password": app_password,
    }


def office365(username: str, password: str) -> Dict[str, Any]:
    return {
        "smtp_host": "smtp.office365.com",
        "smtp_port": 587,
        "start_tls": True,
        "username": username,
        "password": password,
    }


def sendgrid(api_key: str) -> Dict[str, Any]:
    return {
        "smtp_host": "smtp.sendgrid.net",
        "smtp_port": 587,
        "start_tls": True,
        "username": "apikey",
        "password": api_key,
    }


# --- Profiles ---


def production_errors() -> Dict[str, Any]:
    """Error-level records, sent when 5 errors pile up or hourly."""
    return {
        "min_level": "ERROR",
        "subject_prefix": "[PRODUCTION ERROR]",
        "rotation_cycle": "HOURLY",
        "send_immediately_on_error": True,
        "immediate_error_threshold": 5,
        "include_metadata": True,
        "include_stack_trace": True,
        "group_by_level": True,
    }


def critical_alerts() -> Dict[str, Any]:
    """Page on every error; higher send allowance."""
    return {
        "min_level": "ERROR",
        "subject_prefix": "[CRITICAL ALERT]",
        "rotation_cycle": "NEVER",
        "send_immediately_on_error": True,
        "immediate_error_threshold": 1,
        "max_emails_per_hour": 100,
        "part_delay_sec": 0.5,
    }


def daily_digest() -> Dict[str, Any]:
    """Everything from INFO up, once a day."""
    return {
        "min_level": "INFO",
        "subject_prefix": "[SERVER DIGEST]",
        "rotation_cycle": "DAILY",
        "send_immediately_on_error": False,
        "include_stack_trace": False,
        "group_by_level": True,
    }


def development() -> Dict[str, Any]:
    return {
        "min_level": "DEBUG",
        "subject_prefix": "[DEV ERROR]",
        "rotation_cycle": "THIRTY_MINUTES",
        "immediate_error_threshold": 3,
        "max_emails_per_hour": 10,
    }


PROVIDERS = {"gmail": gmail, "office365": office365, "sendgrid": sendgrid}
PROFILES = {
    "production": production_errors,
    "critical": critical_alerts,
    "digest": daily_digest,
    "development": development,
}
