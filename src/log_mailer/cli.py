from __future__ import annotations

import asyncio
import json
import sys
import tempfile
from pathlib import Path
from typing import Optional

import typer
from loguru import logger

from .config import MailerSettings, load_settings
from .coordinator import EmailLogPipeline, FileLogStore, RotationClock
from .errors import ConfigurationError, LogMailerError
from .models import LogRecord, Severity
from .presets import PROFILES
from .utils import local_now

app = typer.Typer(help="log-mailer operational CLI (settings from LOG_MAILER_* / .env)")

# ---------------------------
# Common options
# ---------------------------


def profile_opt() -> Optional[str]:
    return typer.Option(
        None, "--profile", help=f"Apply a preset profile ({', '.join(sorted(PROFILES))})"
    )


def dry_run_opt() -> bool:
    return typer.Option(False, "--dry-run", help="Log messages instead of sending them")


def _settings(profile: Optional[str] = None, **overrides) -> MailerSettings:
    try:
        base = {}
        if profile:
            if profile not in PROFILES:
                raise ConfigurationError(f"Unknown profile: {profile}")
            base = PROFILES[profile]()
        return load_settings(**{**base, **overrides})
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(2)


def _delivery(dry_run: bool) -> dict:
    # only override when asked, so LOG_MAILER_DRY_RUN still applies
    return {"dry_run": True} if dry_run else {}


def _store(settings: MailerSettings) -> FileLogStore:
    return FileLogStore(settings.log_dir, settings.file_pattern, settings.file_extension)


# ---------------------------
# Inspection
# ---------------------------


@app.command("config")
def show_config(profile: Optional[str] = profile_opt()):
    """Print the effective settings (password removed)."""
    settings = _settings(profile)
    typer.echo(json.dumps(settings.describe(), indent=2, default=str))


@app.command("stats")
def stats(profile: Optional[str] = profile_opt()):
    """Live file size, retained snapshots and the next scheduled send."""
    settings = _settings(profile)
    store = _store(settings)
    now = local_now()
    next_send = RotationClock(settings.rotation_cycle).next_send_time(now)
    retained = store.list_detached()
    typer.echo(
        json.dumps(
            {
                "current_log_file": str(store.live_path),
                "live_bytes": store.size_bytes(),
                "rotation_cycle": settings.rotation_cycle.name,
                "next_send_time": next_send.isoformat() if next_send else None,
                "retained_snapshots": len(retained),
                "retained_snapshot_path": str(retained[-1]) if retained else None,
            },
            indent=2,
        )
    )


@app.command("retained")
def retained(profile: Optional[str] = profile_opt()):
    """List undelivered snapshots kept on disk."""
    store = _store(_settings(profile))
    for path in store.list_detached():
        typer.echo(json.dumps({"path": str(path), "bytes": path.stat().st_size}))


# ---------------------------
# Delivery
# ---------------------------


@app.command("resend")
def resend(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Retained snapshot"),
    profile: Optional[str] = profile_opt(),
    dry_run: bool = dry_run_opt(),
):
    """Redeliver a retained snapshot; it is deleted once every part is sent.

    The live log file belongs to the running application and is never touched here.
    """
    settings = _settings(profile, delete_log_on_restart=False, **_delivery(dry_run))

    async def _run():
        pipeline = EmailLogPipeline.from_settings(settings)
        await pipeline.start()
        try:
            return await pipeline.resend_retained(path)
        finally:
            await pipeline.stop(flush=False)

    try:
        outcome = asyncio.run(_run())
    except LogMailerError as e:
        logger.error(f"Resend failed, snapshot kept: {e}")
        sys.exit(1)
    if not outcome.delivered:
        logger.warning(f"Resend did not complete: {outcome.result.value}")
        sys.exit(1)
    logger.success(f"Resent {path} in {outcome.parts_total} part(s)")


@app.command("send-test")
def send_test(
    message: str = typer.Option("log-mailer test message", "--message", "-m"),
    level: str = typer.Option("ERROR", "--level", help="Severity of the test record"),
    profile: Optional[str] = profile_opt(),
    dry_run: bool = dry_run_opt(),
):
    """Append one record and send immediately.

    Uses a scratch log directory so the running application's live file is left alone.
    """
    try:
        severity = Severity.parse(level)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(2)

    async def _run(settings: MailerSettings):
        pipeline = EmailLogPipeline.from_settings(settings)
        async with pipeline:
            pipeline.append(LogRecord(level=severity, message=message, logger_name="log-mailer"))
            return await pipeline.send_now()

    try:
        with tempfile.TemporaryDirectory(prefix="log-mailer-test-") as scratch:
            settings = _settings(profile, log_dir=scratch, **_delivery(dry_run))
            outcome = asyncio.run(_run(settings))
    except LogMailerError as e:
        logger.error(f"Test send failed: {e}")
        sys.exit(1)
    typer.echo(json.dumps({"result": outcome.result.value, "parts": outcome.parts_total}))
    if outcome.delivered:
        logger.success("Test message sent")
    else:
        sys.exit(1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
