"""Diagnostic logging for certificate renewal runs.

Provides structured logging with a per-run correlation ID so every line
written for one batch can be traced together. All renewal decisions and
failures are logged with the certificate path they concern.
"""

from __future__ import annotations

import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from datetime import datetime

    from cert_renewer.config import LogConfig
    from cert_renewer.exceptions import RenewerError


# Context variable for batch correlation ID
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the current correlation ID for batch tracing."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID for the current batch."""
    if correlation_id is None:
        correlation_id = uuid.uuid4().hex[:12]
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear the correlation ID after the batch completes."""
    _correlation_id.set("")


_STDERR_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} [{level}] {message}"

_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} [{level}] "
    "[{extra[correlation_id]}] <{extra[event]}> {message} | {extra}"
)


def configure_logger(config: LogConfig) -> None:
    """Configure diagnostic sinks based on settings."""
    logger.remove()

    logger.add(
        sys.stderr,
        level=config.level.value,
        format=_STDERR_FORMAT,
        filter=lambda r: r["extra"].get("renewer", False),
    )

    if config.log_file is None:
        return

    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.add(
        str(log_path),
        level=config.level.value,
        format=_FILE_FORMAT,
        rotation="10 MB",
        retention="90 days",
        compression="gz",
        filter=lambda r: r["extra"].get("renewer", False),
    )


def _get_logger() -> Any:
    """Get logger bound with batch context."""
    return logger.bind(
        renewer=True,
        correlation_id=get_correlation_id() or "-",
        event="",
    )


def log_batch_started(*, ca_uri: str, window_days: int, entry_count: int, dry_run: bool) -> None:
    """Log the start of a batch run."""
    log = _get_logger().bind(
        event="batch_started",
        ca_uri=ca_uri,
        window_days=window_days,
        entry_count=entry_count,
        dry_run=dry_run,
    )
    log.info("Checking {} certificate(s) against a {} day window", entry_count, window_days)


def log_entry_line_skipped(*, source: str, line_number: int, reason: str) -> None:
    """Log a malformed or unusable entry-list line."""
    log = _get_logger().bind(
        event="entry_line_skipped",
        source=source,
        line_number=line_number,
        reason=reason,
    )
    log.warning("{}:{}: skipping entry: {}", source, line_number, reason)


def log_entry_evaluated(
    *,
    cert_path: str,
    subject_dn: str,
    not_after: datetime,
    renew_at: datetime,
    renew: bool,
) -> None:
    """Log the renewal decision for one certificate."""
    log = _get_logger().bind(
        event="entry_evaluated",
        cert_path=cert_path,
        subject_dn=subject_dn,
        not_after=not_after.isoformat(),
        renew_at=renew_at.isoformat(),
        renew=renew,
    )
    if renew:
        log.info("{} ({}): expires {}, renewal due", cert_path, subject_dn, not_after.isoformat())
    else:
        log.debug("{} ({}): expires {}, nothing to do", cert_path, subject_dn, not_after.isoformat())


def log_renewal_requested(*, cert_path: str, url: str) -> None:
    """Log a renewal request sent to the CA."""
    log = _get_logger().bind(event="renewal_requested", cert_path=cert_path, url=url)
    log.info("{}: requesting renewal from {}", cert_path, url)


def log_dry_run(*, cert_path: str) -> None:
    """Log a renewal that was skipped because of dry-run mode."""
    log = _get_logger().bind(event="dry_run", cert_path=cert_path)
    log.info("{}: dry run, not contacting CA", cert_path)


def log_certificate_replaced(*, cert_path: str, not_after: datetime, serial_number: int) -> None:
    """Log a successfully replaced certificate."""
    log = _get_logger().bind(
        event="cert_replaced",
        cert_path=cert_path,
        not_after=not_after.isoformat(),
        serial_number=serial_number,
    )
    log.info("{}: renewed, now valid until {}", cert_path, not_after.isoformat())


def log_entry_failed(*, cert_path: str, error: RenewerError) -> None:
    """Log a per-entry failure; the batch continues."""
    log = _get_logger().bind(
        event="entry_failed",
        cert_path=cert_path,
        **error.to_audit_dict(),
    )
    log.error("{}: {}", cert_path, error.message)


def log_batch_finished(*, replaced: int, skipped: int, failed: int) -> None:
    """Log the batch summary."""
    log = _get_logger().bind(
        event="batch_finished",
        replaced=replaced,
        skipped=skipped,
        failed=failed,
    )
    log.info("Done: {} renewed, {} not due, {} failed", replaced, skipped, failed)


def log_fatal(*, error: RenewerError) -> None:
    """Log an error that aborts the run."""
    log = _get_logger().bind(event="fatal", **error.to_audit_dict())
    log.error("{}", error.message)
