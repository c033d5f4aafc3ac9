"""Renewal window policy.

Decides whether a certificate is close enough to expiry to be renewed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from cert_renewer.config import DEFAULT_WINDOW_DAYS


@dataclass(frozen=True)
class RenewalDecision:
    """Result of evaluating a certificate against the renewal window."""

    renew: bool
    renew_at: datetime
    not_after: datetime


def should_renew(
    not_after: datetime,
    now: datetime,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> bool:
    """Return True when fewer than window_days remain before not_after.

    The boundary is inclusive: a certificate expiring exactly window_days
    from now is renewed. Already-expired certificates are always renewed.
    Naive datetimes are treated as UTC.
    """
    return evaluate(not_after, now, window_days).renew


def evaluate(
    not_after: datetime,
    now: datetime,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> RenewalDecision:
    """Evaluate a certificate expiry against the renewal window.

    Args:
        not_after: Certificate expiry.
        now: Current time.
        window_days: Renewal window in days.

    Returns:
        RenewalDecision with the computed threshold.

    Raises:
        ValueError: If window_days is negative.
    """
    if window_days < 0:
        msg = f"Renewal window must not be negative: {window_days}"
        raise ValueError(msg)

    not_after = _as_utc(not_after)
    renew_at = _as_utc(now) + timedelta(days=window_days)

    return RenewalDecision(renew=renew_at >= not_after, renew_at=renew_at, not_after=not_after)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
