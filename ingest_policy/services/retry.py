from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

from ingest_policy.core.coerce import ensure_utc, format_timestamp
from ingest_policy.core.errors import InvalidArgumentError

FailureStatus = Literal["failed", "dead"]

DEFAULT_RETRY_BASE_SECONDS = 60
DEFAULT_RETRY_MAX_SECONDS = 30 * 60
# Every accepted max_delay_seconds is reached before this exponent.
_MAX_BACKOFF_EXPONENT = 31


@dataclass(slots=True)
class FailureTransition:
    status: FailureStatus
    available_at: datetime | None
    retry_delay_seconds: int | None

    @property
    def is_dead(self) -> bool:
        return self.status == "dead"

    def as_payload(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "available_at": format_timestamp(self.available_at),
            "retry_delay_seconds": self.retry_delay_seconds,
        }


def compute_backoff_seconds(
    attempts: int,
    *,
    base_seconds: int = DEFAULT_RETRY_BASE_SECONDS,
    max_delay_seconds: int = DEFAULT_RETRY_MAX_SECONDS,
) -> int:
    """Capped exponential delay: ``base * 2 ** (attempts - 1)``, never below ``base``.

    Attempts 0 and 1 both wait ``base_seconds``; the delay then doubles per
    attempt until it reaches ``max_delay_seconds``.
    """
    _validate_backoff_bounds(base_seconds=base_seconds, max_delay_seconds=max_delay_seconds)
    if attempts < 0:
        raise InvalidArgumentError(f"attempts must be non-negative, got {attempts}")
    exponent = min(max(0, attempts - 1), _MAX_BACKOFF_EXPONENT)
    return min(max_delay_seconds, base_seconds * (2**exponent))


def get_failure_transition(
    *,
    attempts: int,
    max_attempts: int,
    now: datetime,
    base_seconds: int = DEFAULT_RETRY_BASE_SECONDS,
    max_delay_seconds: int = DEFAULT_RETRY_MAX_SECONDS,
) -> FailureTransition:
    """Next state for a job that has just failed its ``attempts``-th run.

    Exhausted jobs are ``dead`` with no resume time, whatever ``now`` is.
    Otherwise the job is ``failed`` and may be redelivered from
    ``now + backoff``.
    """
    if max_attempts <= 0:
        raise InvalidArgumentError(f"max_attempts must be positive, got {max_attempts}")
    if attempts < 0:
        raise InvalidArgumentError(f"attempts must be non-negative, got {attempts}")
    _validate_backoff_bounds(base_seconds=base_seconds, max_delay_seconds=max_delay_seconds)

    if attempts >= max_attempts:
        return FailureTransition(status="dead", available_at=None, retry_delay_seconds=None)

    delay_seconds = compute_backoff_seconds(
        attempts,
        base_seconds=base_seconds,
        max_delay_seconds=max_delay_seconds,
    )
    try:
        available_at = ensure_utc(now) + timedelta(seconds=delay_seconds)
    except OverflowError as exc:
        raise InvalidArgumentError(f"now={now.isoformat()} leaves no room for a {delay_seconds}s retry delay") from exc
    return FailureTransition(status="failed", available_at=available_at, retry_delay_seconds=delay_seconds)


def _validate_backoff_bounds(*, base_seconds: int, max_delay_seconds: int) -> None:
    if base_seconds <= 0:
        raise InvalidArgumentError(f"base_seconds must be positive, got {base_seconds}")
    if max_delay_seconds < base_seconds:
        raise InvalidArgumentError(
            f"max_delay_seconds ({max_delay_seconds}) must be at least base_seconds ({base_seconds})"
        )
