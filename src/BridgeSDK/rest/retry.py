"""Caller retry policies: Tenacity-based backoff for transient failures.

The SDK itself only retries authentication failures (once, inside the session
attacher).  Everything else propagates immediately; callers that want to ride
out flaky networks or server restarts opt in with the policy below:
- ``TransportError`` (timeouts, connection failures)
- ``ServerError`` (5xx, honouring Retry-After when the server sends it)

Design:
- **Full-jitter exponential backoff**: Reduces synchronized retry storms
- **Retry-After support**: Respects server guidance
- **Bounded**: Stops at whichever of attempts or deadline comes first
- **Never automatic**: Nothing in the SDK wraps calls in this policy

Example:
    >>> from BridgeSDK.rest.retry import create_transport_retry_policy
    >>> policy = create_transport_retry_policy(max_attempts=4, max_delay_seconds=30)
    >>> for attempt in policy:
    ...     with attempt:
    ...         schedule = api.get_schedule()
"""

from __future__ import annotations

import email.utils
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
    wait_random_exponential,
)
from tenacity.nap import sleep as tenacity_sleep
from tenacity.wait import wait_base

from BridgeSDK.errors import BridgeSDKError, ServerError

logger = logging.getLogger(__name__)


def _parse_retry_after_value(value: Optional[str]) -> Optional[float]:
    """Convert a Retry-After header value into a delay in seconds."""
    if not value:
        return None

    try:
        delay = float(int(value))
    except ValueError:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        delay = (dt - datetime.now(timezone.utc)).total_seconds()

    return max(0.0, delay)


class _RetryAfterOrBackoff(wait_base):
    """Wait strategy that honours Retry-After before falling back to backoff."""

    def __init__(self, fallback_wait: wait_base, max_delay_seconds: float) -> None:
        self._fallback_wait = fallback_wait
        self._max_delay_seconds = max_delay_seconds

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = self._retry_after_delay(retry_state)
        if delay is not None:
            return min(delay, float(self._max_delay_seconds))
        return float(self._fallback_wait(retry_state))

    def _retry_after_delay(self, retry_state: RetryCallState) -> Optional[float]:
        outcome = retry_state.outcome
        if outcome is None:
            return None
        exc = outcome.exception()
        if isinstance(exc, ServerError):
            return _parse_retry_after_value(exc.headers.get("retry-after"))
        return None


def is_retryable(exc: BaseException) -> bool:
    """True for SDK errors flagged retryable (transport failures and 5xx)."""
    return isinstance(exc, BridgeSDKError) and exc.retryable


def create_transport_retry_policy(
    max_attempts: int = 4,
    max_delay_seconds: float = 60,
    *,
    sleep: Callable[[float], None] = tenacity_sleep,
) -> Retrying:
    """Create a Tenacity policy retrying transport failures and server errors.

    Args:
        max_attempts: Maximum number of attempts (default 4)
        max_delay_seconds: Overall deadline from the first attempt (default 60)
        sleep: Sleep function; tests pass a recorder instead of sleeping

    Returns:
        Configured Tenacity Retrying object; re-raises the final SDK error
    """
    return Retrying(
        stop=stop_after_attempt(max_attempts) | stop_after_delay(max_delay_seconds),
        wait=_RetryAfterOrBackoff(
            fallback_wait=wait_random_exponential(multiplier=0.5, max=min(30, max_delay_seconds)),
            max_delay_seconds=max_delay_seconds,
        ),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )


__all__ = [
    "create_transport_retry_policy",
    "is_retryable",
]
