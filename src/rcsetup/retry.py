"""Exponential-backoff retry wrapper for remote calls.

:func:`retry_with_backoff` awaits a zero-argument coroutine factory and
retries it when it raises. It knows nothing about HTTP: whatever the
operation raises last is re-raised unchanged once the retries are
spent, and whatever it returns (including an
:class:`~rcsetup.models.AlreadyExisted` sentinel) is passed straight back.

The schedule comes from an explicit :class:`~rcsetup.models.RetryConfig`
value supplied by the caller; there is no module-level retry state.

Example::

    result = await retry_with_backoff(
        lambda: client.create_product(payload),
        config,
        description="create product app_pro_monthly",
    )
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from rcsetup.models import RetryConfig
from rcsetup.output import debug, error, warning

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Return the delay in milliseconds after zero-based *attempt* failed.

    ``min(base_delay_ms * backoff_multiplier ** attempt, max_delay_ms)``
    """
    return min(
        config.base_delay_ms * config.backoff_multiplier ** attempt,
        config.max_delay_ms,
    )


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    *,
    description: Optional[str] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """Await ``operation()``, retrying on exceptions with exponential backoff.

    The operation runs at most ``config.max_retries + 1`` times. Every
    attempt is logged: a debug line when it starts, a warning when it fails
    and another attempt follows, an error when the final attempt fails.

    Args:
        operation: Zero-argument callable returning a fresh awaitable on
            each call.
        config: Retry schedule. Defaults to :class:`RetryConfig` defaults
            (3 retries, 1000 ms base, x2, capped at 10000 ms).
        description: Short label for log lines, e.g. ``"create product x"``.
        sleep: Coroutine used to wait between attempts; takes seconds.

    Returns:
        Whatever the first successful attempt returned.

    Raises:
        Exception: The exception raised by the last attempt, unchanged.
    """
    config = config or RetryConfig()
    label = description or "remote call"
    total = config.max_retries + 1

    for attempt in range(total):
        debug(f"{label}: attempt {attempt + 1}/{total}")
        try:
            return await operation()
        except Exception as exc:
            if attempt == config.max_retries:
                error(f"{label}: failed after {config.max_retries} retries: {exc}")
                raise

            delay_ms = compute_delay(config, attempt)
            warning(
                f"{label}: attempt {attempt + 1}/{total} failed ({exc}), "
                f"retrying in {delay_ms:.0f}ms"
            )
            await sleep(delay_ms / 1000)

    raise AssertionError("unreachable")  # pragma: no cover
