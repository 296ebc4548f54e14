"""Bounded polling against eventually-consistent cluster state.

Every wait in the volume workflows is a fixed-interval loop with either an
attempt budget or a wall-clock deadline. The check is re-run against the
cluster on each iteration; nothing observed is carried between attempts.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from .exceptions import OperationTimeoutError
from .settings import VolumeTimeoutSettings, timeout_settings

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class PollPolicy:
    """Fixed interval plus an attempt budget and/or a deadline in seconds."""

    interval: float
    max_attempts: int | None = None
    deadline: float | None = None

    def describe(self) -> str:
        if self.max_attempts is not None:
            return f"{self.max_attempts} attempts every {self.interval}s"
        if self.deadline is not None:
            return f"{self.deadline}s deadline, every {self.interval}s"
        return f"unbounded, every {self.interval}s"


@dataclass(frozen=True)
class PollPolicies:
    """The policies used by the volume workflows."""

    short: PollPolicy
    drain: PollPolicy
    pod_delete: PollPolicy
    transfer: PollPolicy

    @classmethod
    def from_settings(cls, settings: VolumeTimeoutSettings | None = None) -> "PollPolicies":
        settings = settings or timeout_settings
        return cls(
            short=PollPolicy(settings.short_poll_interval, max_attempts=settings.short_poll_attempts),
            drain=PollPolicy(settings.drain_poll_interval, deadline=settings.drain_timeout),
            pod_delete=PollPolicy(settings.short_poll_interval, deadline=settings.pod_delete_timeout),
            transfer=PollPolicy(settings.transfer_poll_interval, deadline=settings.transfer_timeout),
        )


async def poll_until(
    check: Callable[[], Awaitable[T | None]],
    policy: PollPolicy,
    description: str,
) -> T:
    """Run ``check`` until it returns a truthy value.

    Args:
        check: Async callable re-reading cluster state; falsy means "not yet"
        policy: Interval and budget for the loop
        description: What is being waited for, used in the timeout message

    Returns:
        The first truthy value returned by ``check``

    Raises:
        OperationTimeoutError: Budget exhausted before ``check`` succeeded.
        Any exception raised by ``check`` propagates unchanged.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    attempt = 0

    while True:
        attempt += 1
        result = await check()
        if result:
            return result

        if policy.max_attempts is not None and attempt >= policy.max_attempts:
            break
        if policy.deadline is not None and loop.time() - started >= policy.deadline:
            break

        await asyncio.sleep(policy.interval)

    logger.warning(
        "Polling budget exhausted",
        waiting_for=description,
        attempts=attempt,
        policy=policy.describe(),
    )
    raise OperationTimeoutError(f"timeout waiting for {description} ({policy.describe()})")
