"""
Readiness Waiting Service

Architectural Intent:
- Bounded polling used by drivers inside ready_machine
- The bound and backoff are explicit configuration, never a fixed constant
- Elapsing the bound raises NotReady (retryable); a probe raising
  ProvisionFailed ends the wait immediately

Design Decisions:
- The probe is an async callable returning True once the machine is reachable
- Intervals grow geometrically up to max_interval_seconds
- The clock and sleep function are injectable for deterministic tests
"""

from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from provisio.domain.errors import NotReady

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadinessPolicy:
    """Bound and backoff for a readiness wait."""
    timeout_seconds: float = 600.0
    poll_interval_seconds: float = 2.0
    backoff_factor: float = 1.5
    max_interval_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.timeout_seconds < 0:
            raise ValueError("timeout_seconds cannot be negative")
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        if self.max_interval_seconds < self.poll_interval_seconds:
            raise ValueError("max_interval_seconds must be >= poll_interval_seconds")

    def intervals(self):
        """Yields successive sleep intervals."""
        interval = self.poll_interval_seconds
        while True:
            yield interval
            interval = min(interval * self.backoff_factor, self.max_interval_seconds)


async def wait_until_ready(
    probe: Callable[[], Awaitable[bool]],
    policy: ReadinessPolicy,
    description: str = "machine",
    machine: Optional[str] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> float:
    """
    Polls `probe` until it returns True. Returns the seconds waited.

    Raises NotReady if the policy's timeout elapses first.
    """
    started = clock()
    deadline = started + policy.timeout_seconds
    attempts = 0
    intervals = policy.intervals()

    while True:
        attempts += 1
        if await probe():
            waited = clock() - started
            logger.debug(
                "%s ready after %d probe(s), %.1fs", description, attempts, waited
            )
            return waited

        remaining = deadline - clock()
        if remaining <= 0:
            waited = clock() - started
            raise NotReady(
                f"{description} not ready after {waited:.1f}s "
                f"({attempts} probe(s))",
                machine,
                waited_seconds=waited,
            )
        await sleep(min(next(intervals), remaining))
