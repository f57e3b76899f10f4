"""Bounded-wait concurrent provider calls.

Every provider callback is wrapped in a per-call timeout and run under a
semaphore. Failures are converted to ``ProviderUnavailableError`` values
instead of being raised, so one slow or broken provider never blocks or
aborts the others. No retries are made.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from mediabridge.core.statistics import StatisticsCollector
from mediabridge.shared.constants import AggregationDefaults
from mediabridge.shared.errors import (
    ProviderUnavailableError,
    create_provider_unavailable_error,
)
from mediabridge.shared.logging import log_operation_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ProviderCallOutcome(Generic[T]):
    """Result of one guarded provider call."""

    provider_id: str
    value: T | None = None
    error: ProviderUnavailableError | None = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def timed_out(self) -> bool:
        return self.error is not None and isinstance(
            self.error.original_error, asyncio.TimeoutError
        )


class ProviderCallGuard:
    """Runs provider callbacks concurrently with bounded waits.

    Args:
        timeout: Seconds allowed per call
        max_concurrency: Calls in flight at once within one fan-out
        statistics: Optional collector for call outcomes
    """

    def __init__(
        self,
        timeout: float = AggregationDefaults.PROVIDER_TIMEOUT,
        max_concurrency: int = AggregationDefaults.MAX_CONCURRENCY,
        statistics: StatisticsCollector | None = None,
    ) -> None:
        if timeout <= 0:
            msg = f"timeout must be positive, got {timeout}"
            raise ValueError(msg)
        if max_concurrency < 1:
            msg = f"max_concurrency must be at least 1, got {max_concurrency}"
            raise ValueError(msg)
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.statistics = statistics

    async def _run_one(
        self,
        semaphore: asyncio.Semaphore,
        provider_id: str,
        operation: str,
        call: Callable[[], Awaitable[T]],
    ) -> ProviderCallOutcome[T]:
        async with semaphore:
            start = time.perf_counter()
            try:
                value = await asyncio.wait_for(call(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                outcome: ProviderCallOutcome[T] = ProviderCallOutcome(
                    provider_id,
                    error=create_provider_unavailable_error(
                        provider_id, operation, e, timed_out=True
                    ),
                )
            except Exception as e:  # noqa: BLE001
                # any callback failure counts as an outage
                outcome = ProviderCallOutcome(
                    provider_id,
                    error=create_provider_unavailable_error(provider_id, operation, e),
                )
            else:
                outcome = ProviderCallOutcome(provider_id, value=value)
            outcome.duration_ms = (time.perf_counter() - start) * 1000

        if outcome.error is not None:
            log_operation_error(
                logger,
                outcome.error,
                operation=operation,
                level=logging.WARNING,
            )
        if self.statistics is not None:
            status = "success" if outcome.ok else ("timeout" if outcome.timed_out else "failure")
            self.statistics.record_provider_call(provider_id, status, outcome.duration_ms)
        return outcome

    async def run_all(
        self,
        calls: Mapping[str, Callable[[], Awaitable[T]]],
        operation: str,
    ) -> dict[str, ProviderCallOutcome[T]]:
        """Run every call concurrently.

        Args:
            calls: Provider id -> zero-argument coroutine factory
            operation: Operation name used in logs and errors

        Returns:
            Provider id -> outcome, in the order of ``calls``
        """
        if not calls:
            return {}

        semaphore = asyncio.Semaphore(self.max_concurrency)
        outcomes = await asyncio.gather(
            *(
                self._run_one(semaphore, provider_id, operation, call)
                for provider_id, call in calls.items()
            )
        )
        return {outcome.provider_id: outcome for outcome in outcomes}

    async def run_one(
        self,
        provider_id: str,
        operation: str,
        call: Callable[[], Awaitable[Any]],
    ) -> ProviderCallOutcome[Any]:
        results = await self.run_all({provider_id: call}, operation)
        return results[provider_id]
