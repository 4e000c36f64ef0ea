from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
import logging
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SettledResult(Generic[K, V]):
    key: K
    value: V | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_settled(
    keys: Sequence[K],
    worker: Callable[[K], Awaitable[V]],
    *,
    max_concurrency: int,
    timeout_seconds: float | None = None,
) -> list[SettledResult[K, V]]:
    """Run ``worker`` for every key with bounded concurrency.

    Every key gets its own result in input order. A failure or timeout is
    recorded on that key only; the other keys keep running.
    """
    if not keys:
        return []

    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def run_one(key: K) -> SettledResult[K, V]:
        async with semaphore:
            try:
                if timeout_seconds is None:
                    value = await worker(key)
                else:
                    value = await asyncio.wait_for(worker(key), timeout=timeout_seconds)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                return SettledResult(key=key, error=exc)
            return SettledResult(key=key, value=value)

    return list(await asyncio.gather(*(run_one(key) for key in keys)))


def log_failures(results: list[SettledResult[K, V]], *, operation: str) -> None:
    for result in results:
        if result.error is None:
            continue
        logger.warning(
            "%s failed for %s: %s",
            operation,
            result.key,
            result.error.__class__.__name__,
            exc_info=result.error,
        )
