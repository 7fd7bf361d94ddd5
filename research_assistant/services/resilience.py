"""Deadline and retry combinators shared by every external call."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, TypeVar

from research_assistant.models.errors import DeadlineExceeded, NoSourcesError

T = TypeVar("T")


async def run_with_deadline(awaitable: Awaitable[T], timeout_ms: int, label: str) -> T:
    """Await `awaitable`, raising DeadlineExceeded once `timeout_ms` elapses."""
    timeout_s = max(int(timeout_ms), 1) / 1000
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise DeadlineExceeded(label, int(timeout_ms)) from exc


class Deadline:
    """Remaining-time budget for one pipeline stage."""

    def __init__(self, budget_ms: int):
        self.budget_ms = max(int(budget_ms), 1)
        self._loop = asyncio.get_running_loop()
        self._expires_at = self._loop.time() + self.budget_ms / 1000

    def remaining_ms(self) -> int:
        return max(int((self._expires_at - self._loop.time()) * 1000), 0)

    def cap(self, timeout_ms: int) -> int:
        return max(min(int(timeout_ms), self.remaining_ms()), 1)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 2
    backoff_ms: int = 2000
    retry_on: tuple[type[BaseException], ...] = (NoSourcesError,)

    def should_retry(self, exc: BaseException, attempt: int) -> bool:
        return attempt < self.max_attempts and isinstance(exc, self.retry_on)

    async def sleep(self) -> None:
        if self.backoff_ms > 0:
            await asyncio.sleep(self.backoff_ms / 1000)
