from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from exchange.errors import ExchangeResponse
from utils.logger import get_logger, log_extra

log = get_logger("exchange.retry")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded linear backoff: attempt N waits base_delay * N seconds."""

    max_attempts: int = 5
    base_delay: float = 0.3

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    def backoff(self, attempt: int) -> float:
        return self.base_delay * attempt


class RateLimitRetrier:
    """
    Re-run one upstream call while OKX answers "too many requests" (50011).

    Every other outcome, error codes included, goes straight back to the
    caller. Once the attempts run out the last rate-limited response is
    returned as-is so the caller can fall back to cache or empty data.
    """

    def __init__(self, policy: Optional[RetryPolicy] = None, sleep: Optional[SleepFn] = None):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep

    async def run(self, call: Callable[[], Awaitable[ExchangeResponse]]) -> ExchangeResponse:
        attempt = 0
        while True:
            attempt += 1
            resp = await call()
            resp.attempts = attempt
            if not resp.rate_limited:
                return resp
            if attempt >= self.policy.max_attempts:
                log.warning(
                    "rate limit retries exhausted",
                    **log_extra(attempts=attempt, host=resp.host, cred_idx=resp.cred_idx),
                )
                return resp
            delay = self.policy.backoff(attempt)
            log.info(
                "rate limited, backing off",
                **log_extra(attempt=attempt, delay_sec=delay, cred_idx=resp.cred_idx),
            )
            await self._sleep(delay)
