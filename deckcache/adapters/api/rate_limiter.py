"""
Rate limiter a seau de jetons pour les appels TMDB sortants.

Le seau contient `requests_per_second` jetons (borne a [1, 50]) et se
remplit entierement a chaque seconde ecoulee. Les appelants en attente sont
servis dans l'ordre d'arrivee (asyncio.Lock est equitable). La file accepte
au plus 10 x le debit ; au-dela, l'appelant patiente jusqu'au prochain
remplissage avant de se presenter a nouveau.

Usage:
    limiter = TokenBucketRateLimiter(requests_per_second=4)
    await limiter.acquire()
"""

import asyncio
import time
from typing import Awaitable, Callable

from deckcache.core.ports.caching import IRateLimiter
from deckcache.utils.constants import (
    MAX_REQUESTS_PER_SECOND,
    MIN_REQUESTS_PER_SECOND,
    QUEUE_FACTOR,
)
from deckcache.utils.helpers import clamp

REFILL_PERIOD_SECONDS = 1.0
MIN_QUEUE_BACKOFF_SECONDS = 0.01


class TokenBucketRateLimiter(IRateLimiter):
    """
    Seau de jetons FIFO.

    Attributes:
        acquired_count: Nombre total de jetons delivres (introspection/tests)
    """

    def __init__(
        self,
        requests_per_second: int = 4,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._rate = clamp(requests_per_second, MIN_REQUESTS_PER_SECOND, MAX_REQUESTS_PER_SECOND)
        self._queue_limit = self._rate * QUEUE_FACTOR
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self._rate)
        self._last_refill = clock()
        self._waiting = 0
        self._lock = asyncio.Lock()
        self.acquired_count = 0

    @property
    def rate(self) -> int:
        return self._rate

    @property
    def queue_limit(self) -> int:
        return self._queue_limit

    @property
    def waiting(self) -> int:
        """Nombre d'appelants actuellement en file."""
        return self._waiting

    async def acquire(self) -> None:
        """
        Attend un jeton.

        Raises:
            asyncio.CancelledError: si la tache est annulee ; sa place en file est liberee
        """
        while self._waiting >= self._queue_limit:
            await self._sleep(max(self._time_until_refill(), MIN_QUEUE_BACKOFF_SECONDS))

        self._waiting += 1
        try:
            async with self._lock:
                while True:
                    self._refill()
                    if self._tokens >= 1:
                        self._tokens -= 1
                        self.acquired_count += 1
                        return
                    await self._sleep(self._time_until_refill())
        finally:
            self._waiting -= 1

    def _refill(self) -> None:
        elapsed = self._clock() - self._last_refill
        if elapsed < REFILL_PERIOD_SECONDS:
            return
        periods = int(elapsed // REFILL_PERIOD_SECONDS)
        self._tokens = float(self._rate)
        self._last_refill += periods * REFILL_PERIOD_SECONDS

    def _time_until_refill(self) -> float:
        return max(0.0, self._last_refill + REFILL_PERIOD_SECONDS - self._clock())
