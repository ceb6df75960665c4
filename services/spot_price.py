"""
Tiered silver spot price cache.

Lookup order on every call:
  1. memory   - this process, zero I/O
  2. durable  - the parameter store, shared by all instances
  3. upstream - GoldAPI, rate limited and paid

A tier is fresh when ``now - fetched_at < interval``, where the interval is
re-drawn per call as ``base * (1 +/- jitter)`` so instances don't all expire
at once. A failed upstream call never advances ``fetched_at``: the next call
tries upstream again instead of trusting a price that was never refreshed.

There is no lock across instances. Two instances may both see stale tiers
and both call upstream; the durable write is last-write-wins.
"""
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from services.store import ParameterStore, PriceCacheEntry

logger = logging.getLogger(__name__)


class PriceSource(str, Enum):
    MEMORY = "memory"
    DURABLE = "durable"
    UPSTREAM = "upstream"
    STALE_UPSTREAM_FAILURE = "stale-upstream-failure"
    DEFAULT = "default"


@dataclass(frozen=True)
class SpotPrice:
    price: float
    source: PriceSource
    fetched_at: float


class TieredPriceCache:
    def __init__(
        self,
        upstream,
        store: ParameterStore,
        default_price: float,
        key: str = "XAG",
        base_interval: float = 30.0,
        jitter: float = 0.2,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.upstream = upstream
        self.store = store
        self.default_price = default_price
        self.key = key
        self.base_interval = base_interval
        self.jitter = jitter
        self.clock = clock
        self.rng = rng or random.Random()
        self._memory: Optional[PriceCacheEntry] = None

    def effective_interval(self) -> float:
        if self.jitter <= 0:
            return self.base_interval
        return self.base_interval * (1 + self.rng.uniform(-self.jitter, self.jitter))

    def invalidate(self):
        """Drop the memory tier. The durable tier is left as is."""
        self._memory = None

    def get_spot_price(self, now: Optional[float] = None) -> SpotPrice:
        now = self.clock() if now is None else now
        interval = self.effective_interval()

        if self._memory is not None and self._memory.is_fresh(now, interval):
            logger.debug(f"Spot price memory hit ({self._memory.price})")
            return SpotPrice(self._memory.price, PriceSource.MEMORY, self._memory.fetched_at)

        durable = self.store.read_price(self.key)
        durable_entry = durable.value if durable.ok else None
        if durable_entry is not None and durable_entry.is_fresh(now, interval):
            logger.debug(f"Spot price durable hit ({durable_entry.price})")
            self._memory = durable_entry
            return SpotPrice(durable_entry.price, PriceSource.DURABLE, durable_entry.fetched_at)

        fetched = self.upstream.fetch()
        if fetched.ok:
            entry = PriceCacheEntry(price=fetched.value, fetched_at=now)
            written = self.store.write_price(self.key, entry)
            if not written.ok:
                logger.warning(f"Could not persist spot price, memory tier only: {written}")
            self._memory = entry
            logger.info(f"Fetched spot price from upstream: {entry.price:.4f}")
            return SpotPrice(entry.price, PriceSource.UPSTREAM, now)

        logger.warning(f"Upstream spot price unavailable: {fetched}")
        last_known = self._last_known(durable_entry)
        if last_known is not None:
            return SpotPrice(last_known.price, PriceSource.STALE_UPSTREAM_FAILURE, last_known.fetched_at)

        return SpotPrice(self.default_price, PriceSource.DEFAULT, now)

    def _last_known(self, durable_entry: Optional[PriceCacheEntry]) -> Optional[PriceCacheEntry]:
        candidates = [e for e in (durable_entry, self._memory) if e is not None]
        if not candidates:
            return None
        return max(candidates, key=lambda e: e.fetched_at)
