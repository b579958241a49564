"""
Reference price oracle: per-pair observation history with arithmetic TWAP.

Prices are 18-decimal fixed point ints (quote per base). Between
observations the price is a step function; before the first observation
the first recorded price holds.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..core import fixed_point as fp

PairKey = Tuple[int, str, str]  # (pool_id, base_denom, quote_denom)


@dataclass
class ManualClock:
    """Deterministic clock shared by the oracle and the simulation."""

    now: int = 0

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"cannot move the clock backwards: {seconds}")
        self.now += seconds
        return self.now


@dataclass(frozen=True)
class Observation:
    timestamp: int
    price: int


class PriceFeed:
    """Time-weighted average prices over recorded observations."""

    def __init__(self, clock: ManualClock) -> None:
        self._clock = clock
        self._history: Dict[PairKey, List[Observation]] = {}

    @property
    def clock(self) -> ManualClock:
        return self._clock

    @staticmethod
    def _require_price(price: int) -> None:
        if not isinstance(price, int) or isinstance(price, bool):
            raise TypeError("price must be a fixed-point int")
        if price < 0:
            raise ValueError(f"price must be non-negative: {price}")

    def set_price(self, pool_id: int, base_denom: str, quote_denom: str, price: int) -> None:
        """Replace the pair's history with a single constant price."""
        self._require_price(price)
        self._history[(pool_id, base_denom, quote_denom)] = [Observation(self._clock.now, price)]

    def record_price(
        self, pool_id: int, base_denom: str, quote_denom: str, price: int, at: int | None = None,
    ) -> None:
        """
        Append an observation at *at* (default: now).

        Raises:
            ValueError: If the timestamp precedes the last observation
        """
        self._require_price(price)
        timestamp = self._clock.now if at is None else at
        history = self._history.setdefault((pool_id, base_denom, quote_denom), [])
        if history and timestamp < history[-1].timestamp:
            raise ValueError(
                f"timestamps must increase monotonically: {timestamp} < {history[-1].timestamp}"
            )
        if history and timestamp == history[-1].timestamp:
            history[-1] = Observation(timestamp, price)
        else:
            history.append(Observation(timestamp, price))

    def _lookup(self, key: PairKey) -> List[Observation]:
        history = self._history.get(key)
        if not history:
            raise LookupError(f"no price history for pool {key[0]} {key[1]}/{key[2]}")
        return history

    @staticmethod
    def _price_at(history: List[Observation], t: int) -> int:
        idx = bisect_right([o.timestamp for o in history], t) - 1
        return history[max(idx, 0)].price

    def price_at(self, pool_id: int, base_denom: str, quote_denom: str, t: int) -> int:
        return self._price_at(self._lookup((pool_id, base_denom, quote_denom)), t)

    def _twap(self, history: List[Observation], start_time: int, end_time: int) -> int:
        if start_time >= end_time:
            return self._price_at(history, end_time)
        total = 0
        cursor = start_time
        price = self._price_at(history, start_time)
        for obs in history:
            if obs.timestamp <= start_time:
                continue
            if obs.timestamp >= end_time:
                break
            total += price * (obs.timestamp - cursor)
            cursor, price = obs.timestamp, obs.price
        total += price * (end_time - cursor)
        return total // (end_time - start_time)

    def twap(self, pool_id: int, base_denom: str, quote_denom: str, start_time: int) -> int:
        """
        Arithmetic TWAP of *base_denom* in *quote_denom* from *start_time* to now.

        A pair recorded only in the opposite direction is answered with the
        reciprocal of its TWAP.

        Raises:
            LookupError: If neither direction of the pair has history
            ValueError: If the reciprocal of a zero price is requested
        """
        end_time = self._clock.now
        key = (pool_id, base_denom, quote_denom)
        if key in self._history:
            return self._twap(self._lookup(key), start_time, end_time)
        inverse = self._twap(self._lookup((pool_id, quote_denom, base_denom)), start_time, end_time)
        if inverse == 0:
            raise ValueError(f"zero price for pool {pool_id} {quote_denom}/{base_denom}")
        return fp.div(fp.ONE, inverse)
