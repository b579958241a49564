"""
Reference swap venue: constant-product pools whose reserves live in the
token ledger under the pool's own account.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from ..core import cpmm
from ..core import fixed_point as fp
from .balances import TokenLedger


class SlippageError(ValueError):
    """A swap would settle outside the caller's min-out / max-in bound."""


@dataclass(frozen=True)
class PoolSpec:
    pool_id: int
    denom_a: str
    denom_b: str
    decimals_a: int
    decimals_b: int
    fee_bps: int = 0

    @property
    def account(self) -> str:
        return f"pool/{self.pool_id}"

    def decimals(self, denom: str) -> int:
        return self.decimals_a if denom == self.denom_a else self.decimals_b


class CpmmVenue:
    """Swap venue over a set of two-asset CPMM pools."""

    def __init__(self, ledger: TokenLedger) -> None:
        self._ledger = ledger
        self._pools: Dict[int, PoolSpec] = {}

    def create_pool(
        self,
        pool_id: int,
        denom_a: str,
        denom_b: str,
        *,
        decimals_a: int = 6,
        decimals_b: int = 6,
        fee_bps: int = 0,
    ) -> PoolSpec:
        if pool_id in self._pools:
            raise ValueError(f"pool already exists: {pool_id}")
        if denom_a == denom_b:
            raise ValueError("pool denoms must differ")
        if not (0 <= fee_bps < cpmm.BPS_DENOM):
            raise ValueError(f"fee_bps must be in [0, {cpmm.BPS_DENOM}): {fee_bps}")
        spec = PoolSpec(pool_id, denom_a, denom_b, decimals_a, decimals_b, fee_bps)
        self._pools[pool_id] = spec
        return spec

    def pool(self, pool_id: int) -> PoolSpec:
        spec = self._pools.get(pool_id)
        if spec is None:
            raise LookupError(f"unknown pool: {pool_id}")
        return spec

    def add_liquidity(self, pool_id: int, provider: str, amount_a: int, amount_b: int) -> None:
        spec = self.pool(pool_id)
        self._ledger.transfer(spec.denom_a, provider, spec.account, amount_a)
        self._ledger.transfer(spec.denom_b, provider, spec.account, amount_b)

    def reserves(self, pool_id: int, denom_in: str, denom_out: str) -> Tuple[int, int]:
        spec = self.pool(pool_id)
        if {denom_in, denom_out} != {spec.denom_a, spec.denom_b}:
            raise ValueError(f"pool {pool_id} does not trade {denom_in}/{denom_out}")
        return (
            self._ledger.balance_of(spec.account, denom_in),
            self._ledger.balance_of(spec.account, denom_out),
        )

    def spot_price(self, pool_id: int, base_denom: str, quote_denom: str) -> int:
        """Whole *quote_denom* units per whole *base_denom* unit (fixed point)."""
        spec = self.pool(pool_id)
        reserve_base, reserve_quote = self.reserves(pool_id, base_denom, quote_denom)
        if reserve_base == 0:
            raise ValueError(f"pool {pool_id} has no {base_denom} liquidity")
        return fp.div(
            fp.from_atomics(reserve_quote, spec.decimals(quote_denom)),
            fp.from_atomics(reserve_base, spec.decimals(base_denom)),
        )

    def swap_exact_in(
        self, sender: str, pool_id: int, denom_in: str, denom_out: str, amount_in: int, min_out: int,
    ) -> int:
        """
        Sell exactly *amount_in*; returns the amount bought.

        Raises:
            SlippageError: If the output would be below *min_out*
            InsufficientBalanceError: If sender cannot pay *amount_in*
        """
        reserve_in, reserve_out = self.reserves(pool_id, denom_in, denom_out)
        quote = cpmm.swap_exact_in(reserve_in, reserve_out, amount_in, self.pool(pool_id).fee_bps)
        if quote.amount_out < min_out:
            raise SlippageError(f"amount_out {quote.amount_out} below min_out {min_out}")
        self._settle(pool_id, sender, denom_in, quote.amount_in, denom_out, quote.amount_out)
        return quote.amount_out

    def swap_exact_out(
        self, sender: str, pool_id: int, denom_in: str, denom_out: str, amount_out: int, max_in: int,
    ) -> int:
        """
        Buy exactly *amount_out*; returns the amount paid.

        Raises:
            SlippageError: If the input would exceed *max_in*
            InsufficientBalanceError: If sender cannot pay the input
        """
        reserve_in, reserve_out = self.reserves(pool_id, denom_in, denom_out)
        quote = cpmm.swap_exact_out(reserve_in, reserve_out, amount_out, self.pool(pool_id).fee_bps)
        if quote.amount_in > max_in:
            raise SlippageError(f"amount_in {quote.amount_in} above max_in {max_in}")
        self._settle(pool_id, sender, denom_in, quote.amount_in, denom_out, quote.amount_out)
        return quote.amount_in

    def _settle(
        self, pool_id: int, sender: str, denom_in: str, amount_in: int, denom_out: str, amount_out: int,
    ) -> None:
        account = self.pool(pool_id).account
        self._ledger.transfer(denom_in, sender, account, amount_in)
        self._ledger.transfer(denom_out, account, sender, amount_out)

    def __repr__(self) -> str:
        return f"CpmmVenue({len(self._pools)} pools)"
