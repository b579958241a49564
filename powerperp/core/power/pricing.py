"""Price reads used by funding, health checks and liquidation.

All prices come from the oracle's TWAP and are returned as fixed point.
Oracle failures surface as ``ExternalCallError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import fixed_point as fp
from .errors import ExternalCallError
from .types import Pool, VaultType

if TYPE_CHECKING:
    from .context import PowerContext

TWAP_PERIOD: int = 420  # seconds


def _twap(ctx: PowerContext, pool_id: int, base_denom: str, quote_denom: str, start_time: int) -> int:
    try:
        return ctx.oracle.twap(pool_id, base_denom, quote_denom, start_time)
    except (LookupError, ValueError) as exc:
        raise ExternalCallError(f"oracle twap failed for pool {pool_id}: {exc}") from exc


def unscaled_quote_price(ctx: PowerContext, start_time: int) -> int:
    """Base asset priced in the quote asset (e.g. ATOM in USDC)."""
    pool = ctx.config.base_pool
    return _twap(ctx, pool.id, ctx.config.base_asset.denom, pool.quote_denom, start_time)


def quote_price(ctx: PowerContext, start_time: int) -> int:
    """Quote price divided by the index scale."""
    return fp.div(unscaled_quote_price(ctx, start_time), fp.from_int(ctx.config.index_scale))


def power_price(ctx: PowerContext, start_time: int) -> int:
    """Power asset priced in base asset."""
    config = ctx.config
    return _twap(ctx, config.power_pool.id, config.power_asset.denom, config.base_asset.denom, start_time)


def stake_price(ctx: PowerContext, denom: str, start_time: int) -> int | None:
    """Staked asset priced in base asset, or None if *denom* is not a stake asset."""
    stake = ctx.config.stake_asset(denom)
    if stake is None:
        return None
    return _twap(ctx, stake.pool.id, stake.denom, ctx.config.base_asset.denom, start_time)


def debt_in_collateral(ctx: PowerContext, debt_amount: int, vault_type: VaultType, now: int) -> int:
    """Fixed-point power *debt_amount* valued in the vault's collateral asset.

    Default vaults: ``debt * power_price``. Staked vaults additionally
    divide by the staked asset's price in base.
    """
    start_time = now - TWAP_PERIOD
    value = fp.mul(debt_amount, power_price(ctx, start_time))
    if vault_type.is_default:
        return value
    price = stake_price(ctx, vault_type.staked_denom or "", start_time)
    if not price:
        raise ExternalCallError(f"no stake price for {vault_type.staked_denom}")
    return fp.div(value, price)


def spot_price(ctx: PowerContext, pool: Pool, base_denom: str, quote_denom: str) -> int:
    try:
        return ctx.venue.spot_price(pool.id, base_denom, quote_denom)
    except (LookupError, ValueError) as exc:
        raise ExternalCallError(f"spot price failed for pool {pool.id}: {exc}") from exc
