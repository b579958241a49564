"""Collateral health: solvency, minimum collateral and collateral ratio.

A vault is solvent when ``collateral * 2 >= debt * 3`` (a 150% collateral
ratio), compared after truncating both sides to the collateral asset's
decimals. ``debt`` is ``short / 10^power_decimals * nf * quote_price``.

Health checks report; they never reject. Callers turn a bad status into a
``SolvencyError`` with ``require_healthy``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import fixed_point as fp
from .errors import BELOW_MIN_COLLATERAL, UNSAFE_VAULT, SolvencyError
from .pricing import TWAP_PERIOD, quote_price, stake_price
from .types import Config, Vault, VaultStatus

if TYPE_CHECKING:
    from .context import PowerContext

COLLATERAL_RATIO_NUMERATOR: int = fp.from_int(3)
COLLATERAL_RATIO_DENOMINATOR: int = fp.from_int(2)

MISSING_VAULT_STATUS = VaultStatus(is_solvent=True, above_min_collateral=False, collateral_ratio=0)


def debt_value(config: Config, short_amount: int, normalization_factor: int, quote: int) -> int:
    short = fp.from_atomics(short_amount, config.power_asset.decimals)
    return fp.mul(fp.mul(short, normalization_factor), quote)


def collateral_value(config: Config, vault: Vault, stake_px: int | None = None) -> int:
    """Vault collateral in base asset terms (0 for staked collateral without a price)."""
    asset = config.collateral_asset(vault.vault_type)
    amount = fp.from_atomics(vault.collateral, asset.decimals)
    if vault.vault_type.is_default:
        return amount
    return fp.mul(amount, stake_px or 0)


def vault_status(
    config: Config,
    vault: Vault | None,
    normalization_factor: int,
    quote: int,
    stake_px: int | None = None,
) -> VaultStatus:
    if vault is None:
        return MISSING_VAULT_STATUS

    decimals = config.collateral_asset(vault.vault_type).decimals
    debt = debt_value(config, vault.short_amount, normalization_factor, quote)
    collateral = collateral_value(config, vault, stake_px)

    adjusted_collateral = fp.to_fixed(fp.mul(collateral, COLLATERAL_RATIO_DENOMINATOR), decimals)
    adjusted_debt = fp.to_fixed(fp.mul(debt, COLLATERAL_RATIO_NUMERATOR), decimals)

    is_solvent = adjusted_collateral >= adjusted_debt
    above_min = vault.collateral >= fp.to_fixed(config.min_collateral, decimals)

    if debt == 0 or not above_min:
        ratio = 0
    else:
        ratio = fp.div(collateral, debt)

    return VaultStatus(is_solvent=is_solvent, above_min_collateral=above_min, collateral_ratio=ratio)


def check_vault(ctx: PowerContext, vault_id: int, normalization_factor: int, now: int) -> VaultStatus:
    """Status of a stored vault using TWAPs over the last ``TWAP_PERIOD`` seconds."""
    vault = ctx.vaults.get(vault_id)
    if vault is None:
        return MISSING_VAULT_STATUS
    start_time = now - TWAP_PERIOD
    stake_px = None
    if not vault.vault_type.is_default:
        stake_px = stake_price(ctx, vault.vault_type.staked_denom or "", start_time)
    return vault_status(ctx.config, vault, normalization_factor, quote_price(ctx, start_time), stake_px)


def require_healthy(status: VaultStatus, *, check_min_collateral: bool = True) -> None:
    if not status.is_solvent:
        raise SolvencyError(UNSAFE_VAULT)
    if check_min_collateral and not status.above_min_collateral:
        raise SolvencyError(BELOW_MIN_COLLATERAL)
