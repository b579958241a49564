"""Liquidation of unsafe vaults.

Policy, in order:

1. Try to liquidate half the vault's exposure (bounded by the caller's
   ``max_debt``). The liquidator is paid the debt's collateral value plus a
   10% bounty.
2. Dust guard: if that would leave less than half a collateral unit in the
   vault, target the full exposure instead (still bounded by ``max_debt``).
3. Clamp: if the payout exceeds the vault's collateral, pay out all of it
   and liquidate the full exposure. The liquidator may then earn less than
   the bounty, but deeply underwater vaults stay liquidatable.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from .. import fixed_point as fp
from .errors import INVALID_LIQUIDATION, SAFE_VAULT, UNPROFITABLE_LIQUIDATION, StateError, ValidationError
from .funding import add_funding_event, apply_funding
from .health import check_vault
from .operations import nonpayable, require_vault_id
from .pricing import debt_in_collateral
from .types import ActionParams, BurnTokens, EventKind, LiquidationPreview, Response, Transfer, Vault, VaultType

if TYPE_CHECKING:
    from .context import PowerContext

LIQUIDATION_BOUNTY: int = fp.parse("1.1")


def liquidation_amount(
    ctx: PowerContext, input_amount: int, max_liquidatable: int, vault_type: VaultType, now: int,
) -> LiquidationPreview:
    amount = min(input_amount, max_liquidatable)
    decimals = ctx.config.collateral_asset(vault_type).decimals
    debt = debt_in_collateral(
        ctx, fp.from_atomics(amount, ctx.config.power_asset.decimals), vault_type, now,
    )
    return LiquidationPreview(
        amount=amount,
        collateral_paid=fp.to_fixed(fp.mul(debt, LIQUIDATION_BOUNTY), decimals),
        debt_value=fp.to_fixed(debt, decimals),
    )


def liquidation_results(ctx: PowerContext, max_debt: int, vault: Vault, now: int) -> LiquidationPreview:
    preview = liquidation_amount(ctx, max_debt, vault.short_amount // 2, vault.vault_type, now)

    decimals = ctx.config.collateral_asset(vault.vault_type).decimals
    half_unit = 10**decimals // 2
    if vault.collateral > preview.collateral_paid and vault.collateral - preview.collateral_paid < half_unit:
        preview = liquidation_amount(ctx, max_debt, vault.short_amount, vault.vault_type, now)

    if preview.collateral_paid > vault.collateral:
        preview = replace(preview, amount=vault.short_amount, collateral_paid=vault.collateral)

    return preview


def liquidate_vault(
    ctx: PowerContext,
    *,
    liquidator: str,
    burner: str,
    vault_id: int,
    max_debt: int,
    min_payout: int | None,
    now: int,
    event: EventKind = EventKind.LIQUIDATION,
) -> Response:
    """Liquidate an unsafe vault, burning power held by *burner*.

    *burner* is the liquidator for a plain liquidation and the engine's own
    account for a flash liquidation.
    """
    normalization_factor = apply_funding(ctx, now)
    if check_vault(ctx, vault_id, normalization_factor, now).is_solvent:
        raise StateError(SAFE_VAULT)

    vault = ctx.vaults.load(vault_id)
    preview = liquidation_results(ctx, max_debt, vault, now)

    if preview.amount == 0 or max_debt < preview.amount:
        raise ValidationError(INVALID_LIQUIDATION)
    if min_payout is not None and preview.collateral_paid < min_payout:
        raise ValidationError(UNPROFITABLE_LIQUIDATION)

    ctx.vaults.burn(vault_id, vault.operator, preview.collateral_paid, preview.amount)

    asset = ctx.config.collateral_asset(vault.vault_type)
    response = Response().add_message(BurnTokens(ctx.config.power_asset.denom, preview.amount, burner))
    if preview.collateral_paid:
        response.add_message(Transfer(liquidator, asset.denom, preview.collateral_paid))

    response.add_event(
        event,
        liquidator=liquidator,
        liquidatee=vault.operator,
        liquidation_amount=preview.amount,
        collateral_to_pay=preview.collateral_paid,
        vault_id=vault_id,
        vault_type=vault.vault_type,
    )
    return add_funding_event(response, normalization_factor)


def handle_liquidate(ctx: PowerContext, params: ActionParams) -> Response:
    ctx.state.require_open_and_unpaused()
    vault_id = require_vault_id(params)
    ctx.vaults.load(vault_id)
    # the liquidator's power is burnt in place, nothing is sent
    nonpayable(params.funds)
    return liquidate_vault(
        ctx,
        liquidator=params.sender,
        burner=params.sender,
        vault_id=vault_id,
        max_debt=params.amount,
        min_payout=params.min_amount_to_pay,
        now=params.now,
    )
