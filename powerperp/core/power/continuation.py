"""Multi-step operations that wait on the swap venue.

Each operation starts in a handler, parks its state in the context's single
pending slot, and schedules a message whose settlement resumes it through a
reply handler:

    open short   Idle -> MintIssued -> AwaitingSwapOut -> settled
    close short  Idle -> AwaitingSwapIn -> settled
    flash liq.   Idle -> FlashAwaitingSwapIn -> settled

Amounts produced by the venue are never trusted from the reply alone: open
short measures the power supply delta across the mint, close short and
flash liquidation measure the engine's power balance delta across the swap.

A failure at any step rolls back the whole top-level operation (see
``engine.step``), so the pending slot is only cleared on success.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Sequence

from .. import fixed_point as fp
from .errors import (
    CONTINUATION_IN_FLIGHT,
    INVALID_FUNDS,
    INVALID_LIQUIDATION,
    SAFE_VAULT,
    SLIPPAGE_TOO_HIGH,
    StateError,
    ValidationError,
)
from .funding import apply_funding
from .health import check_vault
from .liquidation import liquidate_vault, liquidation_results
from .operations import burn_position, handle_burn, mint, must_pay, require_vault_id
from .pricing import spot_price
from .types import (
    ActionParams,
    AwaitingSwapIn,
    AwaitingSwapOut,
    Coin,
    Config,
    EventKind,
    FlashAwaitingSwapIn,
    MintIssued,
    ReplyTag,
    Response,
    SubMessageResult,
    SwapExactIn,
    SwapExactOut,
    Transfer,
)

if TYPE_CHECKING:
    from .context import PowerContext


# -- Helpers -----------------------------------------------------------------

def _check_slippage(slippage: int | None) -> None:
    if slippage is not None and slippage >= fp.ONE:
        raise ValidationError(SLIPPAGE_TOO_HIGH)


def _require_idle(ctx: PowerContext) -> None:
    if ctx.pending is not None:
        raise StateError(CONTINUATION_IN_FLIGHT)


def _power_value_in_base(ctx: PowerContext, power_amount: int) -> int:
    """Spot value of raw *power_amount* in base asset (fixed point)."""
    config = ctx.config
    price = spot_price(ctx, config.power_pool, config.power_asset.denom, config.base_asset.denom)
    return fp.mul(price, fp.from_atomics(power_amount, config.power_asset.decimals))


def min_amount_out(ctx: PowerContext, power_in: int, slippage: int | None) -> int:
    """Floor for selling *power_in*: spot value less *slippage*, or 1 unit when unbounded."""
    if slippage is None:
        return 1
    best = _power_value_in_base(ctx, power_in)
    return max(fp.to_fixed(fp.mul(best, fp.ONE - slippage), ctx.config.base_asset.decimals), 1)


def max_amount_in(ctx: PowerContext, power_out: int, slippage: int) -> int:
    """Ceiling for buying *power_out*: spot cost plus *slippage*."""
    cost = _power_value_in_base(ctx, power_out)
    return fp.to_fixed(fp.mul(cost, fp.ONE + slippage), ctx.config.base_asset.decimals)


def _close_short_funds(config: Config, funds: Sequence[Coin]) -> tuple[int, int]:
    """``(base offered, power overpaid)``. Base is required, power optional."""
    offered = overpaid = 0
    for coin in funds:
        if coin.denom == config.base_asset.denom and not offered:
            offered = coin.amount
        elif coin.denom == config.power_asset.denom and not overpaid:
            overpaid = coin.amount
        else:
            raise ValidationError(INVALID_FUNDS)
    if offered <= 0:
        raise ValidationError(INVALID_FUNDS)
    return offered, overpaid


# -- Open short --------------------------------------------------------------

def handle_open_short(ctx: PowerContext, params: ActionParams) -> Response:
    _check_slippage(params.slippage)
    _require_idle(ctx)
    supply_before = ctx.ledger.total_supply(ctx.config.power_asset.denom)

    response, vault_id = mint(ctx, replace(params, rebase=False), should_sell=True)
    ctx.begin_continuation(MintIssued(
        operator=params.sender,
        vault_id=vault_id,
        supply_before=supply_before,
        slippage=params.slippage,
    ))
    return response


def reply_open_short_mint(ctx: PowerContext, params: ActionParams, result: SubMessageResult) -> Response:
    pending = ctx.take_continuation(MintIssued)
    config = ctx.config

    minted = ctx.ledger.total_supply(config.power_asset.denom) - pending.supply_before
    if minted <= 0:
        raise StateError("open short mint produced no tokens")

    ctx.advance_continuation(AwaitingSwapOut(operator=pending.operator, vault_id=pending.vault_id))
    return Response().add_message(
        SwapExactIn(
            pool_id=config.power_pool.id,
            denom_in=config.power_asset.denom,
            denom_out=config.base_asset.denom,
            amount_in=minted,
            min_out=min_amount_out(ctx, minted, pending.slippage),
        ),
        reply=ReplyTag.OPEN_SHORT_SWAP,
    )


def reply_open_short_swap(ctx: PowerContext, params: ActionParams, result: SubMessageResult) -> Response:
    pending = ctx.take_continuation(AwaitingSwapOut)
    ctx.finish_continuation()

    return (
        Response()
        .add_message(Transfer(pending.operator, ctx.config.base_asset.denom, result.amount_out))
        .add_event(
            EventKind.OPEN_SHORT,
            user=pending.operator,
            vault_id=pending.vault_id,
            power_sold=result.amount_in,
            base_received=result.amount_out,
        )
    )


# -- Close short -------------------------------------------------------------

def handle_close_short(ctx: PowerContext, params: ActionParams) -> Response:
    if params.amount == 0:
        return handle_burn(ctx, params)

    ctx.state.require_open_and_unpaused()
    vault_id = require_vault_id(params)
    _require_idle(ctx)
    config = ctx.config

    offered, overpaid = _close_short_funds(config, params.funds)
    withdraw_amount = params.withdraw_amount or 0
    ctx.vaults.check_can_burn(vault_id, params.sender, params.amount + overpaid, withdraw_amount)

    # overpaid power is already in our account; count it as part of the burn
    balance_before = ctx.ledger.balance_of(ctx.contract, config.power_asset.denom) - overpaid

    ctx.begin_continuation(AwaitingSwapIn(
        operator=params.sender,
        vault_id=vault_id,
        balance_before=balance_before,
        offered=offered,
        withdraw_amount=withdraw_amount,
    ))
    return Response().add_message(
        SwapExactOut(
            pool_id=config.power_pool.id,
            denom_in=config.base_asset.denom,
            denom_out=config.power_asset.denom,
            amount_out=params.amount,
            max_in=offered,
        ),
        reply=ReplyTag.CLOSE_SHORT_SWAP,
    )


def reply_close_short_swap(ctx: PowerContext, params: ActionParams, result: SubMessageResult) -> Response:
    pending = ctx.take_continuation(AwaitingSwapIn)
    ctx.finish_continuation()
    config = ctx.config

    burn_amount = ctx.ledger.balance_of(ctx.contract, config.power_asset.denom) - pending.balance_before
    response = burn_position(
        ctx, pending.operator, pending.vault_id, burn_amount, pending.withdraw_amount, params.now,
    )

    refund = pending.offered - result.amount_in
    if refund > 0:
        response.add_message(Transfer(pending.operator, config.base_asset.denom, refund))

    return response.add_event(
        EventKind.CLOSE_SHORT,
        user=pending.operator,
        vault_id=pending.vault_id,
        burnt=burn_amount,
        base_spent=result.amount_in,
        refund=max(refund, 0),
    )


# -- Flash liquidation -------------------------------------------------------

def handle_flash_liquidate(ctx: PowerContext, params: ActionParams) -> Response:
    """Liquidate with base asset only: buy the power to burn, then liquidate."""
    ctx.state.require_open_and_unpaused()
    vault_id = require_vault_id(params)
    vault = ctx.vaults.load(vault_id)
    _check_slippage(params.slippage)
    _require_idle(ctx)
    config = ctx.config

    offered = must_pay(params.funds, config.base_asset.denom)

    normalization_factor = apply_funding(ctx, params.now)
    if check_vault(ctx, vault_id, normalization_factor, params.now).is_solvent:
        raise StateError(SAFE_VAULT)

    preview = liquidation_results(ctx, vault.short_amount, vault, params.now)
    if preview.amount == 0:
        raise ValidationError(INVALID_LIQUIDATION)

    max_in = offered
    if params.slippage is not None:
        max_in = min(offered, max_amount_in(ctx, preview.amount, params.slippage))

    ctx.begin_continuation(FlashAwaitingSwapIn(
        liquidator=params.sender,
        vault_id=vault_id,
        balance_before=ctx.ledger.balance_of(ctx.contract, config.power_asset.denom),
        offered=offered,
        max_debt=preview.amount,
        min_payout=params.min_amount_to_pay,
    ))
    return Response().add_message(
        SwapExactOut(
            pool_id=config.power_pool.id,
            denom_in=config.base_asset.denom,
            denom_out=config.power_asset.denom,
            amount_out=preview.amount,
            max_in=max_in,
        ),
        reply=ReplyTag.FLASH_LIQUIDATE_SWAP,
    )


def reply_flash_liquidate_swap(ctx: PowerContext, params: ActionParams, result: SubMessageResult) -> Response:
    pending = ctx.take_continuation(FlashAwaitingSwapIn)
    ctx.finish_continuation()
    config = ctx.config

    bought = ctx.ledger.balance_of(ctx.contract, config.power_asset.denom) - pending.balance_before
    response = liquidate_vault(
        ctx,
        liquidator=pending.liquidator,
        burner=ctx.contract,
        vault_id=pending.vault_id,
        max_debt=min(bought, pending.max_debt),
        min_payout=pending.min_payout,
        now=params.now,
        event=EventKind.FLASH_LIQUIDATION,
    )

    refund = pending.offered - result.amount_in
    if refund > 0:
        response.add_message(Transfer(pending.liquidator, config.base_asset.denom, refund))
    return response
