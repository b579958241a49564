"""Position operations: mint, burn, deposit and withdraw.

Every handler applies funding first so the health check that follows sees
a fresh normalization factor. Mint, deposit and withdraw require the vault
to end solvent *and* above the minimum collateral; burn only requires
solvency, since reducing exposure cannot add risk.

Funds attached to an action have already been moved into the engine's
account when a handler runs; handlers only decide what they mean.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from .. import fixed_point as fp
from .errors import (
    FEE_NOT_COVERED,
    INVALID_FUNDS,
    NEW_VAULT_NEEDS_COLLATERAL,
    NON_PAYABLE,
    OPERATOR_MISMATCH,
    ZERO_MINT,
    AuthorizationError,
    InsufficientFundsError,
    ValidationError,
    vault_type_mismatch,
)
from .funding import add_funding_event, apply_funding
from .health import check_vault, require_healthy
from .pricing import debt_in_collateral
from .types import (
    DEFAULT_VAULT_TYPE,
    ActionParams,
    BurnTokens,
    Coin,
    Config,
    EventKind,
    MintTokens,
    ReplyTag,
    Response,
    Transfer,
    VaultType,
)

if TYPE_CHECKING:
    from .context import PowerContext


# -- Funds helpers -----------------------------------------------------------

def sent_collateral_and_vault_type(config: Config, funds: Sequence[Coin]) -> tuple[int, VaultType | None]:
    """Collateral attached to a mint and the vault type its denom implies."""
    if not funds:
        return 0, None
    if len(funds) > 1:
        raise ValidationError(INVALID_FUNDS)
    coin = funds[0]
    if config.stake_asset(coin.denom) is not None:
        return coin.amount, VaultType(staked_denom=coin.denom)
    if coin.denom == config.base_asset.denom:
        return coin.amount, DEFAULT_VAULT_TYPE
    raise ValidationError(INVALID_FUNDS)


def must_pay(funds: Sequence[Coin], denom: str) -> int:
    """Exactly one non-zero coin of *denom*."""
    if len(funds) != 1 or funds[0].denom != denom or funds[0].amount <= 0:
        raise ValidationError(INVALID_FUNDS)
    return funds[0].amount


def nonpayable(funds: Sequence[Coin]) -> None:
    if funds:
        raise ValidationError(NON_PAYABLE)


def require_vault_id(params: ActionParams) -> int:
    if params.vault_id is None:
        raise ValidationError(f"{params.action.value} requires a vault id")
    return params.vault_id


# -- Amount helpers ----------------------------------------------------------

def rebase_mint_amount(mint_amount: int, normalization_factor: int, base_decimals: int, rebase: bool) -> int:
    """Convert an index-denominated amount into raw power units (``amount / nf``)."""
    if not rebase:
        return mint_amount
    fixed_factor = fp.to_fixed(normalization_factor, base_decimals)
    if fixed_factor == 0:
        raise ValidationError("normalization factor too small to rebase")
    return mint_amount * 10**base_decimals // fixed_factor


def calculate_fee(
    ctx: PowerContext,
    operator: str,
    vault_id: int,
    vault_type: VaultType,
    power_amount: int,
    deposit_amount: int,
    now: int,
) -> tuple[int, int]:
    """Return ``(fee, deposit_after_fee)``, both fixed point in collateral terms.

    The deposit pays the fee when it is strictly larger; otherwise the fee
    is taken out of the collateral already in the vault and the deposit is
    credited in full. Raises InsufficientFundsError when the vault cannot
    cover it.
    """
    config = ctx.config
    if config.fee_rate == 0:
        return 0, deposit_amount

    fee = fp.mul(debt_in_collateral(ctx, power_amount, vault_type, now), config.fee_rate)
    if deposit_amount > fee:
        return fee, deposit_amount - fee

    decimals = config.collateral_asset(vault_type).decimals
    fee_amount = fp.to_fixed(fee, decimals)
    if fee_amount > ctx.vaults.load(vault_id).collateral:
        raise InsufficientFundsError(FEE_NOT_COVERED)
    ctx.vaults.subtract_collateral(vault_id, operator, fee_amount)
    return fee, deposit_amount


# -- Mint --------------------------------------------------------------------

def _resolve_vault(
    ctx: PowerContext, operator: str, vault_id: int | None, sent_type: VaultType | None,
) -> tuple[int, VaultType]:
    if vault_id is None:
        if sent_type is None:
            raise ValidationError(NEW_VAULT_NEEDS_COLLATERAL)
        return ctx.vaults.create(operator, sent_type), sent_type

    vault = ctx.vaults.load(vault_id)
    if vault.operator != operator:
        raise AuthorizationError(OPERATOR_MISMATCH)
    if sent_type is not None and sent_type != vault.vault_type:
        raise ValidationError(vault_type_mismatch(vault.vault_type, sent_type, vault_id))
    return vault_id, vault.vault_type


def mint(ctx: PowerContext, params: ActionParams, *, should_sell: bool = False) -> tuple[Response, int]:
    """Mint power against a vault, creating one when no id is given.

    With *should_sell* the minted tokens stay in the engine's account and the
    mint is scheduled with an ``OPEN_SHORT_MINT`` reply.

    Returns the response and the id of the vault that was credited.
    """
    ctx.state.require_open_and_unpaused()
    config = ctx.config
    operator = params.sender
    if params.amount <= 0:
        raise ValidationError(ZERO_MINT)

    collateral_sent, sent_type = sent_collateral_and_vault_type(config, params.funds)
    normalization_factor = apply_funding(ctx, params.now)
    mint_amount = rebase_mint_amount(
        params.amount, normalization_factor, config.base_asset.decimals, params.rebase,
    )

    vault_id, vault_type = _resolve_vault(ctx, operator, params.vault_id, sent_type)
    asset = config.collateral_asset(vault_type)

    fee, deposit_after_fee = calculate_fee(
        ctx,
        operator,
        vault_id,
        vault_type,
        fp.from_atomics(mint_amount, config.power_asset.decimals),
        fp.from_atomics(collateral_sent, asset.decimals),
        params.now,
    )

    ctx.vaults.update(vault_id, operator, fp.to_fixed(deposit_after_fee, asset.decimals), mint_amount)
    require_healthy(check_vault(ctx, vault_id, normalization_factor, params.now))

    response = Response()
    if mint_amount:
        if should_sell:
            response.add_message(
                MintTokens(config.power_asset.denom, mint_amount, ctx.contract),
                reply=ReplyTag.OPEN_SHORT_MINT,
            )
        else:
            response.add_message(MintTokens(config.power_asset.denom, mint_amount, operator))

    fixed_fee = fp.to_fixed(fee, asset.decimals)
    if fixed_fee:
        response.add_message(Transfer(config.fee_pool, asset.denom, fixed_fee))

    response.add_event(
        EventKind.MINT,
        user=operator,
        collateral_deposited=collateral_sent,
        mint_amount=mint_amount,
        fee_amount=fixed_fee,
        vault_id=vault_id,
        vault_type=vault_type,
    )
    add_funding_event(response, normalization_factor)
    return response, vault_id


def handle_mint(ctx: PowerContext, params: ActionParams) -> Response:
    response, _ = mint(ctx, params)
    return response


# -- Burn --------------------------------------------------------------------

def burn_position(
    ctx: PowerContext,
    operator: str,
    vault_id: int,
    burn_amount: int,
    withdraw_amount: int,
    now: int,
) -> Response:
    """Burn power held by the engine against a vault and release collateral.

    Shared by the plain burn and the close-short settlement.
    """
    ctx.state.require_open_and_unpaused()
    config = ctx.config
    normalization_factor = apply_funding(ctx, now)

    vault = ctx.vaults.burn(vault_id, operator, withdraw_amount, burn_amount)
    require_healthy(check_vault(ctx, vault_id, normalization_factor, now), check_min_collateral=False)

    response = Response().add_message(BurnTokens(config.power_asset.denom, burn_amount, ctx.contract))
    if withdraw_amount:
        asset = config.collateral_asset(vault.vault_type)
        response.add_message(Transfer(operator, asset.denom, withdraw_amount))

    response.add_event(
        EventKind.BURN,
        user=operator,
        burnt=burn_amount,
        withdrawn=withdraw_amount,
        vault_id=vault_id,
        vault_type=vault.vault_type,
    )
    return add_funding_event(response, normalization_factor)


def handle_burn(ctx: PowerContext, params: ActionParams) -> Response:
    ctx.state.require_open_and_unpaused()
    vault_id = require_vault_id(params)
    ctx.vaults.load(vault_id)
    burn_amount = must_pay(params.funds, ctx.config.power_asset.denom)
    return burn_position(ctx, params.sender, vault_id, burn_amount, params.withdraw_amount or 0, params.now)


# -- Deposit / withdraw ------------------------------------------------------

def handle_deposit(ctx: PowerContext, params: ActionParams) -> Response:
    ctx.state.require_open_and_unpaused()
    vault_id = require_vault_id(params)
    vault = ctx.vaults.load(vault_id)
    asset = ctx.config.collateral_asset(vault.vault_type)
    amount = must_pay(params.funds, asset.denom)

    normalization_factor = apply_funding(ctx, params.now)
    ctx.vaults.add_collateral(vault_id, params.sender, amount)
    require_healthy(check_vault(ctx, vault_id, normalization_factor, params.now))

    response = Response().add_event(
        EventKind.DEPOSIT, collateral_deposited=amount, vault_id=vault_id,
    )
    return add_funding_event(response, normalization_factor)


def handle_withdraw(ctx: PowerContext, params: ActionParams) -> Response:
    ctx.state.require_open_and_unpaused()
    vault_id = require_vault_id(params)
    vault = ctx.vaults.load(vault_id)
    nonpayable(params.funds)

    normalization_factor = apply_funding(ctx, params.now)
    ctx.vaults.subtract_collateral(vault_id, params.sender, params.amount)
    require_healthy(check_vault(ctx, vault_id, normalization_factor, params.now))

    asset = ctx.config.collateral_asset(vault.vault_type)
    response = (
        Response()
        .add_message(Transfer(params.sender, asset.denom, params.amount))
        .add_event(EventKind.WITHDRAW, collateral_withdrawn=params.amount, vault_id=vault_id)
    )
    return add_funding_event(response, normalization_factor)
