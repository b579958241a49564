"""Dispatch-table engine for the power perpetual.

``step(ctx, params)`` is the single entry point. It:

1. Validates parameter domains.
2. Moves attached funds from the sender into the engine's account.
3. Dispatches to the action handler.
4. Executes the handler's messages depth-first against the ledger and the
   swap venue; a message carrying a reply tag resumes its continuation
   handler as soon as it settles, and that handler's messages run next.
5. Checks invariants on the final context.
6. Returns a ``StepResult`` (accepted with events, or rejected with reason).

Any failure restores the context and every journaled collaborator to the
checkpoint taken before step 2, so a rejected step has no side effects.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from ...state.balances import InsufficientBalanceError
from .admin import (
    handle_claim_ownership,
    handle_pause,
    handle_propose_new_owner,
    handle_reject_owner_proposal,
    handle_set_open,
    handle_unpause,
    handle_update_config,
)
from .context import Journaled, PowerContext
from .continuation import (
    handle_close_short,
    handle_flash_liquidate,
    handle_open_short,
    reply_close_short_swap,
    reply_flash_liquidate_swap,
    reply_open_short_mint,
    reply_open_short_swap,
)
from .errors import ExternalCallError, InsufficientFundsError, PowerError, StateError, ValidationError
from .funding import handle_apply_funding
from .liquidation import handle_liquidate
from .operations import handle_burn, handle_deposit, handle_mint, handle_withdraw
from .types import (
    Action,
    ActionParams,
    BurnTokens,
    Event,
    Message,
    MintTokens,
    ReplyTag,
    Response,
    StepResult,
    SubMessageResult,
    SwapExactIn,
    SwapExactOut,
    Transfer,
)
from .vaults import handle_remove_empty_vaults

logger = logging.getLogger(__name__)

Handler = Callable[[PowerContext, ActionParams], Response]
ReplyHandler = Callable[[PowerContext, ActionParams, SubMessageResult], Response]

_DISPATCH: dict[Action, Handler] = {
    Action.SET_OPEN: handle_set_open,
    Action.UPDATE_CONFIG: handle_update_config,
    Action.PAUSE: handle_pause,
    Action.UNPAUSE: handle_unpause,
    Action.MINT: handle_mint,
    Action.BURN: handle_burn,
    Action.OPEN_SHORT: handle_open_short,
    Action.CLOSE_SHORT: handle_close_short,
    Action.DEPOSIT: handle_deposit,
    Action.WITHDRAW: handle_withdraw,
    Action.LIQUIDATE: handle_liquidate,
    Action.FLASH_LIQUIDATE: handle_flash_liquidate,
    Action.APPLY_FUNDING: handle_apply_funding,
    Action.REMOVE_EMPTY_VAULTS: handle_remove_empty_vaults,
    Action.PROPOSE_NEW_OWNER: handle_propose_new_owner,
    Action.REJECT_OWNER_PROPOSAL: handle_reject_owner_proposal,
    Action.CLAIM_OWNERSHIP: handle_claim_ownership,
}

_REPLY_DISPATCH: dict[ReplyTag, ReplyHandler] = {
    ReplyTag.OPEN_SHORT_MINT: reply_open_short_mint,
    ReplyTag.OPEN_SHORT_SWAP: reply_open_short_swap,
    ReplyTag.CLOSE_SHORT_SWAP: reply_close_short_swap,
    ReplyTag.FLASH_LIQUIDATE_SWAP: reply_flash_liquidate_swap,
}

# -- Parameter domain bounds -------------------------------------------------

MAX_PARAM_AMOUNT: int = 2**128 - 1  # token amounts are u128 on the ledger

# Per-action bounds: list of (field_name, min_val, max_val). ``None`` values
# (optional parameters left unset) are not checked.
_PARAM_BOUNDS: dict[Action, list[tuple[str, int, int]]] = {
    Action.MINT: [("amount", 0, MAX_PARAM_AMOUNT), ("vault_id", 1, MAX_PARAM_AMOUNT)],
    Action.BURN: [("vault_id", 1, MAX_PARAM_AMOUNT), ("withdraw_amount", 0, MAX_PARAM_AMOUNT)],
    Action.OPEN_SHORT: [
        ("amount", 0, MAX_PARAM_AMOUNT),
        ("vault_id", 1, MAX_PARAM_AMOUNT),
        ("slippage", 0, MAX_PARAM_AMOUNT),
    ],
    Action.CLOSE_SHORT: [
        ("amount", 0, MAX_PARAM_AMOUNT),
        ("vault_id", 1, MAX_PARAM_AMOUNT),
        ("withdraw_amount", 0, MAX_PARAM_AMOUNT),
    ],
    Action.DEPOSIT: [("vault_id", 1, MAX_PARAM_AMOUNT)],
    Action.WITHDRAW: [("amount", 1, MAX_PARAM_AMOUNT), ("vault_id", 1, MAX_PARAM_AMOUNT)],
    Action.LIQUIDATE: [
        ("amount", 1, MAX_PARAM_AMOUNT),
        ("vault_id", 1, MAX_PARAM_AMOUNT),
        ("min_amount_to_pay", 0, MAX_PARAM_AMOUNT),
    ],
    Action.FLASH_LIQUIDATE: [
        ("vault_id", 1, MAX_PARAM_AMOUNT),
        ("slippage", 0, MAX_PARAM_AMOUNT),
        ("min_amount_to_pay", 0, MAX_PARAM_AMOUNT),
    ],
    Action.REMOVE_EMPTY_VAULTS: [("start_after", 0, MAX_PARAM_AMOUNT), ("limit", 1, MAX_PARAM_AMOUNT)],
    Action.UPDATE_CONFIG: [("fee_rate", 0, MAX_PARAM_AMOUNT)],
    Action.PROPOSE_NEW_OWNER: [("duration", 0, MAX_PARAM_AMOUNT)],
}


def _validate_params(params: ActionParams) -> str | None:
    """Check parameter domain bounds. Returns rejection reason or None."""
    denoms: set[str] = set()
    for coin in params.funds:
        if coin.amount <= 0 or coin.amount > MAX_PARAM_AMOUNT or coin.denom in denoms:
            return "param_domain:funds"
        denoms.add(coin.denom)

    for field, lo, hi in _PARAM_BOUNDS.get(params.action, []):
        val = getattr(params, field)
        if val is None:
            continue
        if val < lo or val > hi:
            return f"param_domain:{field}"
    return None


# -- Collaborator calls ------------------------------------------------------

def _external(what: str, fn: Callable[..., Any], *args: Any) -> Any:
    """Call a collaborator, translating its failures into engine errors."""
    try:
        return fn(*args)
    except InsufficientBalanceError as exc:
        raise InsufficientFundsError(str(exc)) from exc
    except (LookupError, ValueError) as exc:
        raise ExternalCallError(f"{what} failed: {exc}") from exc


def _execute_message(ctx: PowerContext, msg: Message) -> SubMessageResult:
    if isinstance(msg, MintTokens):
        _external("mint", ctx.ledger.mint, msg.denom, msg.recipient, msg.amount)
        return SubMessageResult(amount_out=msg.amount)
    if isinstance(msg, BurnTokens):
        _external("burn", ctx.ledger.burn, msg.denom, msg.holder, msg.amount)
        return SubMessageResult(amount_in=msg.amount)
    if isinstance(msg, Transfer):
        _external("transfer", ctx.ledger.transfer, msg.denom, ctx.contract, msg.recipient, msg.amount)
        return SubMessageResult(amount_out=msg.amount)
    if isinstance(msg, SwapExactIn):
        amount_out = _external(
            "swap_exact_in", ctx.venue.swap_exact_in,
            ctx.contract, msg.pool_id, msg.denom_in, msg.denom_out, msg.amount_in, msg.min_out,
        )
        return SubMessageResult(amount_in=msg.amount_in, amount_out=amount_out)
    if isinstance(msg, SwapExactOut):
        amount_in = _external(
            "swap_exact_out", ctx.venue.swap_exact_out,
            ctx.contract, msg.pool_id, msg.denom_in, msg.denom_out, msg.amount_out, msg.max_in,
        )
        return SubMessageResult(amount_in=amount_in, amount_out=msg.amount_out)
    raise TypeError(f"unknown message type: {type(msg).__name__}")


def _run(ctx: PowerContext, params: ActionParams, response: Response) -> list[Event]:
    """Execute *response*'s messages depth-first; return all emitted events."""
    events = list(response.events)
    for sub in response.messages:
        result = _execute_message(ctx, sub.msg)
        if sub.reply is not None:
            follow_up = _REPLY_DISPATCH[sub.reply](ctx, params, result)
            events.extend(_run(ctx, params, follow_up))
    return events


def _collect_funds(ctx: PowerContext, params: ActionParams) -> None:
    for coin in params.funds:
        _external("funds transfer", ctx.ledger.transfer, coin.denom, params.sender, ctx.contract, coin.amount)


# -- Invariants --------------------------------------------------------------

def check_invariants(ctx: PowerContext) -> list[str]:
    """Names of invariants violated by *ctx* at the end of a top-level step."""
    violations: list[str] = []
    if ctx.pending is not None:
        violations.append("continuation_resolved")
    for vault in ctx.vaults:
        if vault.collateral < 0 or vault.short_amount < 0:
            violations.append(f"vault_non_negative:{vault.id}")
    if ctx.state.normalization_factor <= 0:
        violations.append("normalization_factor_positive")
    return violations


# -- Checkpoints -------------------------------------------------------------

def _journaled(ctx: PowerContext) -> list[Journaled]:
    seen: list[Journaled] = []
    for collaborator in (ctx.ledger, ctx.venue, ctx.oracle):
        if isinstance(collaborator, Journaled) and not any(c is collaborator for c in seen):
            seen.append(collaborator)
    return seen


def _checkpoint(ctx: PowerContext) -> tuple[Any, list[tuple[Journaled, Any]]]:
    return ctx.snapshot(), [(c, c.snapshot()) for c in _journaled(ctx)]


def _rollback(ctx: PowerContext, checkpoint: tuple[Any, list[tuple[Journaled, Any]]]) -> None:
    ctx_snapshot, collaborators = checkpoint
    ctx.restore(ctx_snapshot)
    for collaborator, snap in collaborators:
        collaborator.restore(snap)


# -- Entry points ------------------------------------------------------------

def _rejected(params: ActionParams, exc: PowerError) -> StepResult:
    logger.info("%s by %s rejected (%s): %s", params.action.value, params.sender, exc.kind.value, exc.message)
    return StepResult(accepted=False, rejection=exc.message, error=exc)


def step(ctx: PowerContext, params: ActionParams) -> StepResult:
    """Execute one action against *ctx*.

    Returns ``StepResult`` with ``accepted=True`` and the emitted events on
    success, or ``accepted=False`` with a ``rejection`` reason and the
    ``PowerError`` that caused it. Unexpected exceptions are re-raised after
    the rollback.
    """
    handler = _DISPATCH.get(params.action)
    if handler is None:
        return _rejected(params, ValidationError(f"unknown_action:{params.action}"))

    domain_err = _validate_params(params)
    if domain_err is not None:
        return _rejected(params, ValidationError(domain_err))

    checkpoint = _checkpoint(ctx)
    try:
        _collect_funds(ctx, params)
        events = _run(ctx, params, handler(ctx, params))
        violations = check_invariants(ctx)
        if violations:
            raise StateError(f"invariant:{','.join(violations)}")
    except PowerError as exc:
        _rollback(ctx, checkpoint)
        return _rejected(params, exc)
    except Exception:
        _rollback(ctx, checkpoint)
        raise

    logger.debug("%s by %s accepted with %d events", params.action.value, params.sender, len(events))
    return StepResult(accepted=True, events=tuple(events))


def step_or_raise(ctx: PowerContext, params: ActionParams) -> StepResult:
    """Like ``step()`` but raises the rejecting ``PowerError`` instead of returning it."""
    result = step(ctx, params)
    if not result.accepted and result.error is not None:
        raise result.error
    return result
