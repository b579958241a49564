"""Read-only views over the engine. Nothing here mutates the context."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import fixed_point as fp
from .errors import PROPOSAL_NOT_FOUND, StateError
from .funding import calculate_denormalized_mark, calculate_index, calculate_normalization_factor
from .health import check_vault
from .liquidation import liquidation_results
from .pricing import unscaled_quote_price
from .types import Config, GlobalState, LiquidationPreview, OwnershipProposal, Vault, VaultStatus

if TYPE_CHECKING:
    from .context import PowerContext

DEFAULT_LIMIT: int = 10
MAX_LIMIT: int = 50


def query_config(ctx: PowerContext) -> Config:
    return ctx.config


def query_state(ctx: PowerContext) -> GlobalState:
    return ctx.state


def query_owner(ctx: PowerContext) -> str:
    return ctx.owner


def get_normalization_factor(ctx: PowerContext, now: int) -> int:
    """Factor as of *now*, including funding accrued since the last update."""
    return calculate_normalization_factor(ctx, now)


def get_index(ctx: PowerContext, now: int, period: int) -> int:
    return calculate_index(ctx, now - period)


def get_unscaled_index(ctx: PowerContext, now: int, period: int) -> int:
    quote = unscaled_quote_price(ctx, now - period)
    return fp.mul(quote, quote)


def get_denormalized_mark(ctx: PowerContext, now: int, period: int) -> int:
    return calculate_denormalized_mark(ctx, now - period, calculate_normalization_factor(ctx, now))


def get_denormalized_mark_for_funding(ctx: PowerContext, now: int, period: int) -> int:
    """Mark using the stored factor, as funding itself sees it."""
    return calculate_denormalized_mark(ctx, now - period, ctx.state.normalization_factor)


def get_vault(ctx: PowerContext, vault_id: int) -> Vault:
    return ctx.vaults.load(vault_id)


def get_user_vaults(
    ctx: PowerContext, user: str, start_after: int | None = None, limit: int | None = None,
) -> list[int]:
    """Ids of *user*'s vaults, ascending, paginated (default 10, max 50)."""
    limit = min(DEFAULT_LIMIT if limit is None else limit, MAX_LIMIT)
    return [v.id for v in ctx.vaults.by_operator(user, start_after, limit)]


def get_next_vault_id(ctx: PowerContext) -> int:
    return ctx.vaults.next_id


def get_check_vault(ctx: PowerContext, vault_id: int, now: int) -> VaultStatus:
    return check_vault(ctx, vault_id, calculate_normalization_factor(ctx, now), now)


def get_liquidation_amount(
    ctx: PowerContext, vault_id: int, now: int, max_debt: int | None = None,
) -> LiquidationPreview:
    """What liquidating *vault_id* would burn and pay right now (safe or not)."""
    vault = ctx.vaults.load(vault_id)
    return liquidation_results(ctx, vault.short_amount if max_debt is None else max_debt, vault, now)


def get_ownership_proposal(ctx: PowerContext) -> OwnershipProposal:
    if ctx.proposal is None:
        raise StateError(PROPOSAL_NOT_FOUND)
    return ctx.proposal
