"""Funding: normalization factor updates from index and mark TWAPs.

    index = quote^2
    mark  = quote * power / nf, clamped to [0.8 * index, 1.4 * index]
    nf'   = (index / mark) ** (elapsed / funding_period) * nf

``elapsed`` is capped at 48 hours; when capped, the TWAP window starts 48
hours before ``now`` instead of at the last update. Funding never rejects:
degenerate inputs leave the factor unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from .. import fixed_point as fp
from .pricing import power_price, quote_price
from .types import ActionParams, EventKind, Response

if TYPE_CHECKING:
    from .context import PowerContext

logger = logging.getLogger(__name__)

MAX_TWAP_PERIOD: int = 48 * 60 * 60  # pools must carry a TWAP this far back
MARK_LOWER_BOUND: int = fp.percent(80)
MARK_UPPER_BOUND: int = fp.percent(140)


def calculate_index(ctx: PowerContext, start_time: int) -> int:
    quote = quote_price(ctx, start_time)
    return fp.mul(quote, quote)


def calculate_denormalized_mark(ctx: PowerContext, start_time: int, normalization_factor: int) -> int:
    return fp.div(
        fp.mul(quote_price(ctx, start_time), power_price(ctx, start_time)),
        normalization_factor,
    )


def clamp_mark(mark: int, index: int) -> int:
    lower = fp.mul(index, MARK_LOWER_BOUND)
    upper = fp.mul(index, MARK_UPPER_BOUND)
    if mark < lower:
        return lower
    if mark > upper:
        return upper
    return mark


def calculate_normalization_factor(ctx: PowerContext, now: int) -> int:
    """Factor that ``apply_funding`` would persist at *now*. Pure."""
    state = ctx.state
    if now <= state.last_funding_update:
        return state.normalization_factor

    elapsed = min(now - state.last_funding_update, MAX_TWAP_PERIOD)
    if elapsed < MAX_TWAP_PERIOD:
        start_time = state.last_funding_update
    else:
        start_time = now - MAX_TWAP_PERIOD

    index = calculate_index(ctx, start_time)
    mark = clamp_mark(calculate_denormalized_mark(ctx, start_time, state.normalization_factor), index)
    if mark == 0:
        return state.normalization_factor

    r_funding = fp.from_ratio(elapsed, ctx.config.funding_period)
    multiplier = fp.dec_pow(fp.div(index, mark), r_funding)
    return fp.mul(multiplier, state.normalization_factor)


def apply_funding(ctx: PowerContext, now: int) -> int:
    """Update and persist the normalization factor; at most once per timestamp."""
    if now <= ctx.state.last_funding_update:
        return ctx.state.normalization_factor

    factor = calculate_normalization_factor(ctx, now)
    ctx.state = replace(ctx.state, normalization_factor=factor, last_funding_update=now)
    logger.debug("funding applied at %d: normalization factor %s", now, fp.to_str(factor))
    return factor


def add_funding_event(response: Response, normalization_factor: int) -> Response:
    return response.add_event(EventKind.APPLY_FUNDING, funding_rate=fp.to_str(normalization_factor))


def handle_apply_funding(ctx: PowerContext, params: ActionParams) -> Response:
    return add_funding_event(Response(), apply_funding(ctx, params.now))
