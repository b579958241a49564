"""Admin-gated lifecycle operations and the two-step ownership handshake."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from .. import fixed_point as fp
from .config import with_updates
from .errors import (
    ALREADY_OPEN,
    NOT_OPEN,
    NOT_TOKEN_ADMIN,
    PROPOSAL_EXPIRED,
    PROPOSAL_NOT_FOUND,
    SAME_OWNER,
    UNAUTHORIZED,
    UNPAUSE_NOT_EXPIRED,
    AuthorizationError,
    StateError,
    ValidationError,
    invalid_duration,
)
from .types import ActionParams, EventKind, OwnershipProposal, Response

if TYPE_CHECKING:
    from .context import PowerContext

logger = logging.getLogger(__name__)

WEEK_IN_SECONDS: int = 7 * 24 * 60 * 60
MAX_PROPOSAL_DURATION: int = WEEK_IN_SECONDS


def require_admin(ctx: PowerContext, sender: str) -> None:
    if not ctx.is_admin(sender):
        raise AuthorizationError(UNAUTHORIZED)


# -- Lifecycle ---------------------------------------------------------------

def handle_set_open(ctx: PowerContext, params: ActionParams) -> Response:
    """One-time activation. The engine must already control power token minting."""
    require_admin(ctx, params.sender)
    if ctx.state.is_open:
        raise StateError(ALREADY_OPEN)
    if ctx.ledger.admin_of(ctx.config.power_asset.denom) != ctx.contract:
        raise AuthorizationError(NOT_TOKEN_ADMIN)

    ctx.state = replace(ctx.state, is_open=True, is_paused=False)
    logger.info("power engine opened at %d", params.now)
    return Response().add_event(EventKind.OPEN_CONTRACT)


def handle_update_config(ctx: PowerContext, params: ActionParams) -> Response:
    require_admin(ctx, params.sender)
    ctx.config = with_updates(ctx.config, fee_rate=params.fee_rate, fee_pool=params.fee_pool)

    attrs: dict[str, object] = {}
    if params.fee_rate is not None:
        attrs["fee_rate"] = fp.to_str(params.fee_rate)
    if params.fee_pool is not None:
        attrs["fee_pool"] = params.fee_pool
    logger.info("config updated: %s", attrs)
    return Response().add_event(EventKind.UPDATE_CONFIG, **attrs)


def handle_pause(ctx: PowerContext, params: ActionParams) -> Response:
    require_admin(ctx, params.sender)
    ctx.state.require_open_and_unpaused()

    ctx.state = replace(ctx.state, is_paused=True, last_pause=params.now)
    logger.info("power engine paused at %d", params.now)
    return Response().add_event(EventKind.PAUSE, is_paused=True, last_pause=params.now)


def handle_unpause(ctx: PowerContext, params: ActionParams) -> Response:
    """Admin may unpause at once; anyone else after a week."""
    if not ctx.state.is_open:
        raise StateError(NOT_OPEN)

    unpause_time = ctx.state.last_pause
    if not ctx.is_admin(params.sender):
        unpause_time += WEEK_IN_SECONDS
    if params.now < unpause_time:
        raise StateError(UNPAUSE_NOT_EXPIRED)

    ctx.state = replace(ctx.state, is_paused=False)
    logger.info("power engine unpaused at %d by %s", params.now, params.sender)
    return Response().add_event(EventKind.UNPAUSE, is_paused=False, last_pause=ctx.state.last_pause)


# -- Ownership ---------------------------------------------------------------

def handle_propose_new_owner(ctx: PowerContext, params: ActionParams) -> Response:
    require_admin(ctx, params.sender)
    candidate = params.new_owner
    if not candidate:
        raise ValidationError("proposed owner is required")
    if ctx.is_admin(candidate):
        raise ValidationError(SAME_OWNER)
    if params.duration > MAX_PROPOSAL_DURATION:
        raise ValidationError(invalid_duration(MAX_PROPOSAL_DURATION))

    expiry = params.now + params.duration
    ctx.proposal = OwnershipProposal(owner=candidate, expiry=expiry)
    return Response().add_event(EventKind.PROPOSE_OWNER, proposed_owner=candidate, expiry=expiry)


def handle_reject_owner_proposal(ctx: PowerContext, params: ActionParams) -> Response:
    require_admin(ctx, params.sender)
    ctx.proposal = None
    return Response().add_event(EventKind.REJECT_OWNERSHIP)


def handle_claim_ownership(ctx: PowerContext, params: ActionParams) -> Response:
    proposal = ctx.proposal
    if proposal is None:
        raise StateError(PROPOSAL_NOT_FOUND)
    if proposal.owner != params.sender:
        raise AuthorizationError(UNAUTHORIZED)
    if params.now > proposal.expiry:
        raise StateError(PROPOSAL_EXPIRED)

    ctx.owner = proposal.owner
    ctx.proposal = None
    logger.info("ownership transferred to %s", ctx.owner)
    return Response().add_event(EventKind.UPDATE_OWNER, new_owner=ctx.owner)
