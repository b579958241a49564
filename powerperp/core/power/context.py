"""Execution context for the power perpetual engine.

``PowerContext`` is the explicit replacement for process-wide singletons:
config, global state, the vault store, the single pending-continuation slot
and the ownership proposal all live here and are threaded through every
handler. External collaborators are reached only through the narrow
protocols below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar, runtime_checkable

from .config import validate_config
from .errors import CONTINUATION_IN_FLIGHT, StateError
from .types import Config, ContinuationState, GlobalState, OwnershipProposal
from .vaults import VaultStore


# -- Collaborators -----------------------------------------------------------

class PriceOracle(Protocol):
    def twap(self, pool_id: int, base_denom: str, quote_denom: str, start_time: int) -> int:
        """Arithmetic TWAP of *base_denom* in *quote_denom* from *start_time* to now (fixed point)."""
        ...


class TokenLedger(Protocol):
    def mint(self, denom: str, recipient: str, amount: int) -> None: ...

    def burn(self, denom: str, holder: str, amount: int) -> None: ...

    def transfer(self, denom: str, sender: str, recipient: str, amount: int) -> None: ...

    def balance_of(self, account: str, denom: str) -> int: ...

    def total_supply(self, denom: str) -> int: ...

    def admin_of(self, denom: str) -> str | None: ...


class SwapVenue(Protocol):
    def swap_exact_in(
        self, sender: str, pool_id: int, denom_in: str, denom_out: str, amount_in: int, min_out: int,
    ) -> int: ...

    def swap_exact_out(
        self, sender: str, pool_id: int, denom_in: str, denom_out: str, amount_out: int, max_in: int,
    ) -> int: ...

    def spot_price(self, pool_id: int, base_denom: str, quote_denom: str) -> int:
        """Whole units of *quote_denom* per whole unit of *base_denom* (fixed point)."""
        ...


@runtime_checkable
class Journaled(Protocol):
    """Collaborator whose state the engine can roll back after a failed step."""

    def snapshot(self) -> Any: ...

    def restore(self, snapshot: Any) -> None: ...


# -- Context -----------------------------------------------------------------

_C = TypeVar("_C")


@dataclass(frozen=True)
class ContextSnapshot:
    config: Config
    state: GlobalState
    owner: str
    pending: ContinuationState | None
    proposal: OwnershipProposal | None
    vaults: Any


@dataclass
class PowerContext:
    config: Config
    state: GlobalState
    owner: str
    contract: str
    oracle: PriceOracle
    ledger: TokenLedger
    venue: SwapVenue
    vaults: VaultStore = field(default_factory=VaultStore)
    pending: ContinuationState | None = None
    proposal: OwnershipProposal | None = None

    def is_admin(self, account: str) -> bool:
        return account == self.owner

    # -- Continuation slot ---------------------------------------------------

    def begin_continuation(self, continuation: ContinuationState) -> None:
        """Occupy the pending slot. Only one continuation may be in flight."""
        if self.pending is not None:
            raise StateError(CONTINUATION_IN_FLIGHT)
        self.pending = continuation

    def advance_continuation(self, continuation: ContinuationState) -> None:
        """Replace the in-flight continuation with its next state."""
        self.pending = continuation

    def take_continuation(self, expected: type[_C]) -> _C:
        """Return the in-flight continuation, which must be of type *expected*.

        Does not clear the slot; callers finishing the operation call
        ``finish_continuation``.
        """
        pending = self.pending
        if not isinstance(pending, expected):
            raise StateError(
                f"unexpected continuation: expected {expected.__name__}, "
                f"found {type(pending).__name__}"
            )
        return pending

    def finish_continuation(self) -> None:
        self.pending = None

    # -- Rollback ------------------------------------------------------------

    def snapshot(self) -> ContextSnapshot:
        return ContextSnapshot(
            config=self.config,
            state=self.state,
            owner=self.owner,
            pending=self.pending,
            proposal=self.proposal,
            vaults=self.vaults.snapshot(),
        )

    def restore(self, snap: ContextSnapshot) -> None:
        self.config = snap.config
        self.state = snap.state
        self.owner = snap.owner
        self.pending = snap.pending
        self.proposal = snap.proposal
        self.vaults.restore(snap.vaults)


def new_context(
    config: Config,
    *,
    owner: str,
    contract: str,
    oracle: PriceOracle,
    ledger: TokenLedger,
    venue: SwapVenue,
    now: int,
) -> PowerContext:
    """Freshly initialized engine: closed, paused, normalization factor 1."""
    validate_config(config)
    return PowerContext(
        config=config,
        state=GlobalState(is_open=False, is_paused=True, last_pause=now, last_funding_update=now),
        owner=owner,
        contract=contract,
        oracle=oracle,
        ledger=ledger,
        venue=venue,
    )
