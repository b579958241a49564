"""Data types for the power perpetual engine.

Value types are frozen dataclasses; updates go through
``dataclasses.replace``. ``Response`` is the one mutable builder: handlers
append messages and events to it before returning.

Units/conventions:
- Fractional values (prices, rates, normalization factor, slippage) are
  18-decimal fixed point ints, see ``powerperp.core.fixed_point``.
- Token amounts (``collateral``, ``short_amount``, coin amounts) are raw
  integer units of their denom.
- Times are integer seconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Union

from ..fixed_point import ONE
from .errors import NOT_OPEN, PAUSED, StateError


@unique
class Action(Enum):
    """One member per executable operation."""
    SET_OPEN = "set_open"
    UPDATE_CONFIG = "update_config"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    MINT = "mint"
    BURN = "burn"
    OPEN_SHORT = "open_short"
    CLOSE_SHORT = "close_short"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    LIQUIDATE = "liquidate"
    FLASH_LIQUIDATE = "flash_liquidate"
    APPLY_FUNDING = "apply_funding"
    REMOVE_EMPTY_VAULTS = "remove_empty_vaults"
    PROPOSE_NEW_OWNER = "propose_new_owner"
    REJECT_OWNER_PROPOSAL = "reject_owner_proposal"
    CLAIM_OWNERSHIP = "claim_ownership"


@unique
class EventKind(Enum):
    OPEN_CONTRACT = "open_contract"
    UPDATE_CONFIG = "update_config"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    MINT = "mint"
    BURN = "burn"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    LIQUIDATION = "liquidation"
    FLASH_LIQUIDATION = "flash_liquidation"
    OPEN_SHORT = "open_short"
    CLOSE_SHORT = "close_short"
    APPLY_FUNDING = "apply_funding"
    REMOVE_EMPTY_VAULTS = "remove_empty_vaults"
    PROPOSE_OWNER = "propose_proposed_owner"
    REJECT_OWNERSHIP = "reject_ownership"
    UPDATE_OWNER = "update_owner"


@unique
class ReplyTag(Enum):
    """Continuation point to resume once a scheduled message settles."""
    OPEN_SHORT_MINT = "open_short_mint"
    OPEN_SHORT_SWAP = "open_short_swap"
    CLOSE_SHORT_SWAP = "close_short_swap"
    FLASH_LIQUIDATE_SWAP = "flash_liquidate_swap"


# -- Config ------------------------------------------------------------------

@dataclass(frozen=True)
class Asset:
    denom: str
    decimals: int


@dataclass(frozen=True)
class Pool:
    id: int
    base_denom: str
    quote_denom: str


@dataclass(frozen=True)
class StakeAsset:
    """Alternative collateral, priced in base asset through its own pool."""
    denom: str
    decimals: int
    pool: Pool


@dataclass(frozen=True)
class VaultType:
    """``VaultType()`` is the default (base asset) type; otherwise staked."""
    staked_denom: str | None = None

    @property
    def is_default(self) -> bool:
        return self.staked_denom is None

    def __str__(self) -> str:
        return "default" if self.staked_denom is None else f"staked-{self.staked_denom}"


DEFAULT_VAULT_TYPE = VaultType()


@dataclass(frozen=True)
class Config:
    """Protocol parameters. Validated by ``config.validate_config``."""

    fee_pool: str
    fee_rate: int
    base_asset: Asset
    power_asset: Asset
    base_pool: Pool
    power_pool: Pool
    funding_period: int
    index_scale: int
    min_collateral: int
    stake_assets: tuple[StakeAsset, ...] = ()

    @property
    def is_stake_enabled(self) -> bool:
        return bool(self.stake_assets)

    def stake_asset(self, denom: str) -> StakeAsset | None:
        for asset in self.stake_assets:
            if asset.denom == denom:
                return asset
        return None

    def collateral_asset(self, vault_type: VaultType) -> Asset:
        """Asset a vault of *vault_type* holds as collateral."""
        if vault_type.is_default:
            return self.base_asset
        stake = self.stake_asset(vault_type.staked_denom or "")
        if stake is None:
            raise StateError(f"Staked asset not found: {vault_type.staked_denom}")
        return Asset(denom=stake.denom, decimals=stake.decimals)


# -- State -------------------------------------------------------------------

@dataclass(frozen=True)
class GlobalState:
    is_open: bool = False
    is_paused: bool = True
    last_pause: int = 0
    normalization_factor: int = ONE
    last_funding_update: int = 0

    def require_open_and_unpaused(self) -> None:
        if not self.is_open:
            raise StateError(NOT_OPEN)
        if self.is_paused:
            raise StateError(PAUSED)


@dataclass(frozen=True)
class Vault:
    id: int
    operator: str
    collateral: int = 0
    short_amount: int = 0
    vault_type: VaultType = DEFAULT_VAULT_TYPE

    def is_empty(self) -> bool:
        return self.collateral == 0 and self.short_amount == 0


@dataclass(frozen=True)
class OwnershipProposal:
    owner: str
    expiry: int


@dataclass(frozen=True)
class VaultStatus:
    is_solvent: bool
    above_min_collateral: bool
    collateral_ratio: int

    @property
    def is_healthy(self) -> bool:
        return self.is_solvent and self.above_min_collateral


@dataclass(frozen=True)
class LiquidationPreview:
    """``amount`` power to burn, ``collateral_paid`` to the liquidator, ``debt_value`` in raw collateral units."""
    amount: int
    collateral_paid: int
    debt_value: int


# -- Continuation states -----------------------------------------------------

@dataclass(frozen=True)
class MintIssued:
    operator: str
    vault_id: int
    supply_before: int
    slippage: int | None = None


@dataclass(frozen=True)
class AwaitingSwapOut:
    operator: str
    vault_id: int


@dataclass(frozen=True)
class AwaitingSwapIn:
    operator: str
    vault_id: int
    balance_before: int
    offered: int
    withdraw_amount: int = 0


@dataclass(frozen=True)
class FlashAwaitingSwapIn:
    liquidator: str
    vault_id: int
    balance_before: int
    offered: int
    max_debt: int
    min_payout: int | None = None


ContinuationState = Union[MintIssued, AwaitingSwapOut, AwaitingSwapIn, FlashAwaitingSwapIn]


# -- Messages ----------------------------------------------------------------

@dataclass(frozen=True)
class Coin:
    denom: str
    amount: int


@dataclass(frozen=True)
class MintTokens:
    denom: str
    amount: int
    recipient: str


@dataclass(frozen=True)
class BurnTokens:
    denom: str
    amount: int
    holder: str


@dataclass(frozen=True)
class Transfer:
    """Send from the engine's own account."""
    recipient: str
    denom: str
    amount: int


@dataclass(frozen=True)
class SwapExactIn:
    pool_id: int
    denom_in: str
    denom_out: str
    amount_in: int
    min_out: int


@dataclass(frozen=True)
class SwapExactOut:
    pool_id: int
    denom_in: str
    denom_out: str
    amount_out: int
    max_in: int


Message = Union[MintTokens, BurnTokens, Transfer, SwapExactIn, SwapExactOut]


@dataclass(frozen=True)
class SubMessage:
    msg: Message
    reply: ReplyTag | None = None


@dataclass(frozen=True)
class SubMessageResult:
    """Settlement of one message, handed to the reply handler."""
    amount_in: int = 0
    amount_out: int = 0


@dataclass(frozen=True)
class Event:
    kind: EventKind
    attributes: tuple[tuple[str, str], ...] = ()

    def attr(self, key: str) -> str | None:
        for k, v in self.attributes:
            if k == key:
                return v
        return None


@dataclass
class Response:
    messages: list[SubMessage] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)

    def add_message(self, msg: Message, reply: ReplyTag | None = None) -> Response:
        self.messages.append(SubMessage(msg=msg, reply=reply))
        return self

    def add_event(self, kind: EventKind, **attributes: object) -> Response:
        self.events.append(Event(kind, tuple((k, str(v)) for k, v in attributes.items())))
        return self

    def extend(self, other: Response) -> Response:
        self.messages.extend(other.messages)
        self.events.extend(other.events)
        return self


# -- Engine I/O --------------------------------------------------------------

@dataclass(frozen=True)
class ActionParams:
    """Parameters for an action. Unused fields keep their defaults."""

    action: Action
    sender: str
    now: int
    funds: tuple[Coin, ...] = ()
    amount: int = 0                        # mint / open_short / close_short burn / withdraw / liquidate max debt
    vault_id: int | None = None
    withdraw_amount: int | None = None     # burn / close_short
    rebase: bool = False                   # mint
    slippage: int | None = None            # open_short / close_short / flash_liquidate
    min_amount_to_pay: int | None = None   # liquidate / flash_liquidate
    fee_rate: int | None = None            # update_config
    fee_pool: str | None = None            # update_config
    new_owner: str | None = None           # propose_new_owner
    duration: int = 0                      # propose_new_owner
    start_after: int | None = None         # remove_empty_vaults
    limit: int | None = None               # remove_empty_vaults


@dataclass(frozen=True)
class StepResult:
    """Result of a single engine step."""

    accepted: bool
    events: tuple[Event, ...] = ()
    rejection: str | None = None
    error: Exception | None = None

    def events_of(self, kind: EventKind) -> list[Event]:
        return [e for e in self.events if e.kind == kind]
