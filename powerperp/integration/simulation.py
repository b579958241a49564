"""
In-process deployment of the power perpetual against the reference
collaborators in ``powerperp.state``.

``build_simulation`` wires a ``PowerContext`` to a ``TokenLedger``, a
``PriceFeed`` and a ``CpmmVenue`` sharing one ``ManualClock``. Every action
goes through ``engine.step`` at the clock's current time, so a simulation
behaves exactly like a deployed engine, only deterministic.

Layout:
- base ``uatom``, power ``usqatom``, quote ``uusdc``, stake ``ustatom``,
  all 6 decimals
- pool 1 uatom/uusdc, pool 2 usqatom/uatom, pool 3 ustatom/uatom
- the engine account (``contract``) is admin of the power denom
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from ..core import fixed_point as fp
from ..core.power.config import FUNDING_PERIOD, INDEX_SCALE, MIN_COLLATERAL, config_from_mapping
from ..core.power.context import PowerContext, new_context
from ..core.power.engine import step, step_or_raise
from ..core.power.types import Action, ActionParams, Coin, Config, StepResult, Vault
from ..state.balances import TokenLedger
from ..state.pools import CpmmVenue
from ..state.prices import ManualClock, PriceFeed

logger = logging.getLogger(__name__)

BASE_DENOM = "uatom"
POWER_DENOM = "usqatom"
QUOTE_DENOM = "uusdc"
STAKE_DENOM = "ustatom"
DECIMALS = 6

BASE_POOL_ID = 1
POWER_POOL_ID = 2
STAKE_POOL_ID = 3

CONTRACT = "powerperp"
OWNER = "owner"
FEE_POOL = "fee_pool"
LIQUIDITY_PROVIDER = "lp"


def default_config_mapping() -> dict[str, Any]:
    """Config mapping for the simulation layout (same shape as a YAML file)."""
    return {
        "fee_pool": FEE_POOL,
        "fee_rate": "0",
        "base_asset": {"denom": BASE_DENOM, "decimals": DECIMALS},
        "power_asset": {"denom": POWER_DENOM, "decimals": DECIMALS},
        "base_pool": {"id": BASE_POOL_ID, "base_denom": BASE_DENOM, "quote_denom": QUOTE_DENOM},
        "power_pool": {"id": POWER_POOL_ID, "base_denom": POWER_DENOM, "quote_denom": BASE_DENOM},
        "funding_period": FUNDING_PERIOD,
        "index_scale": INDEX_SCALE,
        "min_collateral": fp.to_str(MIN_COLLATERAL),
        "stake_assets": [
            {
                "denom": STAKE_DENOM,
                "decimals": DECIMALS,
                "pool": {"id": STAKE_POOL_ID, "base_denom": STAKE_DENOM, "quote_denom": BASE_DENOM},
            }
        ],
    }


@dataclass
class PowerSimulation:
    ctx: PowerContext
    ledger: TokenLedger
    feed: PriceFeed
    venue: CpmmVenue
    clock: ManualClock

    @property
    def now(self) -> int:
        return self.clock.now

    @property
    def config(self) -> Config:
        return self.ctx.config

    # -- Actions -------------------------------------------------------------

    def params(self, action: Action, sender: str, funds: Sequence[Coin] = (), **kwargs: Any) -> ActionParams:
        return ActionParams(action=action, sender=sender, now=self.clock.now, funds=tuple(funds), **kwargs)

    def execute(self, action: Action, sender: str, funds: Sequence[Coin] = (), **kwargs: Any) -> StepResult:
        return step(self.ctx, self.params(action, sender, funds, **kwargs))

    def execute_or_raise(
        self, action: Action, sender: str, funds: Sequence[Coin] = (), **kwargs: Any,
    ) -> StepResult:
        return step_or_raise(self.ctx, self.params(action, sender, funds, **kwargs))

    def open(self) -> StepResult:
        return self.execute_or_raise(Action.SET_OPEN, OWNER)

    # -- Market setup --------------------------------------------------------

    def fund(self, account: str, denom: str, amount: int) -> None:
        """Credit *account* out of thin air (test faucet)."""
        self.ledger.mint(denom, account, amount)

    def balance(self, account: str, denom: str) -> int:
        return self.ledger.balance_of(account, denom)

    def set_prices(
        self, base_price: int, power_price: int, stake_price: int | None = None,
    ) -> None:
        """Pin oracle prices (fixed point): base in quote, power and stake in base."""
        self.feed.set_price(BASE_POOL_ID, BASE_DENOM, QUOTE_DENOM, base_price)
        self.feed.set_price(POWER_POOL_ID, POWER_DENOM, BASE_DENOM, power_price)
        if stake_price is not None:
            self.feed.set_price(STAKE_POOL_ID, STAKE_DENOM, BASE_DENOM, stake_price)

    def seed_pool(self, pool_id: int, amount_a: int, amount_b: int) -> None:
        spec = self.venue.pool(pool_id)
        self.fund(LIQUIDITY_PROVIDER, spec.denom_a, amount_a)
        self.fund(LIQUIDITY_PROVIDER, spec.denom_b, amount_b)
        self.venue.add_liquidity(pool_id, LIQUIDITY_PROVIDER, amount_a, amount_b)

    def advance(self, seconds: int) -> int:
        return self.clock.advance(seconds)

    def vault(self, vault_id: int) -> Vault:
        return self.ctx.vaults.load(vault_id)


def build_simulation(
    *,
    start_time: int = 1_000_000,
    config_overrides: Mapping[str, Any] | None = None,
    base_price: int = fp.from_int(3000),
    power_price: int = fp.parse("0.3"),
    stake_price: int = fp.ONE,
    pool_fee_bps: int = 0,
    open_contract: bool = True,
) -> PowerSimulation:
    """
    A ready-to-use simulation: denoms created, pools registered, oracle
    prices pinned and (by default) the engine opened.

    Pools are registered but hold no liquidity; call ``seed_pool`` before
    any action that swaps.
    """
    clock = ManualClock(now=start_time)
    ledger = TokenLedger()
    for denom in (BASE_DENOM, QUOTE_DENOM, STAKE_DENOM):
        ledger.create_denom(denom)
    ledger.create_denom(POWER_DENOM, admin=CONTRACT)

    feed = PriceFeed(clock)
    venue = CpmmVenue(ledger)
    venue.create_pool(BASE_POOL_ID, BASE_DENOM, QUOTE_DENOM, fee_bps=pool_fee_bps)
    venue.create_pool(POWER_POOL_ID, POWER_DENOM, BASE_DENOM, fee_bps=pool_fee_bps)
    venue.create_pool(STAKE_POOL_ID, STAKE_DENOM, BASE_DENOM, fee_bps=pool_fee_bps)

    mapping = default_config_mapping()
    mapping.update(config_overrides or {})
    config = config_from_mapping(mapping)

    ctx = new_context(
        config, owner=OWNER, contract=CONTRACT, oracle=feed, ledger=ledger, venue=venue, now=start_time,
    )
    sim = PowerSimulation(ctx=ctx, ledger=ledger, feed=feed, venue=venue, clock=clock)
    sim.set_prices(base_price, power_price, stake_price)
    if open_contract:
        sim.open()
    logger.debug("simulation ready at t=%d (open=%s)", start_time, open_contract)
    return sim
