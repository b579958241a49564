from __future__ import annotations

from typing import Callable

import pytest

from powerperp.core import fixed_point as fp
from powerperp.core.power import Action, Coin
from powerperp.integration.simulation import (
    BASE_DENOM,
    POWER_POOL_ID,
    PowerSimulation,
    build_simulation,
)

OpenVault = Callable[..., int]


@pytest.fixture
def sim() -> PowerSimulation:
    """Open engine, base at 3000 quote (index 0.3), power at 0.3 base, deep power pool."""
    s = build_simulation(base_price=fp.from_int(3000), power_price=fp.parse("0.3"))
    # spot 0.3 base per power
    s.seed_pool(POWER_POOL_ID, 1_000_000_000_000, 300_000_000_000)
    return s


@pytest.fixture
def closed_sim() -> PowerSimulation:
    return build_simulation(open_contract=False)


@pytest.fixture
def open_vault(sim: PowerSimulation) -> OpenVault:
    """Fund an owner and mint power against a new vault; returns the vault id."""

    def _open(owner: str = "alice", collateral: int = 910_000, amount: int = 2_000_000) -> int:
        sim.fund(owner, BASE_DENOM, collateral)
        vault_id = sim.ctx.vaults.next_id
        sim.execute_or_raise(Action.MINT, owner, [Coin(BASE_DENOM, collateral)], amount=amount)
        return vault_id

    return _open
