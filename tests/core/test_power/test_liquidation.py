"""Tests for powerperp/core/power/liquidation.py.

Every scenario opens a (910_000 base, 2_000_000 power) vault at index 0.3,
then moves base and power prices together so the vault turns unsafe.
"""

from __future__ import annotations

import pytest

from powerperp.core import fixed_point as fp
from powerperp.core.power import Action, Coin, EventKind
from powerperp.core.power.errors import (
    INVALID_LIQUIDATION,
    NON_PAYABLE,
    SAFE_VAULT,
    UNPROFITABLE_LIQUIDATION,
    ErrorKind,
)
from powerperp.core.power.liquidation import LIQUIDATION_BOUNTY, liquidation_results
from powerperp.core.power.queries import get_check_vault
from powerperp.integration.simulation import BASE_DENOM, POWER_DENOM


def _reprice(sim, power_price: str) -> None:
    """Base at ``power_price * 10_000`` quote so the index equals the power price."""
    p = fp.parse(power_price)
    sim.set_prices(p * 10_000, p)


@pytest.fixture
def unsafe(sim, open_vault):
    vault_id = open_vault()
    sim.fund("bob", POWER_DENOM, 2_000_000)
    return vault_id


class TestLiquidationResults:
    def test_bounty(self):
        assert LIQUIDATION_BOUNTY == fp.parse("1.1")

    def test_half_liquidation(self, sim, unsafe):
        _reprice(sim, "0.31")
        preview = liquidation_results(sim.ctx, 2_000_000, sim.vault(unsafe), sim.now)
        assert (preview.amount, preview.collateral_paid, preview.debt_value) == (1_000_000, 341_000, 310_000)

    def test_dust_guard_takes_full_exposure(self, sim, unsafe):
        _reprice(sim, "0.4")
        preview = liquidation_results(sim.ctx, 2_000_000, sim.vault(unsafe), sim.now)
        assert (preview.amount, preview.collateral_paid) == (2_000_000, 880_000)

    def test_dust_guard_bounded_by_max_debt(self, sim, unsafe):
        _reprice(sim, "0.4")
        preview = liquidation_results(sim.ctx, 1_000_000, sim.vault(unsafe), sim.now)
        assert (preview.amount, preview.collateral_paid) == (1_000_000, 440_000)

    def test_clamp_to_collateral(self, sim, unsafe):
        _reprice(sim, "0.5")
        preview = liquidation_results(sim.ctx, 2_000_000, sim.vault(unsafe), sim.now)
        assert (preview.amount, preview.collateral_paid) == (2_000_000, 910_000)


class TestLiquidate:
    def test_half(self, sim, unsafe):
        _reprice(sim, "0.31")
        r = sim.execute(Action.LIQUIDATE, "bob", amount=2_000_000, vault_id=unsafe)
        assert r.accepted, r.rejection

        vault = sim.vault(unsafe)
        assert (vault.collateral, vault.short_amount) == (569_000, 1_000_000)
        assert sim.balance("bob", BASE_DENOM) == 341_000
        assert sim.balance("bob", POWER_DENOM) == 1_000_000

        (event,) = r.events_of(EventKind.LIQUIDATION)
        assert event.attr("liquidator") == "bob"
        assert event.attr("liquidatee") == "alice"
        assert event.attr("liquidation_amount") == "1000000"
        assert event.attr("collateral_to_pay") == "341000"

    def test_liquidation_improves_ratio(self, sim, unsafe):
        _reprice(sim, "0.31")
        sim.execute_or_raise(Action.LIQUIDATE, "bob", amount=2_000_000, vault_id=unsafe)
        # 0.91 / 0.62 before, 0.569 / 0.31 after
        status = get_check_vault(sim.ctx, unsafe, sim.now)
        assert status.is_solvent
        assert status.collateral_ratio == fp.div(fp.parse("0.569"), fp.parse("0.31"))

    def test_dust_guard(self, sim, unsafe):
        _reprice(sim, "0.4")
        sim.execute_or_raise(Action.LIQUIDATE, "bob", amount=2_000_000, vault_id=unsafe)
        vault = sim.vault(unsafe)
        assert (vault.collateral, vault.short_amount) == (30_000, 0)
        assert sim.balance("bob", BASE_DENOM) == 880_000

    def test_clamp(self, sim, unsafe):
        _reprice(sim, "0.5")
        sim.execute_or_raise(Action.LIQUIDATE, "bob", amount=2_000_000, vault_id=unsafe)
        vault = sim.vault(unsafe)
        assert vault.is_empty()
        assert sim.balance("bob", BASE_DENOM) == 910_000

    def test_clamp_above_max_debt_is_invalid(self, sim, unsafe):
        _reprice(sim, "1")
        r = sim.execute(Action.LIQUIDATE, "bob", amount=1_000_000, vault_id=unsafe)
        assert r.rejection == INVALID_LIQUIDATION

    def test_safe_vault(self, sim, unsafe):
        r = sim.execute(Action.LIQUIDATE, "bob", amount=2_000_000, vault_id=unsafe)
        assert r.rejection == SAFE_VAULT
        assert r.error.kind == ErrorKind.STATE

    def test_min_payout(self, sim, unsafe):
        _reprice(sim, "0.31")
        r = sim.execute(
            Action.LIQUIDATE, "bob", amount=2_000_000, vault_id=unsafe, min_amount_to_pay=341_001,
        )
        assert r.rejection == UNPROFITABLE_LIQUIDATION
        ok = sim.execute(
            Action.LIQUIDATE, "bob", amount=2_000_000, vault_id=unsafe, min_amount_to_pay=341_000,
        )
        assert ok.accepted

    def test_liquidator_without_power(self, sim, unsafe):
        _reprice(sim, "0.31")
        r = sim.execute(Action.LIQUIDATE, "carol", amount=2_000_000, vault_id=unsafe)
        assert not r.accepted
        assert r.error.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert sim.vault(unsafe).collateral == 910_000

    def test_non_payable(self, sim, unsafe):
        _reprice(sim, "0.31")
        r = sim.execute(
            Action.LIQUIDATE, "bob", [Coin(POWER_DENOM, 1_000_000)], amount=2_000_000, vault_id=unsafe,
        )
        assert r.rejection == NON_PAYABLE
        assert sim.balance("bob", POWER_DENOM) == 2_000_000

    def test_zero_max_debt_rejected_before_dispatch(self, sim, unsafe):
        _reprice(sim, "0.31")
        r = sim.execute(Action.LIQUIDATE, "bob", amount=0, vault_id=unsafe)
        assert r.rejection == "param_domain:amount"
