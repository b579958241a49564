"""Tests for powerperp/core/power/queries.py."""

from __future__ import annotations

import pytest

from powerperp.core import fixed_point as fp
from powerperp.core.power import Action, VaultType
from powerperp.core.power.errors import PROPOSAL_NOT_FOUND, StateError
from powerperp.core.power.pricing import TWAP_PERIOD
from powerperp.core.power.queries import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    get_check_vault,
    get_denormalized_mark,
    get_denormalized_mark_for_funding,
    get_index,
    get_liquidation_amount,
    get_next_vault_id,
    get_normalization_factor,
    get_ownership_proposal,
    get_unscaled_index,
    get_user_vaults,
    get_vault,
    query_config,
    query_owner,
    query_state,
)
from powerperp.integration.simulation import OWNER


class TestStateQueries:
    def test_config_state_owner(self, sim):
        assert query_config(sim.ctx) is sim.config
        assert query_state(sim.ctx).is_open
        assert query_owner(sim.ctx) == OWNER

    def test_ownership_proposal(self, sim):
        with pytest.raises(StateError, match=PROPOSAL_NOT_FOUND):
            get_ownership_proposal(sim.ctx)
        sim.execute_or_raise(Action.PROPOSE_NEW_OWNER, OWNER, new_owner="carol", duration=10)
        proposal = get_ownership_proposal(sim.ctx)
        assert (proposal.owner, proposal.expiry) == ("carol", sim.now + 10)


class TestPriceQueries:
    def test_index(self, sim):
        assert get_index(sim.ctx, sim.now, TWAP_PERIOD) == fp.parse("0.09")

    def test_unscaled_index(self, sim):
        assert get_unscaled_index(sim.ctx, sim.now, TWAP_PERIOD) == fp.from_int(9_000_000)

    def test_mark(self, sim):
        assert get_denormalized_mark(sim.ctx, sim.now, TWAP_PERIOD) == fp.parse("0.09")
        assert get_denormalized_mark_for_funding(sim.ctx, sim.now, TWAP_PERIOD) == fp.parse("0.09")

    def test_normalization_factor_does_not_persist(self, sim):
        sim.set_prices(fp.from_int(3000), fp.parse("0.303"))
        sim.advance(15)
        factor = get_normalization_factor(sim.ctx, sim.now)
        assert factor < fp.ONE
        assert sim.ctx.state.normalization_factor == fp.ONE
        # computed factor feeds the mark, the stored one feeds funding
        assert get_denormalized_mark(sim.ctx, sim.now, TWAP_PERIOD) > get_denormalized_mark_for_funding(
            sim.ctx, sim.now, TWAP_PERIOD
        )


class TestVaultQueries:
    def test_get_vault_and_next_id(self, sim, open_vault):
        vault_id = open_vault()
        assert get_vault(sim.ctx, vault_id).short_amount == 2_000_000
        assert get_next_vault_id(sim.ctx) == vault_id + 1
        with pytest.raises(StateError):
            get_vault(sim.ctx, 99)

    def test_user_vaults_pagination(self, sim):
        for _ in range(60):
            sim.ctx.vaults.create("alice", VaultType())
        sim.ctx.vaults.create("bob", VaultType())
        assert get_user_vaults(sim.ctx, "alice") == list(range(1, DEFAULT_LIMIT + 1))
        assert len(get_user_vaults(sim.ctx, "alice", limit=100)) == MAX_LIMIT
        assert get_user_vaults(sim.ctx, "alice", start_after=58) == [59, 60]
        assert get_user_vaults(sim.ctx, "bob") == [61]
        assert get_user_vaults(sim.ctx, "nobody") == []

    def test_check_vault(self, sim, open_vault):
        vault_id = open_vault()
        status = get_check_vault(sim.ctx, vault_id, sim.now)
        assert status.is_healthy
        assert status.collateral_ratio == fp.div(fp.parse("0.91"), fp.parse("0.6"))

    def test_liquidation_amount_preview(self, sim, open_vault):
        vault_id = open_vault()
        sim.set_prices(fp.from_int(3100), fp.parse("0.31"))
        preview = get_liquidation_amount(sim.ctx, vault_id, sim.now)
        assert (preview.amount, preview.collateral_paid, preview.debt_value) == (1_000_000, 341_000, 310_000)
        assert get_liquidation_amount(sim.ctx, vault_id, sim.now, max_debt=500_000).amount == 500_000
