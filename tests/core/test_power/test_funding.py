"""Tests for powerperp/core/power/funding.py: index, mark clamp, normalization factor."""

from __future__ import annotations


from powerperp.core import fixed_point as fp
from powerperp.core.power import Action, EventKind
from powerperp.core.power.config import FUNDING_PERIOD
from powerperp.core.power.funding import (
    MAX_TWAP_PERIOD,
    apply_funding,
    calculate_index,
    calculate_normalization_factor,
    clamp_mark,
)
from powerperp.integration.simulation import OWNER, build_simulation

# 3000 quote per base -> index price 0.3; power at 3030 pushes the mark far
# above 1.4 * index, so it is clamped.
BASE = fp.from_int(3000)
POWER = fp.from_int(3030)


def _sim():
    return build_simulation(base_price=BASE, power_price=POWER)


class TestClampMark:
    def test_within_bounds(self):
        assert clamp_mark(fp.ONE, fp.ONE) == fp.ONE

    def test_lower(self):
        assert clamp_mark(fp.parse("0.5"), fp.ONE) == fp.parse("0.8")

    def test_upper(self):
        assert clamp_mark(fp.from_int(909), fp.parse("0.09")) == fp.parse("0.126")


class TestIndex:
    def test_index_is_square_of_scaled_quote(self):
        sim = _sim()
        assert calculate_index(sim.ctx, sim.now) == fp.parse("0.09")


class TestNormalizationFactor:
    def test_known_sequence(self):
        sim = _sim()
        sim.advance(15)
        r = sim.execute(Action.APPLY_FUNDING, OWNER)
        assert r.accepted
        assert sim.ctx.state.normalization_factor == 999_996_662_200_989_344
        assert sim.ctx.state.last_funding_update == sim.now

        sim.advance(10_800)
        sim.execute_or_raise(Action.APPLY_FUNDING, OWNER)
        assert sim.ctx.state.normalization_factor == 997_596_182_935_824_294

    def test_event_carries_factor(self):
        sim = _sim()
        sim.advance(15)
        r = sim.execute_or_raise(Action.APPLY_FUNDING, "anyone")
        (event,) = r.events_of(EventKind.APPLY_FUNDING)
        assert event.attr("funding_rate") == fp.to_str(sim.ctx.state.normalization_factor)

    def test_same_timestamp_is_noop(self):
        sim = _sim()
        before = sim.ctx.state
        assert apply_funding(sim.ctx, sim.now) == fp.ONE
        assert sim.ctx.state == before

    def test_past_timestamp_returns_cached(self):
        sim = _sim()
        sim.advance(100)
        factor = apply_funding(sim.ctx, sim.now)
        assert apply_funding(sim.ctx, sim.now - 50) == factor
        assert sim.ctx.state.last_funding_update == sim.now

    def test_calculate_is_pure(self):
        sim = _sim()
        sim.advance(3_600)
        before = sim.ctx.state
        factor = calculate_normalization_factor(sim.ctx, sim.now)
        assert factor < fp.ONE
        assert sim.ctx.state == before

    def test_elapsed_is_capped(self):
        sim = _sim()
        sim.advance(3 * 24 * 60 * 60)
        expected = fp.dec_pow(
            fp.div(fp.parse("0.09"), fp.parse("0.126")),
            fp.from_ratio(MAX_TWAP_PERIOD, FUNDING_PERIOD),
        )
        assert calculate_normalization_factor(sim.ctx, sim.now) == expected

    def test_mark_below_index_raises_factor(self):
        sim = build_simulation(base_price=BASE, power_price=fp.parse("0.1"))
        sim.advance(3_600)
        assert apply_funding(sim.ctx, sim.now) > fp.ONE

    def test_zero_mark_leaves_factor(self):
        sim = build_simulation(base_price=fp.from_int(0), power_price=fp.parse("0.3"))
        sim.advance(3_600)
        assert apply_funding(sim.ctx, sim.now) == fp.ONE
        assert sim.ctx.state.last_funding_update == sim.now

    def test_funding_runs_while_paused(self):
        sim = _sim()
        sim.execute_or_raise(Action.PAUSE, OWNER)
        sim.advance(15)
        assert sim.execute(Action.APPLY_FUNDING, OWNER).accepted
        assert sim.ctx.state.normalization_factor < fp.ONE
