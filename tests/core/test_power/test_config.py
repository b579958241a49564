"""Tests for powerperp/core/power/config.py: validation and YAML loading."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from powerperp.core import fixed_point as fp
from powerperp.core.power.config import (
    FUNDING_PERIOD,
    INDEX_SCALE,
    MIN_COLLATERAL,
    config_from_mapping,
    load_config,
    validate_config,
    with_updates,
)
from powerperp.core.power.errors import ValidationError
from powerperp.core.power.types import Asset, Pool, VaultType
from powerperp.integration.simulation import default_config_mapping

EXAMPLE_CONFIG = Path(__file__).resolve().parents[3] / "config" / "power.example.yaml"


class TestFromMapping:
    def test_defaults(self):
        d = default_config_mapping()
        for key in ("fee_rate", "funding_period", "index_scale", "min_collateral"):
            del d[key]
        config = config_from_mapping(d)
        assert config.fee_rate == 0
        assert config.funding_period == FUNDING_PERIOD == 1_512_000
        assert config.index_scale == INDEX_SCALE == 10_000
        assert config.min_collateral == MIN_COLLATERAL == fp.parse("0.5")

    def test_decimal_strings(self):
        config = config_from_mapping({**default_config_mapping(), "fee_rate": "0.01"})
        assert config.fee_rate == fp.parse("0.01")

    def test_stake_assets(self):
        config = config_from_mapping(default_config_mapping())
        assert config.is_stake_enabled
        stake = config.stake_asset("ustatom")
        assert stake is not None and stake.pool.id == 3
        assert config.collateral_asset(VaultType("ustatom")) == Asset("ustatom", 6)
        assert config.collateral_asset(VaultType()) == config.base_asset

    def test_missing_field(self):
        d = default_config_mapping()
        del d["fee_pool"]
        with pytest.raises(ValidationError, match="missing config field: fee_pool"):
            config_from_mapping(d)

    def test_malformed_value(self):
        with pytest.raises(ValidationError, match="Invalid fee_rate"):
            config_from_mapping({**default_config_mapping(), "fee_rate": "lots"})
        with pytest.raises(ValidationError, match="Invalid fee_rate"):
            config_from_mapping({**default_config_mapping(), "fee_rate": True})


class TestValidation:
    def _config(self, **overrides):
        return config_from_mapping({**default_config_mapping(), **overrides})

    def test_fee_rate_below_one(self):
        with pytest.raises(ValidationError, match="Invalid fee rate"):
            self._config(fee_rate="1")

    def test_decimals(self):
        with pytest.raises(ValidationError, match="Invalid base decimals"):
            self._config(base_asset={"denom": "uatom", "decimals": 0})
        with pytest.raises(ValidationError, match="Invalid power decimals"):
            self._config(power_asset={"denom": "usqatom", "decimals": 19})

    def test_funding_period(self):
        with pytest.raises(ValidationError, match="Invalid funding period"):
            self._config(funding_period=0)
        assert self._config(funding_period=2 * FUNDING_PERIOD).funding_period == 2 * FUNDING_PERIOD

    def test_same_denoms(self):
        with pytest.raises(ValidationError, match="denom must be different"):
            self._config(power_asset={"denom": "uatom", "decimals": 6})

    def test_same_pools(self):
        config = self._config()
        with pytest.raises(ValidationError, match="pool id must be different"):
            validate_config(replace(config, power_pool=Pool(1, "usqatom", "uatom")))

    def test_stake_reusing_core_denom(self):
        stake = {"denom": "uatom", "decimals": 6, "pool": {"id": 3, "base_denom": "uatom", "quote_denom": "uatom"}}
        with pytest.raises(ValidationError, match="reuses a core denom"):
            self._config(stake_assets=[stake])

    def test_duplicate_stake(self):
        stake = default_config_mapping()["stake_assets"][0]
        with pytest.raises(ValidationError, match="Duplicate stake asset"):
            self._config(stake_assets=[stake, stake])


class TestWithUpdates:
    def test_updates_and_revalidates(self):
        config = config_from_mapping(default_config_mapping())
        updated = with_updates(config, fee_rate=fp.parse("0.02"), fee_pool="treasury")
        assert updated.fee_rate == fp.parse("0.02")
        assert updated.fee_pool == "treasury"
        assert config.fee_rate == 0
        with pytest.raises(ValidationError):
            with_updates(config, fee_pool="")


class TestLoadConfig:
    def test_example_file(self):
        config = load_config(EXAMPLE_CONFIG)
        assert config.fee_rate == fp.parse("0.005")
        assert config.power_pool == Pool(2, "usqatom", "uatom")
        assert config.stake_asset("ustatom") is not None

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "power.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValidationError, match="must be a mapping"):
            load_config(path)

    def test_yaml_numbers(self, tmp_path):
        path = tmp_path / "power.yaml"
        path.write_text(
            "fee_pool: fees\n"
            "fee_rate: 0.25\n"
            "base_asset: {denom: uatom, decimals: 6}\n"
            "power_asset: {denom: usqatom, decimals: 6}\n"
            "base_pool: {id: 1, base_denom: uatom, quote_denom: uusdc}\n"
            "power_pool: {id: 2, base_denom: usqatom, quote_denom: uatom}\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.fee_rate == fp.parse("0.25")
        assert config.stake_assets == ()
