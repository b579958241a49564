"""Protocol configuration: defaults, validation and YAML loading.

A config file mirrors the ``Config`` dataclass. Fractional fields
(``fee_rate``, ``min_collateral``) are written as decimal strings so they
parse exactly into 18-decimal fixed point::

    fee_pool: fee_collector
    fee_rate: "0.01"
    base_asset: {denom: uatom, decimals: 6}
    power_asset: {denom: usqatom, decimals: 6}
    base_pool: {id: 1, base_denom: uatom, quote_denom: uusdc}
    power_pool: {id: 2, base_denom: usqatom, quote_denom: uatom}
    stake_assets:
      - {denom: ustatom, decimals: 6, pool: {id: 3, base_denom: ustatom, quote_denom: uatom}}
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .. import fixed_point as fp
from .errors import ValidationError
from .types import Asset, Config, Pool, StakeAsset

FUNDING_PERIOD: int = 420 * 60 * 60  # 420 hours, in seconds
INDEX_SCALE: int = 10_000
MIN_COLLATERAL: int = fp.parse("0.5")
MAX_DECIMALS: int = 18


# -- Validation --------------------------------------------------------------

def _check_decimals(label: str, decimals: int) -> None:
    if not (0 < decimals <= MAX_DECIMALS):
        raise ValidationError(f"Invalid {label} decimals")


def validate_config(config: Config) -> None:
    """Raise ValidationError if *config* breaks any structural rule."""
    _check_decimals("base", config.base_asset.decimals)
    _check_decimals("power", config.power_asset.decimals)

    if not (0 <= config.fee_rate < fp.ONE):
        raise ValidationError("Invalid fee rate")

    if not (0 < config.funding_period <= 2 * FUNDING_PERIOD):
        raise ValidationError(
            f"Invalid funding period, must be between 0 and {2 * FUNDING_PERIOD} seconds"
        )

    if config.index_scale <= 0:
        raise ValidationError("Invalid index scale")

    if not config.fee_pool:
        raise ValidationError("Invalid fee pool")

    if config.power_asset.denom == config.base_asset.denom:
        raise ValidationError("Invalid base and power denom must be different")

    if config.power_pool.id == config.base_pool.id:
        raise ValidationError("Invalid base and power pool id must be different")

    seen: set[str] = set()
    for stake in config.stake_assets:
        if not stake.denom:
            raise ValidationError("Invalid stake asset denom")
        if stake.denom in (config.base_asset.denom, config.power_asset.denom):
            raise ValidationError(f"Invalid stake asset, reuses a core denom: {stake.denom}")
        if stake.denom in seen:
            raise ValidationError(f"Duplicate stake asset: {stake.denom}")
        _check_decimals(f"stake asset {stake.denom}", stake.decimals)
        seen.add(stake.denom)


# -- Construction ------------------------------------------------------------

def _fixed(value: Any, field: str) -> int:
    """Fixed-point field written as a number or decimal string."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}")
    try:
        return fp.parse(str(value))
    except ValueError as exc:
        raise ValidationError(f"Invalid {field}: {value!r}") from exc


def _asset(d: Mapping[str, Any]) -> Asset:
    return Asset(denom=str(d["denom"]), decimals=int(d["decimals"]))


def _pool(d: Mapping[str, Any]) -> Pool:
    return Pool(id=int(d["id"]), base_denom=str(d["base_denom"]), quote_denom=str(d["quote_denom"]))


def config_from_mapping(d: Mapping[str, Any]) -> Config:
    """Build and validate a Config. Raises ValidationError on bad input."""
    try:
        config = Config(
            fee_pool=str(d["fee_pool"]),
            fee_rate=_fixed(d.get("fee_rate", 0), "fee_rate"),
            base_asset=_asset(d["base_asset"]),
            power_asset=_asset(d["power_asset"]),
            base_pool=_pool(d["base_pool"]),
            power_pool=_pool(d["power_pool"]),
            funding_period=int(d.get("funding_period", FUNDING_PERIOD)),
            index_scale=int(d.get("index_scale", INDEX_SCALE)),
            min_collateral=(
                _fixed(d["min_collateral"], "min_collateral") if "min_collateral" in d else MIN_COLLATERAL
            ),
            stake_assets=tuple(
                StakeAsset(denom=str(s["denom"]), decimals=int(s["decimals"]), pool=_pool(s["pool"]))
                for s in d.get("stake_assets") or ()
            ),
        )
    except KeyError as exc:
        raise ValidationError(f"missing config field: {exc.args[0]}") from exc
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"malformed config: {exc}") from exc
    validate_config(config)
    return config


def load_config(path: str | Path) -> Config:
    """Load a YAML config file (``yaml.safe_load``) and validate it."""
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(obj, Mapping):
        raise ValidationError("config YAML must be a mapping")
    return config_from_mapping(obj)


def with_updates(config: Config, *, fee_rate: int | None = None, fee_pool: str | None = None) -> Config:
    """Return *config* with the admin-updatable fields replaced, re-validated."""
    updated = config
    if fee_rate is not None:
        updated = replace(updated, fee_rate=fee_rate)
    if fee_pool is not None:
        updated = replace(updated, fee_pool=fee_pool)
    validate_config(updated)
    return updated
