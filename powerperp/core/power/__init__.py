"""`power`: margin, funding and liquidation engine for a squared-power perpetual.

A user locks collateral in a vault and mints the power token, whose value
tracks ``(base price / index_scale)^2 * normalization_factor``. Funding
drifts the normalization factor towards the index; vaults below a 150%
collateral ratio can be liquidated for a 10% bounty.

Public API:
- `new_context(config, ...) -> PowerContext`
- `step(ctx, params) -> StepResult`
- `step_or_raise(ctx, params) -> StepResult` (raises on rejection)
- `load_config(path) -> Config`
- read-only views in `queries`
"""

from .config import config_from_mapping, load_config, validate_config
from .context import PowerContext, PriceOracle, SwapVenue, TokenLedger, new_context
from .engine import check_invariants, step, step_or_raise
from .errors import (
    AuthorizationError,
    ErrorKind,
    ExternalCallError,
    InsufficientFundsError,
    PowerError,
    SolvencyError,
    StateError,
    ValidationError,
)
from .types import (
    Action,
    ActionParams,
    Coin,
    Config,
    Event,
    EventKind,
    GlobalState,
    StepResult,
    Vault,
    VaultStatus,
    VaultType,
)

__all__ = [
    "step",
    "step_or_raise",
    "check_invariants",
    "new_context",
    "load_config",
    "config_from_mapping",
    "validate_config",
    "PowerContext",
    "PriceOracle",
    "SwapVenue",
    "TokenLedger",
    "Action",
    "ActionParams",
    "Coin",
    "Config",
    "Event",
    "EventKind",
    "GlobalState",
    "StepResult",
    "Vault",
    "VaultStatus",
    "VaultType",
    "ErrorKind",
    "PowerError",
    "ValidationError",
    "AuthorizationError",
    "StateError",
    "SolvencyError",
    "InsufficientFundsError",
    "ExternalCallError",
]
