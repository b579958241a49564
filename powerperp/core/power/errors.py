"""Exception types for the power perpetual engine.

Every domain failure is a ``PowerError`` carrying a discriminated
``ErrorKind`` plus a human-readable message. ``step()`` in ``engine.py``
turns them into rejected ``StepResult`` values; ``step_or_raise()``
re-raises them for callers that prefer exceptions.
"""

from __future__ import annotations

from enum import Enum, unique


@unique
class ErrorKind(Enum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    STATE = "state"
    SOLVENCY = "solvency"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    EXTERNAL_CALL = "external_call"


class PowerError(Exception):
    """Base class for all engine rejections."""

    kind: ErrorKind = ErrorKind.STATE

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(PowerError):
    """Bad config, invalid denom or decimals, zero or malformed amounts."""

    kind = ErrorKind.VALIDATION


class AuthorizationError(PowerError):
    """Sender is not the admin, the vault operator or the proposed owner."""

    kind = ErrorKind.AUTHORIZATION


class StateError(PowerError):
    """Operation not allowed in the current state (closed, paused, missing vault...)."""

    kind = ErrorKind.STATE


class SolvencyError(PowerError):
    """Vault would be unsafe or below the minimum collateral."""

    kind = ErrorKind.SOLVENCY


class InsufficientFundsError(PowerError):
    """A holder cannot cover a transfer, burn or swap input."""

    kind = ErrorKind.INSUFFICIENT_FUNDS


class ExternalCallError(PowerError):
    """A collaborator (oracle, ledger, swap venue) failed."""

    kind = ErrorKind.EXTERNAL_CALL


# -- Canonical messages ------------------------------------------------------

NOT_OPEN = "Cannot perform action as contract is not open"
PAUSED = "Cannot perform action as contract is paused"
UNAUTHORIZED = "Unauthorized"
OPERATOR_MISMATCH = "operator does not match"
ZERO_MINT = "Zero mint not supported"
INVALID_FUNDS = "Invalid funds"
NON_PAYABLE = "Non-payable, funds cannot be sent with this operation"
NEW_VAULT_NEEDS_COLLATERAL = "Must send collateral to create new vault"
UNSAFE_VAULT = "Vault is not safe, cannot perform operation"
SAFE_VAULT = "Vault is safe, cannot be liquidated"
BELOW_MIN_COLLATERAL = "Vault is below minimum collateral amount (0.5 base denom)"
OVER_BURN = "Cannot burn more funds or collateral than in vault"
OVER_SUBTRACT = "Cannot subtract more collateral than deposited"
FEE_NOT_COVERED = "Insufficient collateral to pay fee"
INVALID_LIQUIDATION = "Invalid liquidation"
UNPROFITABLE_LIQUIDATION = "Liquidation is not profitable"
SLIPPAGE_TOO_HIGH = "Slippage cannot be greater than 1"
NO_EMPTY_VAULTS = "no empty vaults found"
CONTINUATION_IN_FLIGHT = "Another multi-step operation is already in progress"
ALREADY_OPEN = "Contract is already open"
NOT_TOKEN_ADMIN = "Contract is not admin of the power token"
UNPAUSE_NOT_EXPIRED = "Unpause delay not expired"
PROPOSAL_NOT_FOUND = "Proposal not found"
PROPOSAL_EXPIRED = "Expired"
SAME_OWNER = "Invalid ownership, new owner cannot be the same as existing"


def vault_does_not_exist(vault_id: int) -> str:
    return f"Vault does not exist, id: {vault_id}"


def vault_type_mismatch(expected: object, got: object, vault_id: int) -> str:
    return f"Vault type does not match, expected: {expected}, got: {got}, id: {vault_id}"


def invalid_duration(max_duration: int) -> str:
    return f"Invalid duration cannot be greater than {max_duration}"
