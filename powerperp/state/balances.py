"""
Multi-denom token ledger with supply tracking.

Implements the ``TokenLedger`` collaborator: balances keyed by
``(account, denom)``, a per-denom total supply, and a per-denom admin (the
only account whose engine may mint and burn, checked by ``set_open``).
"""

from __future__ import annotations

from typing import Dict, Tuple

Account = str
Denom = str
Amount = int  # Non-negative integer (arbitrary precision)


class InsufficientBalanceError(ValueError):
    """A debit would take a balance below zero."""


class TokenLedger:
    """
    Balance table mapping (account, denom) -> amount.

    Zero balances are removed to keep the table sparse. Do not rely on dict
    iteration order; callers sort keys where order matters.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[Account, Denom], Amount] = {}
        self._supply: Dict[Denom, Amount] = {}
        self._admins: Dict[Denom, Account] = {}

    # -- Denoms --------------------------------------------------------------

    def create_denom(self, denom: Denom, admin: Account | None = None) -> None:
        if not denom:
            raise ValueError("denom must be non-empty")
        if denom in self._supply:
            raise ValueError(f"denom already exists: {denom}")
        self._supply[denom] = 0
        if admin is not None:
            self._admins[denom] = admin

    def set_admin(self, denom: Denom, admin: Account) -> None:
        self._require_denom(denom)
        self._admins[denom] = admin

    def admin_of(self, denom: Denom) -> Account | None:
        return self._admins.get(denom)

    def _require_denom(self, denom: Denom) -> None:
        if denom not in self._supply:
            raise LookupError(f"unknown denom: {denom}")

    # -- Balances ------------------------------------------------------------

    def balance_of(self, account: Account, denom: Denom) -> Amount:
        """Balance of *account* in *denom*. Returns 0 if not found."""
        return self._balances.get((account, denom), 0)

    def total_supply(self, denom: Denom) -> Amount:
        return self._supply.get(denom, 0)

    def _set(self, account: Account, denom: Denom, amount: Amount) -> None:
        if amount == 0:
            self._balances.pop((account, denom), None)
        else:
            self._balances[(account, denom)] = amount

    def _credit(self, account: Account, denom: Denom, amount: Amount) -> None:
        self._set(account, denom, self.balance_of(account, denom) + amount)

    def _debit(self, account: Account, denom: Denom, amount: Amount) -> None:
        current = self.balance_of(account, denom)
        if current < amount:
            raise InsufficientBalanceError(
                f"Insufficient balance: {account} holds {current}{denom}, needs {amount}{denom}"
            )
        self._set(account, denom, current - amount)

    @staticmethod
    def _require_amount(amount: Amount) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TypeError("amount must be an int")
        if amount < 0:
            raise ValueError(f"Amount cannot be negative: {amount}")

    def mint(self, denom: Denom, recipient: Account, amount: Amount) -> None:
        """
        Create *amount* new units of *denom* in *recipient*'s account.

        Raises:
            LookupError: If the denom was never created
            ValueError: If amount is negative
        """
        self._require_denom(denom)
        self._require_amount(amount)
        self._credit(recipient, denom, amount)
        self._supply[denom] += amount

    def burn(self, denom: Denom, holder: Account, amount: Amount) -> None:
        """
        Destroy *amount* units of *denom* held by *holder*.

        Raises:
            InsufficientBalanceError: If holder has less than amount
        """
        self._require_denom(denom)
        self._require_amount(amount)
        self._debit(holder, denom, amount)
        self._supply[denom] -= amount

    def transfer(self, denom: Denom, sender: Account, recipient: Account, amount: Amount) -> None:
        """
        Move *amount* of *denom* from *sender* to *recipient*.

        Raises:
            InsufficientBalanceError: If sender has less than amount
        """
        self._require_denom(denom)
        self._require_amount(amount)
        self._debit(sender, denom, amount)
        self._credit(recipient, denom, amount)

    def get_balances_for_denom(self, denom: Denom) -> Dict[Account, Amount]:
        """All non-zero balances of *denom*, keyed by account."""
        return {acct: amount for (acct, d), amount in sorted(self._balances.items()) if d == denom}

    def verify_supply(self) -> bool:
        """True if every denom's supply equals the sum of its balances."""
        return all(
            sum(self.get_balances_for_denom(denom).values()) == supply
            for denom, supply in self._supply.items()
        )

    # -- Rollback ------------------------------------------------------------

    def snapshot(self) -> tuple[dict, dict, dict]:
        return dict(self._balances), dict(self._supply), dict(self._admins)

    def restore(self, snapshot: tuple[dict, dict, dict]) -> None:
        balances, supply, admins = snapshot
        self._balances = dict(balances)
        self._supply = dict(supply)
        self._admins = dict(admins)

    def __repr__(self) -> str:
        return f"TokenLedger({len(self._balances)} balances, {len(self._supply)} denoms)"
