"""Vault storage with an operator index, plus empty-vault garbage collection.

``VaultStore`` keeps the primary ``id -> Vault`` map and a secondary
``operator -> sorted ids`` index. Both are written together by every
mutating method, so the index never disagrees with the map.

Ids come from a monotonic counter starting at 1 and are never reused, even
after a vault is garbage collected.
"""

from __future__ import annotations

import bisect
from dataclasses import replace
from typing import TYPE_CHECKING, Iterator

from .errors import (
    NO_EMPTY_VAULTS,
    OPERATOR_MISMATCH,
    OVER_BURN,
    OVER_SUBTRACT,
    AuthorizationError,
    StateError,
    ValidationError,
    vault_does_not_exist,
)
from .types import ActionParams, EventKind, Response, Vault, VaultType

if TYPE_CHECKING:
    from .context import PowerContext

DEFAULT_GC_LIMIT: int = 500


class VaultStore:
    def __init__(self) -> None:
        self._vaults: dict[int, Vault] = {}
        self._by_operator: dict[str, list[int]] = {}
        self._counter: int = 0

    # -- Reads ---------------------------------------------------------------

    @property
    def next_id(self) -> int:
        return self._counter + 1

    def __len__(self) -> int:
        return len(self._vaults)

    def __contains__(self, vault_id: object) -> bool:
        return vault_id in self._vaults

    def get(self, vault_id: int) -> Vault | None:
        return self._vaults.get(vault_id)

    def load(self, vault_id: int) -> Vault:
        """Return the vault or raise StateError if it does not exist."""
        vault = self._vaults.get(vault_id)
        if vault is None:
            raise StateError(vault_does_not_exist(vault_id))
        return vault

    def ids(self, start_after: int | None = None, limit: int | None = None) -> list[int]:
        """Vault ids in ascending order, strictly after *start_after*."""
        ordered = sorted(self._vaults)
        if start_after is not None:
            ordered = ordered[bisect.bisect_right(ordered, start_after):]
        return ordered if limit is None else ordered[:limit]

    def by_operator(
        self, operator: str, start_after: int | None = None, limit: int | None = None,
    ) -> list[Vault]:
        ids = self._by_operator.get(operator, [])
        if start_after is not None:
            ids = ids[bisect.bisect_right(ids, start_after):]
        if limit is not None:
            ids = ids[:limit]
        return [self._vaults[i] for i in ids]

    def __iter__(self) -> Iterator[Vault]:
        return (self._vaults[i] for i in sorted(self._vaults))

    # -- Writes --------------------------------------------------------------

    def create(self, operator: str, vault_type: VaultType) -> int:
        self._counter += 1
        vault_id = self._counter
        self._vaults[vault_id] = Vault(id=vault_id, operator=operator, vault_type=vault_type)
        bisect.insort(self._by_operator.setdefault(operator, []), vault_id)
        return vault_id

    def remove(self, vault_id: int) -> Vault:
        vault = self.load(vault_id)
        del self._vaults[vault_id]
        ids = self._by_operator[vault.operator]
        ids.remove(vault_id)
        if not ids:
            del self._by_operator[vault.operator]
        return vault

    def _owned(self, vault_id: int, operator: str) -> Vault:
        vault = self.load(vault_id)
        if vault.operator != operator:
            raise AuthorizationError(OPERATOR_MISMATCH)
        return vault

    def _save(self, vault: Vault) -> Vault:
        # operator and id are immutable, so the index needs no update here
        self._vaults[vault.id] = vault
        return vault

    def update(self, vault_id: int, operator: str, collateral: int, short_amount: int) -> Vault:
        """Credit collateral and short exposure."""
        vault = self._owned(vault_id, operator)
        return self._save(replace(
            vault,
            collateral=vault.collateral + collateral,
            short_amount=vault.short_amount + short_amount,
        ))

    def check_can_burn(self, vault_id: int, operator: str, short_amount: int, collateral: int) -> Vault:
        vault = self._owned(vault_id, operator)
        if collateral > vault.collateral or short_amount > vault.short_amount:
            raise ValidationError(OVER_BURN)
        return vault

    def burn(self, vault_id: int, operator: str, collateral: int, short_amount: int) -> Vault:
        """Debit collateral and short exposure."""
        vault = self.check_can_burn(vault_id, operator, short_amount, collateral)
        return self._save(replace(
            vault,
            collateral=vault.collateral - collateral,
            short_amount=vault.short_amount - short_amount,
        ))

    def add_collateral(self, vault_id: int, operator: str, collateral: int) -> Vault:
        vault = self._owned(vault_id, operator)
        return self._save(replace(vault, collateral=vault.collateral + collateral))

    def subtract_collateral(self, vault_id: int, operator: str, collateral: int) -> Vault:
        vault = self._owned(vault_id, operator)
        if collateral > vault.collateral:
            raise ValidationError(OVER_SUBTRACT)
        return self._save(replace(vault, collateral=vault.collateral - collateral))

    # -- Rollback ------------------------------------------------------------

    def snapshot(self) -> tuple[dict[int, Vault], dict[str, list[int]], int]:
        return (
            dict(self._vaults),
            {op: list(ids) for op, ids in self._by_operator.items()},
            self._counter,
        )

    def restore(self, snap: tuple[dict[int, Vault], dict[str, list[int]], int]) -> None:
        vaults, by_operator, counter = snap
        self._vaults = dict(vaults)
        self._by_operator = {op: list(ids) for op, ids in by_operator.items()}
        self._counter = counter

    def __repr__(self) -> str:
        return f"VaultStore({len(self._vaults)} vaults, next_id={self.next_id})"


# -- Garbage collection ------------------------------------------------------

def remove_empty_vaults(
    store: VaultStore, start_after: int | None = None, limit: int | None = None,
) -> list[int]:
    """Remove vaults with zero collateral and zero exposure.

    Scans ascending ids after *start_after*, at most *limit* (default 500)
    of them. Raises StateError when nothing was removed.
    """
    removed = [
        vault_id
        for vault_id in store.ids(start_after, DEFAULT_GC_LIMIT if limit is None else limit)
        if store.load(vault_id).is_empty()
    ]
    if not removed:
        raise StateError(NO_EMPTY_VAULTS)
    for vault_id in removed:
        store.remove(vault_id)
    return removed


def handle_remove_empty_vaults(ctx: PowerContext, params: ActionParams) -> Response:
    removed = remove_empty_vaults(ctx.vaults, params.start_after, params.limit)
    return Response().add_event(
        EventKind.REMOVE_EMPTY_VAULTS,
        removed=",".join(str(i) for i in removed),
        count=len(removed),
    )
