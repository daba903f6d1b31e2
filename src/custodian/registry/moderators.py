"""Moderator registry contract and an in-memory reference roster.

Moderator identities are issued and owned outside the escrow engine.
The engine only needs three things from whoever issues them:

    max_moderator_id()          highest id issued so far (ids start at 1)
    owner_of(mod_id)            current owner of an identity
    record_outcome(mod_id, won) reputation update after a vote resolves

Ownership is looked up at vote time and never cached: an identity can
change hands between being seated on a dispute and casting its vote.

ModeratorRoster implements the contract in memory and adds the issuing
side (mint, transfer) plus reputation reads. Any other implementation
that satisfies the ModeratorRegistry Protocol can replace it without
changes to the dispute engine.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from custodian.errors import InvalidArgument, Unauthorized


@runtime_checkable
class ModeratorRegistry(Protocol):
    """Contract the dispute engine consumes."""

    def max_moderator_id(self) -> int:
        ...

    def owner_of(self, mod_id: int) -> str:
        ...

    def record_outcome(self, mod_id: int, won: bool) -> None:
        ...


@dataclass(frozen=True)
class ModeratorReputation:
    """Reputation counters for one moderator identity."""
    mod_id: int
    total_rounds: int
    wins: int

    @property
    def success_rate(self) -> int:
        """Integer percentage, truncated. Zero before the first round."""
        if self.total_rounds == 0:
            return 0
        return self.wins * 100 // self.total_rounds


class ModeratorRoster:
    """In-memory moderator registry.

    Usage:
        roster = ModeratorRoster()
        mod_id = roster.mint("carol")
        roster.transfer(mod_id, "carol", "dave")
        roster.record_outcome(mod_id, won=True)
        roster.reputation(mod_id).success_rate
    """

    def __init__(self) -> None:
        self._owners: dict[int, str] = {}
        self._rounds: dict[int, int] = {}
        self._wins: dict[int, int] = {}
        self._lock = threading.Lock()

    def mint(self, owner: str) -> int:
        """Issue a new moderator identity to ``owner``."""
        if not owner or not owner.strip():
            raise InvalidArgument("Moderator owner must be non-empty")
        with self._lock:
            mod_id = len(self._owners) + 1
            self._owners[mod_id] = owner
            self._rounds[mod_id] = 0
            self._wins[mod_id] = 0
        return mod_id

    def transfer(self, mod_id: int, caller: str, new_owner: str) -> None:
        """Hand an identity to ``new_owner``. Only the current owner may."""
        if not new_owner or not new_owner.strip():
            raise InvalidArgument("New moderator owner must be non-empty")
        with self._lock:
            current = self._owner(mod_id)
            if caller != current:
                raise Unauthorized(f"Only the owner of moderator {mod_id} can transfer it")
            self._owners[mod_id] = new_owner

    def max_moderator_id(self) -> int:
        return len(self._owners)

    def owner_of(self, mod_id: int) -> str:
        with self._lock:
            return self._owner(mod_id)

    def record_outcome(self, mod_id: int, won: bool) -> None:
        with self._lock:
            self._owner(mod_id)
            self._rounds[mod_id] += 1
            if won:
                self._wins[mod_id] += 1

    def reputation(self, mod_id: int) -> ModeratorReputation:
        with self._lock:
            self._owner(mod_id)
            return ModeratorReputation(
                mod_id=mod_id,
                total_rounds=self._rounds[mod_id],
                wins=self._wins[mod_id],
            )

    def owned_by(self, owner: str) -> list[int]:
        return sorted(m for m, o in self._owners.items() if o == owner)

    def _owner(self, mod_id: int) -> str:
        owner = self._owners.get(mod_id)
        if owner is None:
            raise InvalidArgument(f"Unknown moderator ID: {mod_id}")
        return owner
