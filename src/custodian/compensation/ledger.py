"""Balance ledger — per-(participant, asset) credits awaiting withdrawal.

Settlement never moves value directly. Every payout is a credit here,
and value only leaves custody when the owner of a balance withdraws it.

Invariants:
- Balances are non-negative integers.
- credit() is the only operation that increases a balance.
- withdraw() decrements first, then calls the rail; if the rail raises
  anything the decrement is restored before the error propagates, and
  errors other than TransferFailed are re-raised as TransferFailed.
  A second withdrawal racing the first always observes the decremented
  balance, so the pair can never take out more than was credited.
- For each asset: total_credited - total_withdrawn == sum of balances.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict, Tuple

from custodian.compensation.transfer import AssetRail
from custodian.errors import InvalidArgument, TransferFailed

LedgerKey = Tuple[str, str]


class BalanceLedger:
    """Internal credit balances, one entry per (participant, asset).

    Usage:
        ledger = BalanceLedger()
        ledger.credit("seller", "native", 980)
        ledger.withdraw("seller", "native", 500, rail)
        ledger.balance_of("seller", "native")   # 480
    """

    def __init__(self) -> None:
        self._balances: Dict[LedgerKey, int] = {}
        self._key_locks: Dict[LedgerKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        # Guards the balance map and the per-asset totals for readers
        # that walk every key.
        self._state_lock = threading.Lock()
        self._credited: Dict[str, int] = defaultdict(int)
        self._withdrawn: Dict[str, int] = defaultdict(int)

    def credit(self, participant: str, asset: str, amount: int) -> int:
        """Increase a balance. Returns the new balance.

        Zero credits are accepted and leave the balance unchanged so that
        settlement can credit every party uniformly.
        """
        if amount < 0:
            raise InvalidArgument(f"Credit amount must be non-negative, got {amount}")
        key = (participant, asset)
        with self._lock_for(key):
            with self._state_lock:
                new_balance = self._balances.get(key, 0) + amount
                self._balances[key] = new_balance
                self._credited[asset] += amount
        return new_balance

    def withdraw(
        self,
        participant: str,
        asset: str,
        amount: int,
        rail: AssetRail,
    ) -> int:
        """Withdraw ``amount`` to the participant through ``rail``.

        Returns the remaining balance. Raises InvalidArgument if the
        amount is not positive or exceeds the balance, TransferFailed if
        the rail fails for any reason (balance restored).
        """
        if amount <= 0:
            raise InvalidArgument(f"Withdrawal amount must be positive, got {amount}")
        if rail.asset != asset:
            raise InvalidArgument(f"Rail moves {rail.asset}, not {asset}")
        key = (participant, asset)
        with self._lock_for(key):
            balance = self._balances.get(key, 0)
            if amount > balance:
                raise InvalidArgument(
                    f"Insufficient balance: {participant} holds {balance} {asset}, "
                    f"requested {amount}"
                )
            with self._state_lock:
                self._balances[key] = balance - amount
                self._withdrawn[asset] += amount

        try:
            rail.push_out(participant, amount)
        except Exception as e:
            with self._lock_for(key), self._state_lock:
                self._balances[key] = self._balances.get(key, 0) + amount
                self._withdrawn[asset] -= amount
            if isinstance(e, TransferFailed):
                raise
            raise TransferFailed(
                f"Rail failed pushing {amount} {asset} to {participant}: {e}"
            ) from e
        return self.balance_of(participant, asset)

    def balance_of(self, participant: str, asset: str) -> int:
        return self._balances.get((participant, asset), 0)

    def balances(self, asset: str) -> Dict[str, int]:
        """Non-zero balances for one asset, keyed by participant."""
        with self._state_lock:
            items = sorted(self._balances.items())
        return {
            p: v for (p, a), v in items
            if a == asset and v > 0
        }

    def total_credited(self, asset: str) -> int:
        with self._state_lock:
            return self._credited.get(asset, 0)

    def total_withdrawn(self, asset: str) -> int:
        with self._state_lock:
            return self._withdrawn.get(asset, 0)

    def liabilities(self, asset: str) -> int:
        """Sum of all balances for an asset."""
        with self._state_lock:
            items = list(self._balances.items())
        return sum(v for (_, a), v in items if a == asset)

    def _lock_for(self, key: LedgerKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock
