"""Asset rails — the only code that moves value into or out of custody.

The escrow state machine is structurally independent of how value is
moved. Settlement only ever credits the internal ledger; a rail is
touched exactly twice in an order's life: once when the payer funds
custody (pull_in) and once per withdrawal (push_out).

Rail contract:
- pull_in(participant, amount) moves value from participant into custody.
- push_out(participant, amount) moves value from custody to participant.
- Both are atomic: they either complete or raise TransferFailed having
  moved nothing.

Adding an asset = implement AssetRail + register with RailRegistry.
Zero changes to settlement, dispute or ledger code.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Protocol, runtime_checkable

from custodian.errors import InvalidArgument, TransferFailed


@runtime_checkable
class AssetRail(Protocol):
    """Contract for moving one asset into and out of custody."""

    @property
    def asset(self) -> str:
        """Asset symbol this rail moves (e.g. 'native', 'usdc')."""
        ...

    @property
    def custody(self) -> int:
        """Value currently held in custody for this asset."""
        ...

    def pull_in(self, participant: str, amount: int) -> None:
        ...

    def push_out(self, participant: str, amount: int) -> None:
        ...


class InMemoryRail:
    """Wallet-backed rail for a single asset.

    Holds an external wallet balance per participant and the custody
    float. Used by tests, the CLI scenario runner and embedding hosts
    that keep value elsewhere and only need the accounting.
    """

    def __init__(self, asset: str) -> None:
        if not asset:
            raise InvalidArgument("Rail asset symbol must be non-empty")
        self._asset = asset
        self._wallets: Dict[str, int] = {}
        self._custody = 0
        self._lock = threading.Lock()
        self._total_in = 0
        self._total_out = 0

    @property
    def asset(self) -> str:
        return self._asset

    @property
    def custody(self) -> int:
        return self._custody

    @property
    def total_in(self) -> int:
        return self._total_in

    @property
    def total_out(self) -> int:
        return self._total_out

    def mint(self, participant: str, amount: int) -> None:
        """Give ``participant`` external funds (test and scenario setup)."""
        if amount <= 0:
            raise InvalidArgument("Mint amount must be positive")
        with self._lock:
            self._wallets[participant] = self._wallets.get(participant, 0) + amount

    def wallet_of(self, participant: str) -> int:
        return self._wallets.get(participant, 0)

    def pull_in(self, participant: str, amount: int) -> None:
        with self._lock:
            held = self._wallets.get(participant, 0)
            if amount <= 0 or held < amount:
                raise TransferFailed(
                    f"Cannot pull {amount} {self._asset} from {participant}: "
                    f"wallet holds {held}"
                )
            self._wallets[participant] = held - amount
            self._custody += amount
            self._total_in += amount

    def push_out(self, participant: str, amount: int) -> None:
        with self._lock:
            if amount <= 0 or self._custody < amount:
                raise TransferFailed(
                    f"Cannot push {amount} {self._asset} to {participant}: "
                    f"custody holds {self._custody}"
                )
            self._custody -= amount
            self._wallets[participant] = self._wallets.get(participant, 0) + amount
            self._total_out += amount


class RailRegistry:
    """Registry of rails keyed by asset symbol."""

    def __init__(self) -> None:
        self._rails: Dict[str, AssetRail] = {}

    def register_rail(self, rail: AssetRail) -> None:
        """Register a rail. Raises on duplicates or non-conforming objects."""
        if not isinstance(rail, AssetRail):
            raise TypeError(f"Rail must implement AssetRail Protocol, got {type(rail)}")
        if rail.asset in self._rails:
            raise ValueError(f"Rail already registered for asset: {rail.asset}")
        self._rails[rail.asset] = rail

    def get_rail(self, asset: str) -> AssetRail:
        rail = self._rails.get(asset)
        if rail is None:
            raise InvalidArgument(f"No rail registered for asset: {asset}")
        return rail

    def has_rail(self, asset: str) -> bool:
        return asset in self._rails

    def list_assets(self) -> List[str]:
        return sorted(self._rails)
