"""Policy resolver — loads escrow parameters from the config directory.

The engine never hard-codes commission caps or window bounds. They live
in config/escrow_params.json and are resolved once at construction; the
App Registry validates every write against them before any order can
trust an app's values.

Bounds come in two flavours, matching the artifact:
    {"min": a, "max": b}                     inclusive, a <= v <= b
    {"exclusive_min": a, "exclusive_max": b} exclusive, a <  v <  b
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

PARAMS_FILENAME = "escrow_params.json"

APP_BOUNDED_FIELDS = (
    "moderator_commission_pct",
    "owner_commission_pct",
    "dispute_window_seconds",
    "refuse_window_seconds",
    "claim_window_seconds",
)


@dataclass(frozen=True)
class Bound:
    """A numeric range a configuration value must fall within."""
    lower: int
    upper: int
    inclusive: bool = True

    def contains(self, value: int) -> bool:
        if isinstance(value, bool) or not isinstance(value, int):
            return False
        if self.inclusive:
            return self.lower <= value <= self.upper
        return self.lower < value < self.upper

    def describe(self) -> str:
        if self.inclusive:
            return f"[{self.lower}, {self.upper}]"
        return f"({self.lower}, {self.upper})"

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Bound:
        if "min" in data or "max" in data:
            return Bound(lower=int(data["min"]), upper=int(data["max"]), inclusive=True)
        return Bound(
            lower=int(data["exclusive_min"]),
            upper=int(data["exclusive_max"]),
            inclusive=False,
        )

    def to_dict(self) -> dict[str, int]:
        if self.inclusive:
            return {"min": self.lower, "max": self.upper}
        return {"exclusive_min": self.lower, "exclusive_max": self.upper}


class PolicyResolver:
    """Resolved escrow policy.

    Usage:
        resolver = PolicyResolver.from_config_dir(Path("config"))
        bound = resolver.app_bound("owner_commission_pct")
        if not bound.contains(value): ...
    """

    def __init__(self, params: dict[str, Any]) -> None:
        self._params = params
        raw_bounds = params.get("app_bounds", {})
        missing = [f for f in APP_BOUNDED_FIELDS if f not in raw_bounds]
        if missing:
            raise ValueError(f"Missing app bounds in policy: {', '.join(missing)}")
        self._bounds = {name: Bound.from_dict(raw_bounds[name]) for name in APP_BOUNDED_FIELDS}
        self._native_asset = str(params.get("native_asset", "native"))

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        """Load from <config_dir>/escrow_params.json."""
        path = Path(config_dir) / PARAMS_FILENAME
        with path.open("r", encoding="utf-8") as handle:
            return cls(json.load(handle))

    @property
    def native_asset(self) -> str:
        """Asset symbol paid by attached value rather than a token pull."""
        return self._native_asset

    def app_bound(self, field_name: str) -> Bound:
        try:
            return self._bounds[field_name]
        except KeyError:
            raise ValueError(f"No bound configured for field: {field_name}") from None

    def app_bounds(self) -> dict[str, Bound]:
        return dict(self._bounds)

    def app_defaults(self) -> dict[str, int]:
        """Default app parameters (used by the CLI scenario runner)."""
        return {k: int(v) for k, v in self._params.get("app_defaults", {}).items()}

    def as_dict(self) -> dict[str, Any]:
        return {
            "native_asset": self._native_asset,
            "app_bounds": {k: b.to_dict() for k, b in self._bounds.items()},
            "app_defaults": self.app_defaults(),
        }
