#!/usr/bin/env python3
"""Custodian invariant checks against the escrow policy artifact."""

import json
import sys
from pathlib import Path
from typing import Optional


ROOT = Path(__file__).resolve().parents[1]
PARAMS_FILENAME = "escrow_params.json"

BOUNDED_FIELDS = (
    "moderator_commission_pct",
    "owner_commission_pct",
    "dispute_window_seconds",
    "refuse_window_seconds",
    "claim_window_seconds",
)
COMMISSION_FIELDS = ("moderator_commission_pct", "owner_commission_pct")
WINDOW_FIELDS = ("dispute_window_seconds", "refuse_window_seconds", "claim_window_seconds")

# Two moderator seats plus the owner share, at their caps.
MAX_SEATS = 2


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _range(bound: dict) -> Optional[tuple[int, int, bool]]:
    """(lower, upper, inclusive) or None if the bound is malformed."""
    if "min" in bound and "max" in bound:
        return bound["min"], bound["max"], True
    if "exclusive_min" in bound and "exclusive_max" in bound:
        return bound["exclusive_min"], bound["exclusive_max"], False
    return None


def _admits(rng: tuple[int, int, bool], value: int) -> bool:
    lower, upper, inclusive = rng
    if inclusive:
        return lower <= value <= upper
    return lower < value < upper


def check_bounds(bounds: dict, errors: list[str]) -> dict:
    """Validate each bound is well-formed and admits at least one value."""
    ranges = {}
    for name in BOUNDED_FIELDS:
        bound = bounds.get(name)
        if bound is None:
            errors.append(f"app_bounds missing field: {name}")
            continue
        rng = _range(bound)
        if rng is None:
            errors.append(f"app_bounds.{name} must define min/max or exclusive_min/exclusive_max")
            continue
        lower, upper, inclusive = rng
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in (lower, upper)):
            errors.append(f"app_bounds.{name} limits must be integers")
            continue
        empty = lower > upper if inclusive else lower + 1 >= upper
        if empty:
            errors.append(f"app_bounds.{name} admits no value")
            continue
        ranges[name] = rng
    return ranges


def check(config_dir: Optional[Path] = None) -> int:
    config_dir = Path(config_dir) if config_dir is not None else ROOT / "config"
    params = load_json(config_dir / PARAMS_FILENAME)
    errors: list[str] = []

    if params.get("version") != 1:
        errors.append(f"version must be 1, got {params.get('version')!r}")

    native = params.get("native_asset")
    if not isinstance(native, str) or not native.strip():
        errors.append("native_asset must be a non-empty string")

    # --- Bound invariants ---
    ranges = check_bounds(params.get("app_bounds", {}), errors)

    for name in COMMISSION_FIELDS:
        if name in ranges and ranges[name][0] < 0:
            errors.append(f"{name} lower bound must be >= 0")
    for name in WINDOW_FIELDS:
        if name in ranges and ranges[name][0] < 0:
            errors.append(f"{name} lower bound must be >= 0")

    # Settlement must never take more than the whole amount in commission.
    if all(name in ranges for name in COMMISSION_FIELDS):
        mod_cap = ranges["moderator_commission_pct"][1]
        owner_cap = ranges["owner_commission_pct"][1]
        total_cap = owner_cap + MAX_SEATS * mod_cap
        if total_cap >= 100:
            errors.append(
                f"owner cap + {MAX_SEATS} x moderator cap must be < 100, got {total_cap}"
            )

    # --- Default invariants ---
    defaults = params.get("app_defaults", {})
    for name in BOUNDED_FIELDS:
        if name not in defaults:
            errors.append(f"app_defaults missing field: {name}")
        elif name in ranges and not _admits(ranges[name], defaults[name]):
            errors.append(f"app_defaults.{name}={defaults[name]} is outside its bound")

    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1

    print("Invariant check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(check(Path(sys.argv[1]) if len(sys.argv) > 1 else None))
