"""Scenario runner — replay a scripted sequence of escrow calls.

A scenario is a JSON document describing a fresh engine and the calls
made against it:

    {
      "name": "buyer confirms",
      "start_utc": "2026-01-01T00:00:00+00:00",
      "wallets": {"native": {"bob": 1000}},
      "moderators": ["mallory"],
      "steps": [
        {"op": "register_app", "args": {"owner": "alice", "name": "Shop"}},
        {"op": "pay_order", "at": 60, "args": {...}},
        {"op": "confirm_done", "at": 120, "args": {...}, "expect": "ok"}
      ],
      "expect_balances": {"native": {"carol": 1000}}
    }

``at`` is seconds after start_utc and becomes the call's ``now``.
``expect`` is "ok" or an error code. Moderator identities are minted in
list order (ids from 1). Replaying the same scenario always yields the
same balances and the same event hashes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from custodian.compensation.transfer import InMemoryRail, RailRegistry
from custodian.errors import EscrowError
from custodian.persistence.event_log import EventLog
from custodian.policy.resolver import PolicyResolver
from custodian.registry.moderators import ModeratorRoster
from custodian.service import EscrowService, ServiceResult

SERVICE_OPERATIONS = frozenset({
    "register_app",
    "update_app",
    "pay_order",
    "confirm_done",
    "ask_refund",
    "cancel_refund",
    "refuse_refund",
    "escalate",
    "agree_refund",
    "disagree_refund",
    "claim",
    "withdraw",
})

ROSTER_OPERATIONS = frozenset({"mint_moderator", "transfer_moderator"})

DEFAULT_START = "2026-01-01T00:00:00+00:00"


class ScenarioError(ValueError):
    """The scenario document itself is malformed."""


@dataclass
class StepOutcome:
    index: int
    op: str
    success: bool
    error_code: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    expected: Optional[str] = None

    @property
    def matched(self) -> bool:
        if self.expected is None:
            return True
        if self.expected == "ok":
            return self.success
        return self.error_code == self.expected


@dataclass
class ScenarioReport:
    name: str
    steps: list[StepOutcome] = field(default_factory=list)
    balances: dict[str, dict[str, int]] = field(default_factory=dict)
    orders: list[dict[str, Any]] = field(default_factory=list)
    audit: dict[str, dict[str, Any]] = field(default_factory=dict)
    reputation: list[dict[str, int]] = field(default_factory=list)
    event_count: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ok": self.ok,
            "failures": self.failures,
            "steps": [
                {
                    "index": s.index,
                    "op": s.op,
                    "success": s.success,
                    "error_code": s.error_code,
                    "errors": s.errors,
                    "expected": s.expected,
                }
                for s in self.steps
            ],
            "balances": self.balances,
            "orders": self.orders,
            "reputation": self.reputation,
            "audit": self.audit,
            "event_count": self.event_count,
        }


def load_scenario(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        try:
            scenario = json.load(handle)
        except json.JSONDecodeError as e:
            raise ScenarioError(f"{path}: invalid JSON: {e}") from e
    if not isinstance(scenario, dict) or not isinstance(scenario.get("steps"), list):
        raise ScenarioError(f"{path}: scenario must be an object with a 'steps' list")
    return scenario


class ScenarioRunner:
    """Builds a fresh in-memory engine and drives it through a scenario.

    Usage:
        runner = ScenarioRunner(resolver)
        report = runner.run(load_scenario(Path("examples/scenarios/a.json")))
        assert report.ok
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        event_log: Optional[EventLog] = None,
    ) -> None:
        self._resolver = resolver
        self._event_log = event_log

    def run(self, scenario: dict[str, Any]) -> ScenarioReport:
        start = datetime.fromisoformat(scenario.get("start_utc", DEFAULT_START))
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)

        roster = ModeratorRoster()
        for owner in scenario.get("moderators", []):
            roster.mint(owner)

        rails = RailRegistry()
        wallets: dict[str, dict[str, int]] = scenario.get("wallets", {})
        assets = set(wallets) | {self._resolver.native_asset}
        for asset in sorted(assets):
            rail = InMemoryRail(asset)
            for participant, amount in wallets.get(asset, {}).items():
                rail.mint(participant, amount)
            rails.register_rail(rail)

        service = EscrowService(self._resolver, roster, rails, event_log=self._event_log)
        report = ScenarioReport(name=str(scenario.get("name", "scenario")))

        for index, step in enumerate(scenario["steps"]):
            outcome = self._run_step(index, step, start, service, roster)
            report.steps.append(outcome)
            if not outcome.matched:
                detail = "; ".join(outcome.errors) or "succeeded"
                report.failures.append(
                    f"step {index} ({outcome.op}): expected {outcome.expected}, "
                    f"got {outcome.error_code or 'ok'} ({detail})"
                )

        for asset in rails.list_assets():
            report.balances[asset] = service.balances(asset)
            report.audit[asset] = service.audit(asset).data
        report.orders = [
            {"order_id": o.order_id, "status": o.status.name,
             "resolution": o.resolution.value if o.resolution else None}
            for o in service.list_orders()
        ]
        report.reputation = [
            {"mod_id": r.mod_id, "total_rounds": r.total_rounds,
             "wins": r.wins, "success_rate": r.success_rate}
            for r in (roster.reputation(i) for i in range(1, roster.max_moderator_id() + 1))
        ]
        report.event_count = service.event_log.count

        for asset, expected in scenario.get("expect_balances", {}).items():
            for participant, amount in expected.items():
                actual = service.balance_of(participant, asset)
                if actual != amount:
                    report.failures.append(
                        f"balance {participant}/{asset}: expected {amount}, got {actual}"
                    )
        return report

    @staticmethod
    def _run_step(
        index: int,
        step: dict[str, Any],
        start: datetime,
        service: EscrowService,
        roster: ModeratorRoster,
    ) -> StepOutcome:
        op = step.get("op")
        args = dict(step.get("args", {}))
        expected = step.get("expect")

        if op in ROSTER_OPERATIONS:
            try:
                if op == "mint_moderator":
                    data = {"mod_id": roster.mint(args["owner"])}
                else:
                    roster.transfer(args["mod_id"], args["caller"], args["new_owner"])
                    data = {"mod_id": args["mod_id"], "owner": args["new_owner"]}
            except EscrowError as e:
                return StepOutcome(index, op, False, e.code, [str(e)], expected=expected)
            except KeyError as e:
                raise ScenarioError(f"step {index} ({op}) missing argument {e}") from e
            return StepOutcome(index, op, True, data=data, expected=expected)

        if op not in SERVICE_OPERATIONS:
            raise ScenarioError(f"step {index}: unknown operation {op!r}")

        args["now"] = start + timedelta(seconds=int(step.get("at", 0)))
        try:
            result: ServiceResult = getattr(service, op)(**args)
        except TypeError as e:
            raise ScenarioError(f"step {index} ({op}): bad arguments: {e}") from e
        return StepOutcome(
            index=index,
            op=op,
            success=result.success,
            error_code=result.error_code,
            errors=result.errors,
            data=result.data,
            expected=expected,
        )
