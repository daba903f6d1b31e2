"""Tests for the scenario runner — every shipped scenario must replay cleanly."""

import json

import pytest
from pathlib import Path

from custodian.persistence.event_log import EventLog
from custodian.policy.resolver import PolicyResolver
from custodian.scenario import ScenarioError, ScenarioRunner, load_scenario


ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = ROOT / "config"
SCENARIO_DIR = ROOT / "examples" / "scenarios"
SCENARIOS = sorted(SCENARIO_DIR.glob("*.json"))


@pytest.fixture
def runner() -> ScenarioRunner:
    return ScenarioRunner(PolicyResolver.from_config_dir(CONFIG_DIR))


class TestShippedScenarios:
    def test_scenarios_present(self) -> None:
        assert len(SCENARIOS) == 4

    @pytest.mark.parametrize("path", SCENARIOS, ids=lambda p: p.stem)
    def test_scenario_passes(self, runner: ScenarioRunner, path: Path) -> None:
        report = runner.run(load_scenario(path))
        assert report.ok, report.failures
        for asset, audit in report.audit.items():
            assert audit["balanced"], asset

    def test_replay_is_deterministic(self, tmp_path) -> None:
        resolver = PolicyResolver.from_config_dir(CONFIG_DIR)
        scenario = load_scenario(SCENARIO_DIR / "scenario_c_tie_break.json")
        hashes = []
        for name in ("first.jsonl", "second.jsonl"):
            log = EventLog(storage_path=tmp_path / name)
            report = ScenarioRunner(resolver, event_log=log).run(scenario)
            assert report.ok
            hashes.append(log.event_hashes())
        assert hashes[0] == hashes[1]
        assert hashes[0]


class TestReport:
    def test_failed_expectation_reported(self, runner: ScenarioRunner) -> None:
        report = runner.run({
            "wallets": {"native": {"bob": 100}},
            "moderators": ["mallory"],
            "steps": [
                {"op": "register_app", "args": {"owner": "alice", "name": "Shop"}},
                {"op": "pay_order", "args": {
                    "payer": "bob", "app_id": 1, "buyer": "bob", "seller": "carol",
                    "asset": "native", "amount": 100, "primary_moderator_id": 1,
                    "value": 100,
                }},
                {"op": "confirm_done", "args": {"order_id": 1, "caller": "carol"},
                 "expect": "ok"},
            ],
            "expect_balances": {"native": {"carol": 100}},
        })
        assert not report.ok
        assert len(report.failures) == 2
        assert "expected ok, got unauthorized" in report.failures[0]
        assert report.steps[2].error_code == "unauthorized"

    def test_to_dict_is_json_ready(self, runner: ScenarioRunner) -> None:
        report = runner.run(load_scenario(SCENARIO_DIR / "scenario_a_confirm.json"))
        data = json.loads(json.dumps(report.to_dict()))
        assert data["ok"] is True
        assert data["balances"]["native"]["carol"] == 500

    def test_roster_operations(self, runner: ScenarioRunner) -> None:
        report = runner.run({
            "steps": [
                {"op": "mint_moderator", "args": {"owner": "mallory"}},
                {"op": "transfer_moderator",
                 "args": {"mod_id": 1, "caller": "oscar", "new_owner": "oscar"},
                 "expect": "unauthorized"},
                {"op": "transfer_moderator",
                 "args": {"mod_id": 1, "caller": "mallory", "new_owner": "oscar"},
                 "expect": "ok"},
            ],
        })
        assert report.ok, report.failures
        assert report.reputation == [
            {"mod_id": 1, "total_rounds": 0, "wins": 0, "success_rate": 0},
        ]


class TestMalformedScenarios:
    def test_unknown_operation(self, runner: ScenarioRunner) -> None:
        with pytest.raises(ScenarioError, match="unknown operation"):
            runner.run({"steps": [{"op": "steal", "args": {}}]})

    def test_bad_arguments(self, runner: ScenarioRunner) -> None:
        with pytest.raises(ScenarioError, match="bad arguments"):
            runner.run({"steps": [{"op": "confirm_done", "args": {"order": 1}}]})

    def test_missing_roster_argument(self, runner: ScenarioRunner) -> None:
        with pytest.raises(ScenarioError, match="missing argument"):
            runner.run({"steps": [{"op": "mint_moderator", "args": {}}]})

    def test_missing_steps(self, tmp_path) -> None:
        path = tmp_path / "empty.json"
        path.write_text(json.dumps({"name": "x"}), encoding="utf-8")
        with pytest.raises(ScenarioError, match="steps"):
            load_scenario(path)

    def test_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ScenarioError, match="invalid JSON"):
            load_scenario(path)
