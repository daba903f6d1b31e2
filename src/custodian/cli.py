"""Custodian CLI — command-line interface for the escrow engine.

Usage:
    python -m custodian.cli policy
    python -m custodian.cli check-invariants
    python -m custodian.cli run-scenario examples/scenarios/scenario_b_sole_moderator.json
    python -m custodian.cli run-scenario FILE --events out.jsonl
    python -m custodian.cli verify-events out.jsonl
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from custodian.persistence.event_log import EventLog
from custodian.policy.resolver import PolicyResolver
from custodian.scenario import ScenarioError, ScenarioRunner, load_scenario


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"


def cmd_policy(args: argparse.Namespace) -> int:
    try:
        resolver = PolicyResolver.from_config_dir(args.config)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps(resolver.as_dict(), indent=2, sort_keys=True))
    return 0


def cmd_run_scenario(args: argparse.Namespace) -> int:
    """Run a scenario file against a fresh in-memory engine."""
    try:
        resolver = PolicyResolver.from_config_dir(args.config)
        scenario = load_scenario(args.file)
        event_log = EventLog(storage_path=args.events) if args.events else None
        report = ScenarioRunner(resolver, event_log=event_log).run(scenario)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1

    print(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    if not report.ok:
        print(f"Failed: {'; '.join(report.failures)}", file=sys.stderr)
        return 1
    return 0


def cmd_verify_events(args: argparse.Namespace) -> int:
    """Reload a JSONL event log with integrity checks."""
    try:
        log = EventLog.verify_file(args.file)
    except (OSError, ValueError, KeyError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    last = log.last_event
    print(json.dumps({
        "events": log.count,
        "kinds": log.histogram(),
        "last_event_id": last.event_id if last else None,
        "last_event_hash": last.event_hash if last else None,
    }, indent=2))
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run escrow policy invariant checks."""
    # Import and run the existing check_invariants tool
    tools_dir = Path(__file__).resolve().parents[2] / "tools"
    sys.path.insert(0, str(tools_dir))
    from check_invariants import check
    return check(args.config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="custodian",
        description="Custodian — multi-tenant escrow engine CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    sub = parser.add_subparsers(dest="command")

    # policy
    sub.add_parser("policy", help="Show resolved escrow policy")

    # check-invariants
    sub.add_parser("check-invariants", help="Run escrow policy invariant checks")

    # run-scenario
    p_run = sub.add_parser("run-scenario", help="Run a JSON scenario file")
    p_run.add_argument("file", type=Path, help="Scenario file")
    p_run.add_argument("--events", type=Path, help="Write the event log to this JSONL file")

    # verify-events
    p_verify = sub.add_parser("verify-events", help="Verify a JSONL event log")
    p_verify.add_argument("file", type=Path, help="Event log file")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "policy": cmd_policy,
        "check-invariants": cmd_check_invariants,
        "run-scenario": cmd_run_scenario,
        "verify-events": cmd_verify_events,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
