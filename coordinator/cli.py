"""
Case History — Policy CLI

Inspect history capture decisions for deployed case definitions.
Definitions are read from YAML, runtime records from the SQLite store,
engine settings from layered config (history_config.yaml, config/{env}.yaml,
CH_* environment variables).

Usage:
    # List history levels in rank order
    python -m coordinator.cli levels

    # Effective level for a definition, and where it came from
    python -m coordinator.cli resolve --definition claimReview:3

    # Is a plan item captured?
    python -m coordinator.cli activity --definition claimReview:3 --activity assessDamage

    # Every capture decision for a definition
    python -m coordinator.cli plan --definition claimReview:3 -a triageClaim -a assessDamage

    # Owning definition of an identity or entity link
    python -m coordinator.cli link --task-id task_123
    python -m coordinator.cli link --entity-scope-type cmmn --entity-scope-id case_456
"""

import argparse
import json
import sys
from pathlib import Path

from coordinator.links import EntityLink, IdentityLink
from coordinator.store import SQLiteInstanceStore
from engine.config_loader import EngineConfig, load_config
from engine.history_level import HISTORY_LEVEL_ORDER, HistoryLevel, has_task_history_level
from engine.history_manager import CaseHistoryPolicy
from engine.history_policy import HistoryPolicyResolver
from engine.logging import configure_logging
from registry.provider import YamlDefinitionProvider


def _print_json(data):
    print(json.dumps(data, indent=2))


def cmd_levels(args, policy: CaseHistoryPolicy):
    _print_json([
        {
            "level": level.value,
            "rank": rank,
            "captures_tasks": has_task_history_level(level),
        }
        for level, rank in HISTORY_LEVEL_ORDER.items()
    ])


def cmd_resolve(args, policy: CaseHistoryPolicy):
    resolution = policy.resolver.resolve_level(args.definition)
    _print_json({
        "case_definition_id": args.definition,
        "level": resolution.level.value,
        "source": resolution.source,
        "reason": resolution.reason,
        "history_enabled": resolution.level != HistoryLevel.NONE,
    })


def cmd_activity(args, policy: CaseHistoryPolicy):
    _print_json(policy.for_plan_item(args.definition, args.activity).to_dict())


def cmd_plan(args, policy: CaseHistoryPolicy):
    decisions = policy.capture_plan(args.definition, args.activity or [])
    _print_json([d.to_dict() for d in decisions])


def cmd_link(args, policy: CaseHistoryPolicy):
    if args.entity_scope_type:
        link = EntityLink(
            id="cli",
            scope_id=args.entity_scope_id,
            scope_type=args.entity_scope_type,
        )
        decision = policy.for_entity_link(link)
    else:
        link = IdentityLink(
            id="cli",
            scope_definition_id=args.scope_definition,
            scope_id=args.scope_id,
            task_id=args.task_id,
        )
        decision = policy.for_identity_link(link)
    _print_json(decision.to_dict())


def _check_link_args(parser: argparse.ArgumentParser, args):
    """Entity links need a scope type and id; identity options don't mix in."""
    entity = args.entity_scope_type or args.entity_scope_id
    identity = args.scope_definition or args.scope_id or args.task_id
    if entity and not (args.entity_scope_type and args.entity_scope_id):
        parser.error("--entity-scope-type and --entity-scope-id must be given together")
    if entity and identity:
        parser.error("entity link options cannot be combined with identity link options")


def build_policy(args) -> tuple[CaseHistoryPolicy, SQLiteInstanceStore]:
    config = load_config(env=args.env, project_root=args.root)
    configure_logging(
        level=args.log_level or config.get("logging.level", "WARNING"),
        fmt=config.get("logging.format", "json"),
    )
    engine_config = EngineConfig.from_config(config)
    root = Path(args.root)
    provider = YamlDefinitionProvider(
        args.definitions or root / config.get("definitions.path", "definitions")
    )
    store = SQLiteInstanceStore(args.db or root / config.get("store.path", "case_history.db"))
    resolver = HistoryPolicyResolver(engine_config, provider, store)
    return CaseHistoryPolicy(resolver), store


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Case history policy inspector",
    )
    parser.add_argument("--root", default=".", help="Project root holding history_config.yaml")
    parser.add_argument("--env", default="dev", help="Config overlay profile")
    parser.add_argument("--definitions", help="Directory of YAML case definitions")
    parser.add_argument("--db", help="SQLite instance store path")
    parser.add_argument("--log-level", help="DEBUG shows every fallback point")
    subs = parser.add_subparsers(dest="command")

    subs.add_parser("levels", help="List history levels in rank order")

    resolve_p = subs.add_parser("resolve", help="Effective level for a definition")
    resolve_p.add_argument("--definition", "-d")

    activity_p = subs.add_parser("activity", help="Capture decision for one plan item")
    activity_p.add_argument("--definition", "-d", required=True)
    activity_p.add_argument("--activity", "-a", required=True)

    plan_p = subs.add_parser("plan", help="All capture decisions for a definition")
    plan_p.add_argument("--definition", "-d")
    plan_p.add_argument("--activity", "-a", action="append", help="Repeatable")

    link_p = subs.add_parser("link", help="Capture decision for an identity or entity link")
    link_p.add_argument("--scope-definition")
    link_p.add_argument("--scope-id")
    link_p.add_argument("--task-id")
    link_p.add_argument("--entity-scope-type", help="cmmn or task")
    link_p.add_argument("--entity-scope-id")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)
    if args.command == "link":
        _check_link_args(link_p, args)

    try:
        policy, store = build_policy(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    commands = {
        "levels": cmd_levels,
        "resolve": cmd_resolve,
        "activity": cmd_activity,
        "plan": cmd_plan,
        "link": cmd_link,
    }
    try:
        commands[args.command](args, policy)
    finally:
        store.close()


if __name__ == "__main__":
    main()
