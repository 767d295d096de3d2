"""
Arena CLI - Command-line interface for the engine.

Usage:
    arena games                              List game types
    arena generate <game_type> [--seed S]    Generate a puzzle instance
    arena replay <turn_file>                 Re-validate a recorded turn

A turn file is JSON with `game_type`, `spec` (the full generated spec)
and `events` (the stored log, start event included).
"""

import argparse
import json
import logging
import sys

from .config import ArenaSettings


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Arena - Turn Validation & Scoring Engine",
        prog="arena",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Games command
    subparsers.add_parser("games", help="List game types")

    # Generate command
    generate_parser = subparsers.add_parser("generate", help="Generate a puzzle instance")
    generate_parser.add_argument("game_type", help="Game type, e.g. memory_cards")
    generate_parser.add_argument("--seed", help="Seed (default: a fresh one)")
    generate_parser.add_argument(
        "--client", action="store_true", help="Print only the client projection"
    )

    # Replay command
    replay_parser = subparsers.add_parser("replay", help="Re-validate a recorded turn")
    replay_parser.add_argument("turn_file", help="Path to turn JSON file")
    replay_parser.add_argument(
        "--signals", action="store_true", help="Include reviewer signals"
    )

    args = parser.parse_args()

    settings = ArenaSettings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "games":
        cmd_games(args, settings)
    elif args.command == "generate":
        cmd_generate(args, settings)
    elif args.command == "replay":
        cmd_replay(args, settings)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_games(args, settings):
    """List game types."""
    from .api import TurnService

    for game in TurnService(settings=settings).list_games():
        print(f"{game.game_type:<16} {game.time_limit_ms // 1000:>4}s  {', '.join(game.event_types)}")


def cmd_generate(args, settings):
    """Generate a puzzle instance."""
    from .engine_core import new_seed
    from .errors import UnknownGameTypeError
    from .games import get_game_module

    try:
        module = get_game_module(args.game_type)
    except UnknownGameTypeError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    try:
        config = module.make_config(settings.game_overrides.get(args.game_type))
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    seed = args.seed or new_seed("cli")
    spec = module.generate(seed, config)
    data = module.project(spec) if args.client else spec.to_dict()
    print(json.dumps(data, indent=2, sort_keys=True))


def cmd_replay(args, settings):
    """Re-validate a recorded turn."""
    from .engine_core import Event, verify_chain
    from .errors import UnknownGameTypeError
    from .games import get_game_module

    try:
        with open(args.turn_file, "r", encoding="utf-8") as f:
            turn = json.load(f)
    except FileNotFoundError:
        print(f"Error: File not found: {args.turn_file}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON: {e}")
        sys.exit(1)

    try:
        module = get_game_module(turn["game_type"])
        spec = module.spec_from_dict(turn["spec"])
        events = [Event.from_dict(e) for e in turn.get("events", [])]
    except UnknownGameTypeError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        print(f"Error: Malformed turn file: {e}")
        sys.exit(1)

    thresholds = module.thresholds.merged(settings.timing_overrides.get(module.game_type))
    result = module.validate(spec, events, grace_ms=settings.grace_ms, thresholds=thresholds)

    token = turn.get("turn_token")
    if token:
        broken_at = verify_chain(token, events)
        if broken_at is not None:
            result = result.with_signals(hash_chain_broken=True, hash_chain_broken_at=broken_at)

    print(json.dumps(result.to_dict(include_signals=args.signals), indent=2, sort_keys=True))
    if not result.valid:
        sys.exit(2)


if __name__ == "__main__":
    main()
