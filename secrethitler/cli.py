"""
Secret Hitler CLI - Command-line interface for the server.

Usage:
    secrethitler serve [--host H] [--port P]     Run the game server
    secrethitler simulate [--players N]          Play a random game in-process
"""

import argparse
import logging
import os
import random
import sys


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Secret Hitler - Multiplayer game server",
        prog="secrethitler",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the game server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument(
        "--port", type=int, default=int(os.getenv("PORT", "8000")), help="Bind port"
    )
    serve_parser.add_argument(
        "--log-level", default=os.getenv("SH_LOG_LEVEL", "INFO"), help="Logging level"
    )

    # Simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Play a random legal game")
    simulate_parser.add_argument("--players", type=int, default=5, help="Number of players (5-10)")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    simulate_parser.add_argument("--quiet", "-q", action="store_true", help="Only print the winner")

    args = parser.parse_args(argv)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "simulate":
        cmd_simulate(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args):
    """Run the FastAPI app under uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "secrethitler.api.app:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


def cmd_simulate(args):
    """Seat N bots and let each pick uniformly among its legal actions."""
    from .engine_core import GameState, Deck, Action, Reducer, legal_actions

    if not 5 <= args.players <= 10:
        print(f"Error: --players must be between 5 and 10, got {args.players}")
        sys.exit(1)

    rng = random.Random(args.seed)
    reducer = Reducer(rng=rng)
    state = GameState(game_id="simulation", deck=Deck.fresh(rng))

    names = [f"Player {i + 1}" for i in range(args.players)]
    for i, name in enumerate(names):
        state = reducer.apply(state, Action.add_player(f"p{i + 1}", name)).new_state
    result = reducer.apply(state, Action.start("p1"))
    state = result.new_state
    _print_changes(result.state_changes, args.quiet)

    if not args.quiet:
        print("\nRoles:")
        for p in state.players:
            print(f"  {p.name}: {p.role.value}")
        print()

    turns = 0
    while not state.is_over:
        candidates = [
            action
            for p in state.players
            for action in legal_actions(state, p.player_id)
        ]
        if not candidates:
            print("Error: no legal actions left")
            sys.exit(1)
        result = reducer.apply(state, rng.choice(candidates))
        if result.success:
            state = result.new_state
            _print_changes(result.state_changes, args.quiet)
        turns += 1

    print(f"\nWinner: {state.phase.winner.value} after {turns} actions")
    print(f"Policies: {state.liberal_policies} Liberal, {state.fascist_policies} Fascist")


def _print_changes(changes, quiet):
    if quiet:
        return
    for line in changes:
        print(f"  {line}")


if __name__ == "__main__":
    main()
