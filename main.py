"""
Main entry point for the Sequential Blotto game engine.
Plays a console game against the bot, or a bot-vs-bot demo with --demo.
"""

import argparse
import random

from backend.engine import STATUS_PLAYING
from backend.engine.bot import choose_move
from backend.engine.reducer import create_game, resolve_move, start_game, InvalidMove
from backend.engine.state import GameConfig, Player
from backend.engine.utils import describe_round, print_game_state


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play Sequential Blotto in the terminal")
    parser.add_argument("--troops", type=int, default=GameConfig().starting_troops)
    parser.add_argument("--margin", type=int, default=GameConfig().victory_margin)
    parser.add_argument("--max-rounds", type=int, default=GameConfig().max_rounds)
    parser.add_argument("--seed", type=int, default=None, help="Seed the bot for a repeatable game")
    parser.add_argument("--demo", action="store_true", help="Let two bots play each other")
    return parser.parse_args()


def read_troops(remaining: int) -> int:
    while True:
        raw = input(f"Troops to commit (0-{remaining}): ").strip()
        try:
            return int(raw)
        except ValueError:
            print("Enter a whole number.")


def main():
    args = parse_args()
    config = GameConfig(starting_troops=args.troops, victory_margin=args.margin, max_rounds=args.max_rounds)
    rng = random.Random(args.seed)

    print("Sequential Blotto")
    print("=" * 60)
    human_name = "Bot A" if args.demo else "You"
    state = create_game(
        Player(id="human", name=human_name, troops=0, is_bot=args.demo),
        Player(id="bot", name="AI Opponent", troops=0, is_bot=True),
        config,
    )
    state = start_game(state)
    print_game_state(state)

    while state.status == STATUS_PLAYING:
        if args.demo:
            troops = choose_move(state.player1, rng)
        else:
            troops = read_troops(state.player1.troops)
        try:
            state, _ = resolve_move(state, "human", troops)
        except InvalidMove as e:
            print(f"✗ {e}")
            continue
        state, _ = resolve_move(state, "bot", choose_move(state.player2, rng))
        print(describe_round(state, state.rounds[-1]))
        print(f"  Troops left: {state.player1.name} {state.player1.troops}, "
              f"{state.player2.name} {state.player2.troops}")

    print_game_state(state, verbose=True)


if __name__ == "__main__":
    main()
