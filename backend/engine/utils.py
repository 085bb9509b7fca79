"""
Utility functions for the game engine.
"""

from backend.engine import PLAYER1, PLAYER2
from backend.engine.queries import get_game_status
from backend.engine.state import GameState, Round


def describe_round(state: GameState, rnd: Round) -> str:
    """One-line description of a round, e.g. "Round 2: You 6 vs AI 4 -> You"."""
    p1, p2 = state.player1.name, state.player2.name
    line = f"Round {rnd.round_number}: {p1} {rnd.player1_troops} vs {p2} {rnd.player2_troops}"
    if rnd.winner is None:
        return f"{line} (waiting)"
    if rnd.winner == PLAYER1:
        return f"{line} -> {p1}"
    if rnd.winner == PLAYER2:
        return f"{line} -> {p2}"
    return f"{line} -> tie"


def print_game_state(state: GameState, verbose: bool = False):
    """
    Pretty-print the current game state.

    Args:
        state: Current game state
        verbose: If True, list every round played so far
    """
    print(f"\n{'='*60}")
    print(f"{get_game_status(state)} | Status: {state.status}")
    print(f"{'='*60}")
    for player in (state.player1, state.player2):
        tag = " [bot]" if player.is_bot else ""
        print(f"  {player.name}{tag}: troops={player.troops}, round wins={player.round_wins}")
    if verbose and state.rounds:
        print("\nRounds:")
        for rnd in state.rounds:
            print(f"  {describe_round(state, rnd)}")
