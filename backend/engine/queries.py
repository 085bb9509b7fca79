"""
Read-only queries over game state: move validation and derived figures for the UI.
Nothing here mutates state.
"""

from dataclasses import dataclass
from typing import Any

from backend.engine import PLAYER1, PLAYER2, STATUS_FINISHED, STATUS_PLAYING, STATUS_WAITING
from backend.engine.state import GameState


@dataclass
class ValidationResult:
    """Result of move validation."""
    valid: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error}


# ===== Move Validation =====

def can_move(state: GameState, player_id: str) -> bool:
    """True iff the game is in progress and player_id is one of the two players."""
    return state.status == STATUS_PLAYING and state.role_of(player_id) is not None


def validate_move(state: GameState, player_id: str, troops: Any) -> ValidationResult:
    """
    Validate a troop commitment without applying it.
    Returns ValidationResult with valid=True or valid=False with error message.
    """
    if state.status == STATUS_FINISHED:
        return ValidationResult(False, "Game is over")
    if state.status != STATUS_PLAYING:
        return ValidationResult(False, f"Game is not in progress (status: {state.status})")

    role = state.role_of(player_id)
    if role is None:
        return ValidationResult(False, f"Player {player_id} is not in this game")

    if isinstance(troops, bool) or not isinstance(troops, int):
        return ValidationResult(False, "Troops must be a whole number")
    if troops < 0:
        return ValidationResult(False, "Troops cannot be negative")

    open_round = state.open_round()
    if open_round is not None and open_round.has_moved(role):
        return ValidationResult(False, f"Already committed troops for round {state.current_round}")

    player = state.player_for(role)
    # A depleted player may still take part; their commitment is coerced to 0
    if player.troops > 0 and troops > player.troops:
        return ValidationResult(
            False,
            f"Cannot commit {troops} troops, only {player.troops} remaining",
        )
    return ValidationResult(True)


# ===== Derived Figures =====

def get_round_wins(state: GameState) -> dict[str, int]:
    return {PLAYER1: state.player1.round_wins, PLAYER2: state.player2.round_wins}


def total_troops_deployed(state: GameState, role: str) -> int:
    """Sum of the troops one side committed across every recorded round."""
    return sum(r.troops_for(role) for r in state.rounds)


def get_game_status(state: GameState) -> str:
    """Short human-readable status line."""
    if state.status == STATUS_WAITING:
        return "Waiting for players"
    if state.status == STATUS_FINISHED:
        if state.winner:
            return f"{state.player_for(state.winner).name} wins!"
        return "Game ended in a tie"
    return f"Round {state.current_round}"


def get_game_summary(state: GameState) -> dict[str, Any]:
    """Compact summary used by API responses and the console demo."""
    return {
        "status": state.status,
        "status_text": get_game_status(state),
        "current_round": state.current_round,
        "rounds_played": sum(1 for r in state.rounds if not r.is_open),
        "round_wins": get_round_wins(state),
        "troops": {PLAYER1: state.player1.troops, PLAYER2: state.player2.troops},
        "winner": state.winner,
    }
