"""
Game events for UI hooks and logging.
Events describe what happened during move processing.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}


# ===== Event Type Constants =====

GAME_STARTED = "game_started"
TROOPS_COMMITTED = "troops_committed"
ROUND_RESOLVED = "round_resolved"
GAME_FINISHED = "game_finished"


# ===== Event Factory Functions =====

def game_started(game_id: str) -> GameEvent:
    return GameEvent(GAME_STARTED, {"game_id": game_id})


def troops_committed(role: str, player_id: str, round_number: int, troops: int, remaining: int) -> GameEvent:
    return GameEvent(TROOPS_COMMITTED, {
        "role": role,
        "player_id": player_id,
        "round_number": round_number,
        "troops": troops,
        "remaining": remaining,
    })


def round_resolved(
    round_number: int,
    player1_troops: int,
    player2_troops: int,
    winner: str,
    round_wins: dict[str, int],
) -> GameEvent:
    return GameEvent(ROUND_RESOLVED, {
        "round_number": round_number,
        "player1_troops": player1_troops,
        "player2_troops": player2_troops,
        "winner": winner,  # "player1" | "player2" | "tie"
        "round_wins": round_wins,  # role -> wins so far
    })


def game_finished(winner: str | None, reason: str, round_wins: dict[str, int]) -> GameEvent:
    """winner is None when the game ends tied. reason: victory_margin | troops_depleted | max_rounds."""
    return GameEvent(GAME_FINISHED, {
        "winner": winner,
        "reason": reason,
        "round_wins": round_wins,
    })
