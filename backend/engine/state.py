"""
Game state representation.
All state is immutable; mutations return new state copies.
Includes JSON serialization for snapshots stored in the database.
"""

import json
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from backend.config import (
    DEFAULT_MAX_ROUNDS,
    DEFAULT_STARTING_TROOPS,
    DEFAULT_VICTORY_MARGIN,
)
from backend.engine import PLAYER1, PLAYER2, STATUS_FINISHED, STATUS_PLAYING, STATUS_WAITING, TIE

VALID_STATUSES = (STATUS_WAITING, STATUS_PLAYING, STATUS_FINISHED)
VALID_ROUND_WINNERS = (PLAYER1, PLAYER2, TIE)
VALID_GAME_WINNERS = (PLAYER1, PLAYER2)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (a trailing 'Z' is accepted); missing or bad values become now."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
    return utc_now()


def _int(value: Any, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _pick(data: dict[str, Any], *keys: str) -> Any:
    """First present key wins; lets snapshots written with camelCase keys load too."""
    for key in keys:
        if key in data:
            return data[key]
    return None


@dataclass
class GameConfig:
    """Rules a game is played with. Immutable once the game is created."""
    starting_troops: int = DEFAULT_STARTING_TROOPS
    victory_margin: int = DEFAULT_VICTORY_MARGIN  # round-win lead that ends the game early
    max_rounds: int = DEFAULT_MAX_ROUNDS  # safety cap

    def __post_init__(self) -> None:
        for name in ("starting_troops", "victory_margin", "max_rounds"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "starting_troops": self.starting_troops,
            "victory_margin": self.victory_margin,
            "max_rounds": self.max_rounds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "GameConfig":
        if not isinstance(data, dict):
            data = {}

        def _positive(v: Any, default: int) -> int:
            n = _int(v, default)
            return n if n > 0 else default

        return cls(
            starting_troops=_positive(_pick(data, "starting_troops", "startingTroops"), DEFAULT_STARTING_TROOPS),
            victory_margin=_positive(_pick(data, "victory_margin", "victoryMargin"), DEFAULT_VICTORY_MARGIN),
            max_rounds=_positive(_pick(data, "max_rounds", "maxRounds"), DEFAULT_MAX_ROUNDS),
        )


@dataclass
class Player:
    """One side of the game."""
    id: str
    name: str
    troops: int  # remaining pool, never increases
    round_wins: int = 0
    is_bot: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "troops": self.troops,
            "round_wins": self.round_wins,
            "is_bot": self.is_bot,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Player":
        if not isinstance(data, dict):
            data = {}
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            troops=max(0, _int(data.get("troops"), 0)),
            round_wins=max(0, _int(_pick(data, "round_wins", "roundWins"), 0)),
            is_bot=bool(_pick(data, "is_bot", "isBot") or False),
        )


@dataclass
class Round:
    """
    One exchange of troop commitments.
    Each side's commitment is either present (moved) or absent; the round resolves
    once both are present, whichever was recorded first.
    """
    round_number: int
    player1_troops: int = 0
    player2_troops: int = 0
    winner: str | None = None  # "player1" | "player2" | "tie" | None while open
    timestamp: datetime = field(default_factory=utc_now)
    player1_moved: bool = False
    player2_moved: bool = False

    @property
    def is_open(self) -> bool:
        return self.winner is None

    def has_moved(self, role: str) -> bool:
        return self.player1_moved if role == PLAYER1 else self.player2_moved

    def troops_for(self, role: str) -> int:
        return self.player1_troops if role == PLAYER1 else self.player2_troops

    def record(self, role: str, troops: int) -> None:
        if role == PLAYER1:
            self.player1_troops = troops
            self.player1_moved = True
        else:
            self.player2_troops = troops
            self.player2_moved = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_number": self.round_number,
            "player1_troops": self.player1_troops,
            "player2_troops": self.player2_troops,
            "winner": self.winner,
            "timestamp": format_timestamp(self.timestamp),
            "player1_moved": self.player1_moved,
            "player2_moved": self.player2_moved,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Round":
        if not isinstance(data, dict):
            data = {}
        winner = data.get("winner")
        if winner not in VALID_ROUND_WINNERS:
            winner = None
        p1 = max(0, _int(_pick(data, "player1_troops", "player1Troops"), 0))
        p2 = max(0, _int(_pick(data, "player2_troops", "player2Troops"), 0))
        # Records written before the moved flags existed: a resolved round has both
        # sides, an open one has whichever side committed something. An open 0 vs 0
        # record keeps both flags unset; the next commitment resolves it.
        p1_moved = data.get("player1_moved")
        p2_moved = data.get("player2_moved")
        if not isinstance(p1_moved, bool):
            p1_moved = winner is not None or p1 > 0
        if not isinstance(p2_moved, bool):
            p2_moved = winner is not None or p2 > 0
        return cls(
            round_number=_int(_pick(data, "round_number", "roundNumber"), 0),
            player1_troops=p1,
            player2_troops=p2,
            winner=winner,
            timestamp=parse_timestamp(data.get("timestamp")),
            player1_moved=p1_moved,
            player2_moved=p2_moved,
        )


@dataclass
class GameState:
    """Complete game state."""
    id: str
    player1: Player
    player2: Player
    config: GameConfig = field(default_factory=GameConfig)
    current_round: int = 1
    # Append-only; rounds[n - 1] is round n
    rounds: list[Round] = field(default_factory=list)
    status: str = STATUS_WAITING  # "waiting", "playing", "finished"
    # "player1" | "player2" once decided; None while playing or when the game ends tied
    winner: str | None = None
    starting_troops: int = DEFAULT_STARTING_TROOPS
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def copy(self) -> "GameState":
        """Return a deep copy of this game state."""
        return deepcopy(self)

    def role_of(self, player_id: str) -> str | None:
        """Return "player1"/"player2" for a participant, None otherwise."""
        if self.player1.id == player_id:
            return PLAYER1
        if self.player2.id == player_id:
            return PLAYER2
        return None

    def player_for(self, role: str) -> Player:
        return self.player1 if role == PLAYER1 else self.player2

    def open_round(self) -> Round | None:
        """The round awaiting its second commitment, if one has been started."""
        if self.rounds and self.rounds[-1].round_number == self.current_round and self.rounds[-1].is_open:
            return self.rounds[-1]
        return None

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        """Convert GameState to a dictionary for JSON serialization."""
        return {
            "id": self.id,
            "player1": self.player1.to_dict(),
            "player2": self.player2.to_dict(),
            "config": self.config.to_dict(),
            "current_round": self.current_round,
            "rounds": [r.to_dict() for r in self.rounds],
            "status": self.status,
            "winner": self.winner,
            "starting_troops": self.starting_troops,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameState":
        """Create GameState from a dictionary (handles missing/None for backwards compat)."""
        if not isinstance(data, dict):
            data = {}
        rounds_raw = data.get("rounds") or []
        if not isinstance(rounds_raw, list):
            rounds_raw = []
        status = data.get("status")
        if status not in VALID_STATUSES:
            status = STATUS_WAITING
        winner = data.get("winner")
        if winner not in VALID_GAME_WINNERS:
            winner = None
        config = GameConfig.from_dict(data.get("config"))
        starting = _int(_pick(data, "starting_troops", "startingTroops"), config.starting_troops)
        return cls(
            id=str(data.get("id") or ""),
            player1=Player.from_dict(data.get("player1")),
            player2=Player.from_dict(data.get("player2")),
            config=config,
            current_round=max(1, _int(_pick(data, "current_round", "currentRound"), 1)),
            rounds=[Round.from_dict(r) for r in rounds_raw if isinstance(r, dict)],
            status=status,
            winner=winner,
            starting_troops=starting,
            created_at=parse_timestamp(_pick(data, "created_at", "createdAt")),
            updated_at=parse_timestamp(_pick(data, "updated_at", "updatedAt")),
        )

    def to_json(self, indent: int | None = None) -> str:
        """Serialize GameState to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "GameState":
        """Deserialize GameState from a JSON string."""
        return cls.from_dict(json.loads(json_str))
