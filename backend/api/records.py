"""
Finished-game history and per-player statistics.
Functions here add to the session but never commit; the caller owns the transaction
so a game's final snapshot, its record and both stats rows land together.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from backend.engine import PLAYER1, PLAYER2
from backend.engine.queries import total_troops_deployed
from backend.engine.state import GameState

from .models import GameRecord, UserStats

logger = logging.getLogger(__name__)

GAME_TYPE_SINGLE = "single"
GAME_TYPE_MULTIPLAYER = "multiplayer"


def _naive_utc(value: datetime) -> datetime:
    """DateTime columns hold naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def save_game_result(
    db: Session,
    state: GameState,
    player1_id: str | None,
    player2_id: str | None,
    game_type: str,
) -> GameRecord:
    """Store a finished game. player ids are account ids (None for the bot)."""
    record = GameRecord(
        id=str(uuid.uuid4()),
        player1_id=player1_id,
        player2_id=player2_id,
        player1_name=state.player1.name,
        player2_name=state.player2.name,
        starting_troops=state.starting_troops,
        winner=state.winner,
        rounds=json.dumps([r.to_dict() for r in state.rounds]),
        game_type=game_type,
        created_at=_naive_utc(state.created_at),
        finished_at=_naive_utc(state.updated_at),
    )
    db.add(record)
    logger.info("Saved %s game record %s (winner=%s)", game_type, record.id, state.winner)
    return record


def update_user_stats(db: Session, user_id: str, state: GameState, role: str) -> UserStats | None:
    """
    Fold one finished game into a player's cumulative stats.
    Bots keep no stats; returns None for them.
    """
    player = state.player_for(role)
    if player.is_bot:
        return None
    stats = db.query(UserStats).filter(UserStats.user_id == user_id).first()
    if stats is None:
        stats = UserStats(
            user_id=user_id,
            games_played=0,
            games_won=0,
            total_troops_deployed=0,
            total_rounds_won=0,
        )
        db.add(stats)
    stats.games_played += 1
    if state.winner == role:
        stats.games_won += 1
    stats.total_troops_deployed += total_troops_deployed(state, role)
    stats.total_rounds_won += player.round_wins
    stats.updated_at = datetime.utcnow()
    return stats


def record_finished_game(
    db: Session,
    state: GameState,
    player1_id: str | None,
    player2_id: str | None,
    game_type: str,
) -> GameRecord:
    """Save the record and update stats for every human participant."""
    record = save_game_result(db, state, player1_id, player2_id, game_type)
    for user_id, role in ((player1_id, PLAYER1), (player2_id, PLAYER2)):
        if user_id:
            update_user_stats(db, user_id, state, role)
    return record


# ===== Queries =====

def stats_to_dict(stats: UserStats | None) -> dict[str, Any]:
    if stats is None:
        return {
            "games_played": 0,
            "games_won": 0,
            "total_troops_deployed": 0,
            "total_rounds_won": 0,
            "win_rate": 0.0,
        }
    played = stats.games_played or 0
    return {
        "games_played": played,
        "games_won": stats.games_won,
        "total_troops_deployed": stats.total_troops_deployed,
        "total_rounds_won": stats.total_rounds_won,
        "win_rate": round(stats.games_won / played, 3) if played else 0.0,
    }


def get_user_stats(db: Session, user_id: str) -> UserStats | None:
    return db.query(UserStats).filter(UserStats.user_id == user_id).first()


def get_recent_games(db: Session, user_id: str, limit: int = 10) -> list[GameRecord]:
    return (
        db.query(GameRecord)
        .filter((GameRecord.player1_id == user_id) | (GameRecord.player2_id == user_id))
        .order_by(GameRecord.finished_at.desc())
        .limit(limit)
        .all()
    )


def get_game_record(db: Session, record_id: str) -> GameRecord | None:
    return db.query(GameRecord).filter(GameRecord.id == record_id).first()


def describe_result(record: GameRecord, user_id: str) -> str:
    """Victory / Defeat / Tie from the point of view of user_id."""
    mine = PLAYER1 if record.player1_id == user_id else PLAYER2
    if record.winner is None:
        return "Tie"
    return "Victory" if record.winner == mine else "Defeat"


def record_to_dict(record: GameRecord, user_id: str | None = None) -> dict[str, Any]:
    try:
        rounds = json.loads(record.rounds) if isinstance(record.rounds, str) else []
    except json.JSONDecodeError:
        rounds = []
    out = {
        "id": record.id,
        "player1_id": record.player1_id,
        "player2_id": record.player2_id,
        "player1_name": record.player1_name,
        "player2_name": record.player2_name,
        "starting_troops": record.starting_troops,
        "winner": record.winner,
        "rounds": rounds,
        "game_type": record.game_type,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "finished_at": record.finished_at.isoformat() if record.finished_at else None,
    }
    if user_id is not None:
        out["result"] = describe_result(record, user_id)
        if record.game_type == GAME_TYPE_SINGLE:
            out["opponent_name"] = record.player2_name
        else:
            out["opponent_name"] = record.player2_name if record.player1_id == user_id else record.player1_name
    return out


def forget_player(db: Session, user_id: str) -> int:
    """
    Drop a player's stats and unlink them from finished games; names stay on
    the records so the opponent's history still reads correctly.
    Returns how many records were unlinked.
    """
    db.query(UserStats).filter(UserStats.user_id == user_id).delete(synchronize_session=False)
    unlinked = 0
    for record in db.query(GameRecord).filter(
        (GameRecord.player1_id == user_id) | (GameRecord.player2_id == user_id)
    ):
        if record.player1_id == user_id:
            record.player1_id = None
        if record.player2_id == user_id:
            record.player2_id = None
        unlinked += 1
    return unlinked
