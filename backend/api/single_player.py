"""
Single-player games against the bot.
No move log or reconciliation: the human move and the bot reply are applied
back to back through the engine inside one request.
"""

import json
import logging
import random
import uuid
from datetime import datetime

from sqlalchemy.orm import Session

from backend.engine import STATUS_FINISHED, STATUS_PLAYING
from backend.engine.bot import choose_move
from backend.engine.events import GameEvent
from backend.engine.reducer import initialize_game, reconstruct, resolve_move, start_game
from backend.engine.state import GameConfig, GameState, Player

from .models import GameRoom
from .multiplayer import NotInRoom, RoomNotFound
from .records import GAME_TYPE_SINGLE, record_finished_game

logger = logging.getLogger(__name__)

BOT_ID = "bot"
BOT_NAME = "AI Opponent"


def _get_single_row(db: Session, game_id: str, user_id: str) -> GameRoom:
    row = db.query(GameRoom).filter(GameRoom.id == game_id, GameRoom.game_type == GAME_TYPE_SINGLE).first()
    if row is None:
        raise RoomNotFound(f"Game {game_id} not found")
    if row.player1_id != user_id:
        raise NotInRoom("Not your game")
    return row


def create_single_game(
    db: Session,
    user_id: str,
    user_name: str,
    config: GameConfig | None = None,
) -> GameState:
    """Start a game against the bot; it is playing immediately."""
    game_id = str(uuid.uuid4())
    state = initialize_game(
        game_id,
        Player(id=user_id, name=user_name, troops=0),
        Player(id=BOT_ID, name=BOT_NAME, troops=0, is_bot=True),
        config,
    )
    state = start_game(state)
    now = datetime.utcnow()
    row = GameRoom(
        id=game_id,
        room_code=None,
        game_type=GAME_TYPE_SINGLE,
        player1_id=user_id,
        player1_name=user_name,
        player2_id=None,
        player2_name=BOT_NAME,
        game_state=state.to_json(),
        status=state.status,
        config=json.dumps(state.config.to_dict()),
        current_round=state.current_round,
        round_status="waiting",
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return state


def get_single_game(db: Session, game_id: str, user_id: str) -> GameState:
    return reconstruct(_get_single_row(db, game_id, user_id).game_state)


def play_single_round(
    db: Session,
    game_id: str,
    user_id: str,
    troops: int,
    rng: random.Random | None = None,
) -> tuple[GameState, list[GameEvent], int | None]:
    """
    Apply the human's commitment, then the bot's. Returns (state, events, bot_troops);
    bot_troops is None if the bot did not move because the game was already over.
    Raises InvalidMove (state untouched) for an illegal commitment.
    """
    row = _get_single_row(db, game_id, user_id)
    state = reconstruct(row.game_state)
    state, events = resolve_move(state, user_id, troops)

    bot_troops = None
    if state.status == STATUS_PLAYING:
        bot_troops = choose_move(state.player2, rng)
        state, more = resolve_move(state, BOT_ID, bot_troops)
        events.extend(more)

    row.game_state = state.to_json()
    row.status = state.status
    row.current_round = state.current_round
    row.updated_at = datetime.utcnow()
    if state.status == STATUS_FINISHED:
        record_finished_game(db, state, user_id, None, GAME_TYPE_SINGLE)
        logger.info("Single-player game %s finished, winner=%s", game_id, state.winner)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return state, events, bot_troops
