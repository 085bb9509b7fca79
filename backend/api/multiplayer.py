"""
Multiplayer rooms and the move reconciler.

Two players submit their moves independently, in any order, from separate
requests. Each submission is appended to the move log (game_moves); whichever
request finds both moves for the round in the log resolves it. Resolution is
guarded by inserting a round_resolutions row first: the unique constraint lets
exactly one request through, so a round is never applied twice.

The room's game_state column is the only authority. The active_games dict is a
cache and is refreshed from the snapshot every time it is used.
"""

import json
import logging
import secrets
import string
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.config import ROOM_CODE_LENGTH, ROOM_IDLE_MINUTES
from backend.engine import STATUS_FINISHED, STATUS_PLAYING, STATUS_WAITING
from backend.engine.events import GameEvent
from backend.engine.queries import validate_move
from backend.engine.reducer import InvalidMove, initialize_game, reconstruct, resolve_move, start_game_with_events
from backend.engine.state import GameConfig, GameState, Player

from .models import GameMove, GameRoom, RoundResolution
from .records import GAME_TYPE_MULTIPLAYER, record_finished_game

logger = logging.getLogger(__name__)

# Room round_status values. Only a UI hint; the snapshot and move log are authoritative.
ROUND_WAITING = "waiting"
ROUND_PLAYER1_MOVED = "player1_moved"
ROUND_PLAYER2_MOVED = "player2_moved"
ROUND_RESOLVED = "resolved"

ROOM_CODE_CHARS = string.ascii_uppercase + string.digits

# In-memory cache of engine state per room id (never trusted without a refresh)
active_games: dict[str, GameState] = {}


class MultiplayerError(Exception):
    """Base class for room and reconciliation failures."""


class RoomNotFound(MultiplayerError):
    pass


class RoomUnavailable(MultiplayerError):
    """Room cannot be joined or started in its current state."""


class NotInRoom(MultiplayerError):
    pass


class DuplicateMove(MultiplayerError):
    """The player already has a move logged for this round; the original stands."""


class StaleReconstruction(MultiplayerError):
    """The stored snapshot no longer matches the round being resolved."""


@dataclass
class RoundStatus:
    current_round: int
    round_status: str
    player1_moved: bool
    player2_moved: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_round": self.current_round,
            "round_status": self.round_status,
            "player1_moved": self.player1_moved,
            "player2_moved": self.player2_moved,
        }


@dataclass
class SubmitResult:
    """Outcome of submit_move. state/events are set only when this request resolved the round."""
    round_number: int
    resolved: bool
    state: GameState | None = None
    events: list[GameEvent] = field(default_factory=list)


# ===== Helpers =====

def generate_room_code(db: Session) -> str:
    """Generate a unique alphanumeric room code."""
    for _ in range(20):
        code = "".join(secrets.choice(ROOM_CODE_CHARS) for _ in range(ROOM_CODE_LENGTH))
        if db.query(GameRoom).filter(GameRoom.room_code == code).first() is None:
            return code
    raise MultiplayerError("Could not generate unique room code")


def _touch(row: GameRoom) -> None:
    row.updated_at = datetime.utcnow()


def _get_room_row(db: Session, room_id: str) -> GameRoom:
    row = (
        db.query(GameRoom)
        .filter(GameRoom.id == room_id, GameRoom.game_type == GAME_TYPE_MULTIPLAYER)
        .first()
    )
    if row is None:
        raise RoomNotFound(f"Room {room_id} not found")
    return row


def _role_in_room(row: GameRoom, player_id: str) -> str | None:
    if player_id and player_id == row.player1_id:
        return "player1"
    if player_id and player_id == row.player2_id:
        return "player2"
    return None


def _moves_for_round(db: Session, room_id: str, round_number: int) -> list[GameMove]:
    return (
        db.query(GameMove)
        .filter(GameMove.room_id == room_id, GameMove.round_number == round_number)
        .all()
    )


def _delete_room(db: Session, row: GameRoom) -> None:
    db.query(GameMove).filter(GameMove.room_id == row.id).delete(synchronize_session=False)
    db.query(RoundResolution).filter(RoundResolution.room_id == row.id).delete(synchronize_session=False)
    db.delete(row)
    active_games.pop(row.id, None)


def load_game(db: Session, row: GameRoom) -> GameState:
    """Rebuild the room's engine state from its stored snapshot and refresh the cache."""
    if not row.game_state:
        raise RoomUnavailable(f"Room {row.id} has not started")
    state = reconstruct(row.game_state)
    active_games[row.id] = state
    return state


def room_to_dict(row: GameRoom) -> dict[str, Any]:
    try:
        state = json.loads(row.game_state) if row.game_state else None
    except json.JSONDecodeError:
        state = None
    return {
        "id": row.id,
        "room_code": row.room_code,
        "player1": {"id": row.player1_id, "name": row.player1_name} if row.player1_id else None,
        "player2": {"id": row.player2_id, "name": row.player2_name} if row.player2_id else None,
        "status": row.status,
        "config": GameConfig.from_dict(json.loads(row.config)).to_dict() if row.config else None,
        "current_round": row.current_round,
        "round_status": row.round_status,
        "game_state": state,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


# ===== Rooms =====

def create_room(db: Session, host_id: str, host_name: str, config: GameConfig | None = None) -> GameRoom:
    """Create a waiting room with the host as player1."""
    config = config or GameConfig()
    now = datetime.utcnow()
    row = GameRoom(
        id=str(uuid.uuid4()),
        room_code=generate_room_code(db),
        game_type=GAME_TYPE_MULTIPLAYER,
        player1_id=host_id,
        player1_name=host_name,
        status=STATUS_WAITING,
        config=json.dumps(config.to_dict()),
        current_round=1,
        round_status=ROUND_WAITING,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Room %s created by %s (code %s)", row.id, host_id, row.room_code)
    return row


def get_room(db: Session, room_id: str) -> GameRoom | None:
    try:
        return _get_room_row(db, room_id)
    except RoomNotFound:
        return None


def get_room_by_code(db: Session, room_code: str) -> GameRoom | None:
    code = room_code.strip().upper()
    return db.query(GameRoom).filter(GameRoom.room_code == code).first()


def join_room(db: Session, room_code: str, player_id: str, player_name: str) -> GameRoom:
    """Take the free player2 seat. Joining a room you are already in is a no-op."""
    row = get_room_by_code(db, room_code)
    if row is None:
        raise RoomNotFound(f"No room with code {room_code.strip().upper()}")
    if _role_in_room(row, player_id) is not None:
        return row
    if row.status != STATUS_WAITING:
        raise RoomUnavailable("Game already started")
    if row.player2_id:
        raise RoomUnavailable("Room is full")
    row.player2_id = player_id
    row.player2_name = player_name
    _touch(row)
    db.commit()
    logger.info("Player %s joined room %s", player_id, row.id)
    return row


def start_room(db: Session, room_id: str) -> tuple[GameState, list[GameEvent]]:
    """Create the engine state for a full waiting room and store the first snapshot."""
    row = _get_room_row(db, room_id)
    if row.status != STATUS_WAITING:
        raise RoomUnavailable("Game already started")
    if not row.player1_id or not row.player2_id:
        raise RoomUnavailable("Waiting for a second player")
    config = GameConfig.from_dict(json.loads(row.config))
    state = initialize_game(
        row.id,
        Player(id=row.player1_id, name=row.player1_name or "Player 1", troops=0),
        Player(id=row.player2_id, name=row.player2_name or "Player 2", troops=0),
        config,
    )
    state, events = start_game_with_events(state)
    row.game_state = state.to_json()
    row.status = STATUS_PLAYING
    row.current_round = 1
    row.round_status = ROUND_WAITING
    _touch(row)
    db.commit()
    active_games[row.id] = state
    logger.info("Room %s started", row.id)
    return state, events


def leave_room(db: Session, room_id: str, player_id: str) -> bool:
    """Free the player's seat; the room is deleted once nobody is left. False if not in the room."""
    row = _get_room_row(db, room_id)
    role = _role_in_room(row, player_id)
    if role is None:
        return False
    if role == "player1":
        row.player1_id = None
        row.player1_name = None
    else:
        row.player2_id = None
        row.player2_name = None
    if not row.player1_id and not row.player2_id:
        _delete_room(db, row)
    else:
        _touch(row)
    db.commit()
    active_games.pop(room_id, None)
    return True


def cleanup_old_rooms(db: Session, idle_minutes: int = ROOM_IDLE_MINUTES) -> int:
    """Delete rooms untouched for idle_minutes. Returns how many were removed."""
    cutoff = datetime.utcnow() - timedelta(minutes=idle_minutes)
    rows = (
        db.query(GameRoom)
        .filter(GameRoom.game_type == GAME_TYPE_MULTIPLAYER, GameRoom.updated_at < cutoff)
        .all()
    )
    for row in rows:
        _delete_room(db, row)
    db.commit()
    if rows:
        logger.info("Removed %d idle rooms", len(rows))
    return len(rows)


# ===== Moves =====

def get_round_status(db: Session, room_id: str) -> RoundStatus:
    row = _get_room_row(db, room_id)
    moved = {m.player_id for m in _moves_for_round(db, room_id, row.current_round)}
    return RoundStatus(
        current_round=row.current_round,
        round_status=row.round_status,
        player1_moved=bool(row.player1_id) and row.player1_id in moved,
        player2_moved=bool(row.player2_id) and row.player2_id in moved,
    )


def get_turn_eligibility(db: Session, room_id: str, player_id: str) -> bool:
    """True iff the room is playing, the player sits in it, and has no logged move this round."""
    row = get_room(db, room_id)
    if row is None or row.status != STATUS_PLAYING or _role_in_room(row, player_id) is None:
        return False
    existing = (
        db.query(GameMove)
        .filter(
            GameMove.room_id == room_id,
            GameMove.player_id == player_id,
            GameMove.round_number == row.current_round,
        )
        .first()
    )
    return existing is None


def submit_move(
    db: Session,
    room_id: str,
    player_id: str,
    troops: int,
    round_number: int | None = None,
) -> SubmitResult:
    """
    Log a player's move for the current round and resolve the round if the
    opponent's move is already logged.

    Raises:
        RoomNotFound: no such multiplayer room.
        NotInRoom: player_id does not sit in the room.
        InvalidMove: room not playing, round_number is not the current round,
            or the engine rejects the troop count.
        DuplicateMove: the player already moved this round.
    """
    row = _get_room_row(db, room_id)
    if row.status != STATUS_PLAYING:
        raise InvalidMove(f"Game is not in progress (status: {row.status})")
    role = _role_in_room(row, player_id)
    if role is None:
        raise NotInRoom(f"Player {player_id} is not in room {room_id}")

    current = row.current_round
    if round_number is not None and round_number != current:
        raise InvalidMove(f"Round {round_number} is not the current round ({current})")

    already = (
        db.query(GameMove)
        .filter(GameMove.room_id == room_id, GameMove.player_id == player_id, GameMove.round_number == current)
        .first()
    )
    if already is not None:
        raise DuplicateMove(f"Player {player_id} already moved in round {current}")

    state = load_game(db, row)
    validation = validate_move(state, player_id, troops)
    if not validation.valid:
        raise InvalidMove(validation.error)
    # Depleted players commit zero whatever they asked for
    effective = 0 if state.player_for(role).troops == 0 else troops

    db.add(GameMove(room_id=room_id, player_id=player_id, round_number=current, troops=effective))
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateMove(f"Player {player_id} already moved in round {current}") from e
    logger.info("Room %s round %d: %s committed %d", room_id, current, role, effective)

    moved = {m.player_id for m in _moves_for_round(db, room_id, current)}
    if row.player1_id in moved and row.player2_id in moved:
        outcome = resolve_round(db, room_id, current)
        if outcome is None:
            return SubmitResult(round_number=current, resolved=False)
        new_state, events = outcome
        return SubmitResult(round_number=current, resolved=True, state=new_state, events=events)

    row.round_status = ROUND_PLAYER1_MOVED if role == "player1" else ROUND_PLAYER2_MOVED
    _touch(row)
    db.commit()
    return SubmitResult(round_number=current, resolved=False)


def resolve_round(db: Session, room_id: str, round_number: int) -> tuple[GameState, list[GameEvent]] | None:
    """
    Apply both logged moves for round_number to the stored snapshot, player1 first.

    Returns (new_state, events), or None when the round is not ready (a move is
    missing) or another request already resolved it. Safe to call repeatedly:
    only the first call that claims the round's resolution marker changes anything.

    Raises:
        StaleReconstruction: the snapshot is not at round_number, or the engine
            rejected a logged move. Nothing is persisted.
    """
    row = _get_room_row(db, room_id)
    by_player = {m.player_id: m for m in _moves_for_round(db, room_id, round_number)}
    p1_move = by_player.get(row.player1_id)
    p2_move = by_player.get(row.player2_id)
    if p1_move is None or p2_move is None:
        logger.warning("Room %s round %d: cannot resolve, a move is missing", room_id, round_number)
        return None

    db.add(RoundResolution(room_id=room_id, round_number=round_number))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("Room %s round %d already resolved elsewhere", room_id, round_number)
        return None

    state = load_game(db, row)
    if state.status != STATUS_PLAYING or state.current_round != round_number:
        db.rollback()
        raise StaleReconstruction(
            f"Snapshot for room {room_id} is at round {state.current_round} ({state.status}), "
            f"cannot resolve round {round_number}"
        )
    try:
        state, events = resolve_move(state, p1_move.player_id, p1_move.troops)
        state, more = resolve_move(state, p2_move.player_id, p2_move.troops)
    except InvalidMove as e:
        db.rollback()
        active_games.pop(room_id, None)
        raise StaleReconstruction(f"Logged move rejected for room {room_id} round {round_number}: {e}") from e
    events.extend(more)

    row.game_state = state.to_json()
    row.round_status = ROUND_RESOLVED
    if state.status == STATUS_FINISHED:
        row.status = STATUS_FINISHED
        record_finished_game(db, state, row.player1_id, row.player2_id, GAME_TYPE_MULTIPLAYER)
    else:
        row.current_round = round_number + 1
        row.round_status = ROUND_WAITING
    _touch(row)
    try:
        db.commit()
    except Exception:
        db.rollback()
        active_games.pop(room_id, None)
        raise

    if state.status == STATUS_FINISHED:
        active_games.pop(room_id, None)
        logger.info("Room %s finished after round %d, winner=%s", room_id, round_number, state.winner)
    else:
        active_games[room_id] = state
        logger.info("Room %s round %d resolved", room_id, round_number)
    return state, events
