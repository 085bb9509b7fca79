"""
FastAPI backend for Sequential Blotto.
Provides REST API endpoints for accounts, single-player games, multiplayer rooms and profiles.
"""

import os
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .database import get_db, init_db
from .models import Player
from .auth import (
    AuthError,
    authenticate,
    create_access_token,
    get_current_player,
    player_payload,
    register_player,
)
from . import multiplayer
from .multiplayer import (
    DuplicateMove,
    MultiplayerError,
    NotInRoom,
    RoomNotFound,
    RoomUnavailable,
    StaleReconstruction,
)
from .records import get_game_record, get_recent_games, get_user_stats, record_to_dict, stats_to_dict
from .single_player import create_single_game, get_single_game, play_single_round

from backend.engine.reducer import InvalidMove
from backend.engine.queries import can_move, get_game_summary
from backend.engine.state import GameConfig, GameState

app = FastAPI(
    title="Sequential Blotto API",
    description="Backend API for Sequential Blotto - a two-player troop allocation game",
    version="1.0.0",
)

# CORS configuration for frontend
CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            print(f"[500] {method} {path}", flush=True)
        return response
    except Exception:
        print(f"[500] {method} {path} (exception)", flush=True)
        raise


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    """Return 500 with CORS headers so the frontend can read the error."""
    import traceback
    traceback.print_exc()
    origin = request.headers.get("origin")
    allow_origin = origin if origin in CORS_ORIGINS else CORS_ORIGINS[0]
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc)},
        headers={
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Credentials": "true",
        },
    )


# ===== Pydantic Models =====

class RegisterRequest(BaseModel):
    email: str
    username: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class ConfigRequest(BaseModel):
    starting_troops: int | None = None
    victory_margin: int | None = None
    max_rounds: int | None = None


class CreateSingleRequest(BaseModel):
    config: ConfigRequest | None = None


class CreateRoomRequest(BaseModel):
    config: ConfigRequest | None = None


class JoinRoomRequest(BaseModel):
    room_code: str


class MoveRequest(BaseModel):
    troops: int
    round_number: int | None = None  # round the client thinks it is playing; omitted = current round


# ===== Helper Functions =====

def config_from_request(request: ConfigRequest | None) -> GameConfig:
    """Build a GameConfig, filling unset fields with defaults; 400 on non-positive values."""
    defaults = GameConfig()
    if request is None:
        return defaults
    try:
        return GameConfig(
            starting_troops=request.starting_troops if request.starting_troops is not None else defaults.starting_troops,
            victory_margin=request.victory_margin if request.victory_margin is not None else defaults.victory_margin,
            max_rounds=request.max_rounds if request.max_rounds is not None else defaults.max_rounds,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def state_for_response(state: GameState) -> dict[str, Any]:
    """State dict including the computed summary for the UI."""
    out = state.to_dict()
    out["summary"] = get_game_summary(state)
    return out


def raise_http(exc: Exception) -> None:
    """Map engine and room errors onto HTTP status codes."""
    if isinstance(exc, InvalidMove):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, DuplicateMove):
        raise HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, RoomNotFound):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, NotInRoom):
        raise HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, (RoomUnavailable, StaleReconstruction)):
        raise HTTPException(status_code=409, detail=str(exc))
    raise exc


@app.on_event("startup")
def on_startup():
    init_db()


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Sequential Blotto API", "version": "1.0.0"}


@app.get("/config/defaults")
def get_default_config():
    """Default game settings for the setup screen."""
    return GameConfig().to_dict()


# ----- Auth -----

@app.post("/auth/register")
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Register with email, username (unique, no spaces/special), and password."""
    try:
        player = register_player(db, request.email, request.username, request.password)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"access_token": create_access_token(player.id), "player": player_payload(player)}


@app.post("/auth/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Login with email and password."""
    try:
        player = authenticate(db, request.email, request.password)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"access_token": create_access_token(player.id), "player": player_payload(player)}


@app.get("/auth/me")
def auth_me(player: Player = Depends(get_current_player)):
    """Return current player (email, username; password not included)."""
    return player_payload(player)


# ----- Single player -----

@app.post("/single/create")
def create_single(
    request: CreateSingleRequest,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    """Start a game against the bot."""
    config = config_from_request(request.config)
    state = create_single_game(db, player.id, player.username, config)
    return {"game_id": state.id, "state": state_for_response(state)}


@app.get("/single/{game_id}")
def get_single(
    game_id: str,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    try:
        state = get_single_game(db, game_id, player.id)
    except MultiplayerError as e:
        raise_http(e)
    return {"game_id": game_id, "state": state_for_response(state), "can_move": can_move(state, player.id)}


@app.post("/single/{game_id}/move")
def single_move(
    game_id: str,
    request: MoveRequest,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    """Commit troops; the bot answers in the same request."""
    try:
        state, events, bot_troops = play_single_round(db, game_id, player.id, request.troops)
    except (InvalidMove, MultiplayerError) as e:
        raise_http(e)
    return {
        "state": state_for_response(state),
        "events": [e.to_dict() for e in events],
        "bot_troops": bot_troops,
    }


# ----- Multiplayer rooms -----

@app.post("/rooms/create")
def create_room(
    request: CreateRoomRequest,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    """Create a room; share room_code with the opponent."""
    config = config_from_request(request.config)
    try:
        row = multiplayer.create_room(db, player.id, player.username, config)
    except MultiplayerError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"room_id": row.id, "room_code": row.room_code}


@app.post("/rooms/join")
def join_room(
    request: JoinRoomRequest,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    """Join a room by code."""
    try:
        row = multiplayer.join_room(db, request.room_code, player.id, player.username)
    except MultiplayerError as e:
        raise_http(e)
    return multiplayer.room_to_dict(row)


@app.get("/rooms/{room_id}")
def get_room(
    room_id: str,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    """Room metadata, latest snapshot, and whether the caller may move now."""
    row = multiplayer.get_room(db, room_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Room {room_id} not found")
    out = multiplayer.room_to_dict(row)
    out["can_move"] = multiplayer.get_turn_eligibility(db, room_id, player.id)
    return out


@app.post("/rooms/{room_id}/start")
def start_room(
    room_id: str,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    """Start a full room. Either seated player may start it."""
    row = multiplayer.get_room(db, room_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Room {room_id} not found")
    if player.id not in (row.player1_id, row.player2_id):
        raise HTTPException(status_code=403, detail="Not in this room")
    try:
        state, events = multiplayer.start_room(db, room_id)
    except MultiplayerError as e:
        raise_http(e)
    return {
        "room_id": room_id,
        "state": state_for_response(state),
        "events": [e.to_dict() for e in events],
    }


@app.post("/rooms/{room_id}/move")
def room_move(
    room_id: str,
    request: MoveRequest,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    """Submit this round's troops. The round resolves once both players have submitted."""
    try:
        result = multiplayer.submit_move(db, room_id, player.id, request.troops, request.round_number)
        status = multiplayer.get_round_status(db, room_id)
    except (InvalidMove, MultiplayerError) as e:
        raise_http(e)
    return {
        "round_number": result.round_number,
        "resolved": result.resolved,
        "state": state_for_response(result.state) if result.state else None,
        "events": [e.to_dict() for e in result.events],
        "round_status": status.to_dict(),
    }


@app.get("/rooms/{room_id}/round-status")
def room_round_status(
    room_id: str,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    try:
        return multiplayer.get_round_status(db, room_id).to_dict()
    except MultiplayerError as e:
        raise_http(e)


@app.get("/rooms/{room_id}/can-move")
def room_can_move(
    room_id: str,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    return {"can_move": multiplayer.get_turn_eligibility(db, room_id, player.id)}


@app.post("/rooms/{room_id}/leave")
def leave_room(
    room_id: str,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    try:
        left = multiplayer.leave_room(db, room_id, player.id)
    except MultiplayerError as e:
        raise_http(e)
    if not left:
        raise HTTPException(status_code=403, detail="Not in this room")
    return {"message": f"Left room {room_id}"}


# ----- Profile -----

@app.get("/profile/stats")
def profile_stats(
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    return stats_to_dict(get_user_stats(db, player.id))


@app.get("/profile/games")
def profile_games(
    limit: int = 10,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    """Most recent finished games, newest first."""
    limit = max(1, min(limit, 100))
    return {"games": [record_to_dict(r, player.id) for r in get_recent_games(db, player.id, limit)]}


@app.get("/profile/games/{record_id}")
def profile_game(
    record_id: str,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
):
    record = get_game_record(db, record_id)
    if record is None or player.id not in (record.player1_id, record.player2_id):
        raise HTTPException(status_code=404, detail="Game not found")
    return record_to_dict(record, player.id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
