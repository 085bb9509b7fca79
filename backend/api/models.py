"""
SQLAlchemy models for players, game rooms, the move log, and finished-game history.
"""

from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from .database import Base


class Player(Base):
    __tablename__ = "players"

    id = Column(String(36), primary_key=True)  # uuid
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(64), unique=True, nullable=False, index=True)  # display name, no spaces/special
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class GameRoom(Base):
    """A game in progress. Single-player games have no room_code and a bot as player2."""
    __tablename__ = "game_rooms"

    id = Column(String(36), primary_key=True)  # uuid
    room_code = Column(String(8), unique=True, nullable=True, index=True)  # join code; null for single-player
    game_type = Column(String(16), nullable=False, default="multiplayer")  # single | multiplayer
    player1_id = Column(String(36), nullable=True)
    player1_name = Column(String(64), nullable=True)
    player2_id = Column(String(36), nullable=True)
    player2_name = Column(String(64), nullable=True)
    game_state = Column(Text, nullable=True)  # JSON snapshot; null until the game starts
    status = Column(String(32), nullable=False, default="waiting")  # waiting | playing | finished
    config = Column(Text, nullable=False)  # JSON GameConfig
    current_round = Column(Integer, nullable=False, default=1)
    round_status = Column(String(32), nullable=False, default="waiting")  # waiting | player1_moved | player2_moved | resolved
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class GameMove(Base):
    """Move log: one row per player per round. The unique constraint rejects double submissions."""
    __tablename__ = "game_moves"
    __table_args__ = (
        UniqueConstraint("room_id", "player_id", "round_number", name="uq_move_room_player_round"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("game_rooms.id"), nullable=False, index=True)
    player_id = Column(String(36), nullable=False)
    round_number = Column(Integer, nullable=False)
    troops = Column(Integer, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow)


class RoundResolution(Base):
    """Marks a round as resolved. Inserting a second marker for the same round fails."""
    __tablename__ = "round_resolutions"
    __table_args__ = (
        UniqueConstraint("room_id", "round_number", name="uq_resolution_room_round"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("game_rooms.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    resolved_at = Column(DateTime, default=datetime.utcnow)


class GameRecord(Base):
    """Finished game, kept for profile history."""
    __tablename__ = "game_records"

    id = Column(String(36), primary_key=True)  # uuid
    player1_id = Column(String(36), nullable=True, index=True)
    player2_id = Column(String(36), nullable=True, index=True)  # null for the bot
    player1_name = Column(String(64), nullable=False)
    player2_name = Column(String(64), nullable=False)
    starting_troops = Column(Integer, nullable=False)
    winner = Column(String(16), nullable=True)  # player1 | player2 | null for a tie
    rounds = Column(Text, nullable=False)  # JSON array of round records
    game_type = Column(String(16), nullable=False)  # single | multiplayer
    created_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)


class UserStats(Base):
    __tablename__ = "user_stats"

    user_id = Column(String(36), ForeignKey("players.id"), primary_key=True)
    games_played = Column(Integer, nullable=False, default=0)
    games_won = Column(Integer, nullable=False, default=0)
    total_troops_deployed = Column(Integer, nullable=False, default=0)
    total_rounds_won = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow)
