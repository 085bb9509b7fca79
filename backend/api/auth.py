"""
Accounts: password hashing, JWT bearer tokens, and the FastAPI dependencies that
resolve the calling player. Passwords go through bcrypt directly; bcrypt reads at
most 72 bytes, so we truncate before hashing.
"""

import os
import re
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .models import GameRoom, Player
from .records import GAME_TYPE_SINGLE, forget_player

# Username: alphanumeric and underscore only, 2-32 chars
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{2,32}$")
MIN_PASSWORD_LENGTH = 6

SECRET_KEY = os.environ.get("JWT_SECRET", "change-me-in-production-use-env")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = 30

BCRYPT_MAX_BYTES = 72
BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "10"))
security = HTTPBearer(auto_error=False)


class AuthError(Exception):
    """Registration or login refused; message is safe to show the user."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def _truncate_password(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_truncate_password(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(_truncate_password(plain), hashed.encode("ascii"))


def create_access_token(player_id: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    return jwt.encode({"sub": player_id, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> str | None:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload.get("sub")
    except JWTError:
        return None


def validate_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.match(username))


def register_player(db: Session, email: str, username: str, password: str) -> Player:
    """Create an account. Raises AuthError for a bad username/password or a taken email/username."""
    email = email.strip().lower()
    if not validate_username(username):
        raise AuthError("Username must be 2-32 characters, letters numbers and underscore only")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if db.query(Player).filter(Player.email == email).first():
        raise AuthError("Email already registered")
    if db.query(Player).filter(Player.username == username).first():
        raise AuthError("Username already taken")
    player = Player(
        id=str(uuid.uuid4()),
        email=email,
        username=username,
        password_hash=hash_password(password),
    )
    try:
        db.add(player)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return player


def authenticate(db: Session, email: str, password: str) -> Player:
    player = db.query(Player).filter(Player.email == email.strip().lower()).first()
    if not player or not verify_password(password, player.password_hash):
        raise AuthError("Invalid email or password", status_code=401)
    return player


def delete_account(db: Session, email: str) -> str | None:
    """
    Remove the account registered under email, with its stats and bot games,
    so the email and username can be registered again.
    Returns the deleted username, or None if no account matched.
    """
    player = db.query(Player).filter(Player.email == email.strip().lower()).first()
    if player is None:
        return None
    username = player.username
    try:
        forget_player(db, player.id)
        db.query(GameRoom).filter(
            GameRoom.game_type == GAME_TYPE_SINGLE,
            GameRoom.player1_id == player.id,
        ).delete(synchronize_session=False)
        db.delete(player)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return username


def player_payload(player: Player) -> dict:
    return {"id": player.id, "email": player.email, "username": player.username}


def _player_from_credentials(credentials: HTTPAuthorizationCredentials | None, db: Session) -> Player | None:
    if not credentials:
        return None
    player_id = decode_token(credentials.credentials)
    if not player_id:
        return None
    return db.query(Player).filter(Player.id == player_id).first()


def get_current_player(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Player:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    player = _player_from_credentials(credentials, db)
    if not player:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return player
