"""
Pytest fixtures: an in-memory database per test and an API client bound to it.
"""

import os

# Keep bcrypt fast in tests; must be set before backend.api.auth is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from backend.api import multiplayer
from backend.api.database import Base, get_db, init_db, make_engine
from backend.api.main import app
from backend.engine.reducer import initialize_game, start_game
from backend.engine.state import GameConfig, Player


@pytest.fixture
def db_engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _clear_game_cache():
    multiplayer.active_games.clear()
    yield
    multiplayer.active_games.clear()


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_state(starting_troops=10, victory_margin=3, max_rounds=50):
    """A started two-player game with ids "p1" and "p2"."""
    config = GameConfig(starting_troops=starting_troops, victory_margin=victory_margin, max_rounds=max_rounds)
    state = initialize_game(
        "game-1",
        Player(id="p1", name="Alice", troops=0),
        Player(id="p2", name="Bob", troops=0),
        config,
    )
    return start_game(state)


@pytest.fixture
def playing_state():
    return make_state()


@pytest.fixture
def state_factory():
    return make_state
