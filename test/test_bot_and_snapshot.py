"""
Bot commitments and snapshot round trips.
"""

import json
import random

import pytest

from backend.engine import PLAYER1, PLAYER2, STATUS_FINISHED, STATUS_PLAYING
from backend.engine.bot import choose_move
from backend.engine.reducer import apply_move, reconstruct, serialize
from backend.engine.state import GameState, Player


def test_bot_with_empty_pool_commits_nothing():
    assert choose_move(Player("bot", "AI", 0, is_bot=True)) == 0


def test_bot_stays_within_eighty_percent():
    rng = random.Random(7)
    bot = Player("bot", "AI", 10, is_bot=True)
    picks = {choose_move(bot, rng) for _ in range(500)}
    assert min(picks) == 0
    assert max(picks) == 8
    assert picks <= set(range(0, 9))


def test_bot_with_one_troop_can_only_commit_zero():
    rng = random.Random(1)
    bot = Player("bot", "AI", 1, is_bot=True)
    assert {choose_move(bot, rng) for _ in range(50)} == {0}


def test_seeded_bot_is_reproducible():
    bot = Player("bot", "AI", 100, is_bot=True)
    first = [choose_move(bot, random.Random(42)) for _ in range(3)]
    second = [choose_move(bot, random.Random(42)) for _ in range(3)]
    assert first == second


def test_snapshot_fields_match_wire_format(playing_state):
    state, _ = apply_move(playing_state, "p1", 6)
    state, _ = apply_move(state, "p2", 4)
    data = serialize(state)
    assert set(data) >= {
        "id", "player1", "player2", "current_round", "rounds", "status",
        "winner", "starting_troops", "created_at", "updated_at",
    }
    assert data["status"] == "playing"
    assert data["player1"] == {"id": "p1", "name": "Alice", "troops": 4, "round_wins": 1, "is_bot": False}
    rnd = data["rounds"][0]
    assert rnd["round_number"] == 1
    assert (rnd["player1_troops"], rnd["player2_troops"], rnd["winner"]) == (6, 4, PLAYER1)
    assert isinstance(rnd["timestamp"], str)
    # JSON safe
    assert json.loads(json.dumps(data)) == data


def test_reconstruct_preserves_history_and_timestamps(playing_state):
    state, _ = apply_move(playing_state, "p1", 6)
    state, _ = apply_move(state, "p2", 4)
    state, _ = apply_move(state, "p2", 1)  # round 2 left open
    restored = reconstruct(serialize(state))
    assert restored == state
    assert restored.rounds[0].timestamp == state.rounds[0].timestamp
    assert restored.created_at == state.created_at
    assert reconstruct(state.to_json()) == state


def test_reconstructed_state_plays_identically(playing_state):
    state, _ = apply_move(playing_state, "p1", 3)
    restored = reconstruct(serialize(state))
    moves = [("p2", 2), ("p1", 4), ("p2", 3), ("p1", 2), ("p2", 5)]
    for player_id, troops in moves:
        state, ok_a = apply_move(state, player_id, troops)
        restored, ok_b = apply_move(restored, player_id, troops)
        assert ok_a == ok_b
        assert (state.player1.troops, state.player2.troops) == (restored.player1.troops, restored.player2.troops)
        assert state.status == restored.status
        assert state.winner == restored.winner
    assert [r.winner for r in state.rounds] == [r.winner for r in restored.rounds]


def test_reconstructed_open_round_still_rejects_second_move_by_same_player(playing_state):
    state, _ = apply_move(playing_state, "p1", 3)
    restored = reconstruct(serialize(state))
    _, ok = apply_move(restored, "p1", 1)
    assert not ok


def test_reconstruct_accepts_camel_case_snapshot():
    legacy = {
        "id": "abc",
        "player1": {"id": "u1", "name": "You", "troops": 4, "roundWins": 1},
        "player2": {"id": "bot", "name": "AI", "troops": 6, "roundWins": 0, "isBot": True},
        "currentRound": 2,
        "rounds": [{
            "roundNumber": 1,
            "player1Troops": 6,
            "player2Troops": 4,
            "winner": "player1",
            "timestamp": "2024-05-01T12:00:00.000Z",
        }],
        "status": "playing",
        "winner": None,
        "startingTroops": 10,
        "createdAt": "2024-05-01T11:59:00.000Z",
        "updatedAt": "2024-05-01T12:00:00.000Z",
    }
    state = reconstruct(legacy)
    assert isinstance(state, GameState)
    assert state.player2.is_bot
    assert state.player1.round_wins == 1
    assert state.current_round == 2
    assert state.rounds[0].player1_moved and state.rounds[0].player2_moved
    assert state.rounds[0].timestamp.year == 2024
    assert state.status == STATUS_PLAYING
    state, ok = apply_move(state, "u1", 4)
    assert ok
    state, ok = apply_move(state, "bot", 0)
    assert ok
    assert state.player1.round_wins == 2
    assert state.status != STATUS_FINISHED or state.winner == PLAYER1


def legacy_open_zero_round():
    """An older snapshot: someone opened round 1 by committing 0, no moved flags."""
    return {
        "id": "legacy",
        "player1": {"id": "u1", "name": "Ann", "troops": 10, "roundWins": 0},
        "player2": {"id": "u2", "name": "Ben", "troops": 10, "roundWins": 0},
        "currentRound": 1,
        "rounds": [{"roundNumber": 1, "player1Troops": 0, "player2Troops": 0, "winner": None}],
        "status": "playing",
        "winner": None,
        "startingTroops": 10,
    }


@pytest.mark.parametrize("mover,role", [("u2", PLAYER2), ("u1", PLAYER1)])
def test_legacy_open_zero_round_resolves_on_next_move(mover, role):
    state = reconstruct(legacy_open_zero_round())
    state, ok = apply_move(state, mover, 5)
    assert ok
    rnd = state.rounds[0]
    assert rnd.winner == role
    assert rnd.player1_moved and rnd.player2_moved
    assert state.current_round == 2
    assert (state.player1.troops + state.player2.troops) == 15
    assert len(state.rounds) == 1


def test_legacy_open_zero_round_cannot_be_committed_twice():
    state = reconstruct(legacy_open_zero_round())
    state, ok = apply_move(state, "u2", 5)
    assert ok
    # Round 1 is closed, so u1's next commitment opens round 2
    state, ok = apply_move(state, "u1", 3)
    assert ok
    assert state.rounds[0].player1_troops == 0
    assert state.rounds[1].player1_troops == 3
    assert state.player1.troops == 7
