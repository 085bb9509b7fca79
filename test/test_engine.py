"""
Engine rules: move validation, round resolution, and game termination.
"""

import pytest

from backend.engine import PLAYER1, PLAYER2, STATUS_FINISHED, STATUS_PLAYING, STATUS_WAITING, TIE
from backend.engine.events import GAME_FINISHED, ROUND_RESOLVED, TROOPS_COMMITTED
from backend.engine.queries import can_move, get_game_status, total_troops_deployed
from backend.engine.reducer import (
    InvalidMove,
    apply_move,
    initialize_game,
    resolve_move,
    start_game,
)
from backend.engine.state import GameConfig, Player
from backend.engine.utils import describe_round, print_game_state


def play_round(state, p1_troops, p2_troops):
    state, ok1 = apply_move(state, "p1", p1_troops)
    state, ok2 = apply_move(state, "p2", p2_troops)
    assert ok1 and ok2
    return state


def test_initialize_gives_both_players_full_pools():
    config = GameConfig(starting_troops=25, victory_margin=2, max_rounds=10)
    state = initialize_game("g", Player("a", "A", 999, round_wins=4), Player("b", "B", 0), config)
    assert state.status == STATUS_WAITING
    assert state.player1.troops == 25 and state.player2.troops == 25
    assert state.player1.round_wins == 0 and state.player2.round_wins == 0
    assert state.current_round == 1
    assert state.rounds == []
    assert state.starting_troops == 25
    assert state.winner is None


def test_game_config_rejects_non_positive_values():
    with pytest.raises(ValueError):
        GameConfig(starting_troops=0)
    with pytest.raises(ValueError):
        GameConfig(victory_margin=-1)


def test_start_only_moves_waiting_games():
    state = initialize_game("g", Player("a", "A", 0), Player("b", "B", 0))
    assert not can_move(state, "a")
    started = start_game(state)
    assert started.status == STATUS_PLAYING
    assert state.status == STATUS_WAITING  # original untouched
    assert start_game(started) is started


def test_can_move_requires_participant(playing_state):
    assert can_move(playing_state, "p1")
    assert can_move(playing_state, "p2")
    assert not can_move(playing_state, "stranger")


def test_first_move_opens_round(playing_state):
    state, ok = apply_move(playing_state, "p1", 6)
    assert ok
    assert state.player1.troops == 4
    assert len(state.rounds) == 1
    rnd = state.rounds[0]
    assert rnd.round_number == 1
    assert rnd.player1_troops == 6 and rnd.player2_troops == 0
    assert rnd.winner is None
    assert state.current_round == len(state.rounds)


def test_six_versus_four_scenario(playing_state):
    state = play_round(playing_state, 6, 4)
    rnd = state.rounds[0]
    assert rnd.winner == PLAYER1
    assert (state.player1.troops, state.player2.troops) == (4, 6)
    assert (state.player1.round_wins, state.player2.round_wins) == (1, 0)
    assert state.current_round == len(state.rounds) + 1 == 2


def test_repeated_ties_end_when_both_pools_empty(playing_state):
    state = playing_state
    for _ in range(50):
        if state.status != STATUS_PLAYING:
            break
        state = play_round(state, 5, 5)
    assert state.status == STATUS_FINISHED
    assert state.winner is None
    assert len(state.rounds) == 2
    assert all(r.winner == TIE for r in state.rounds)
    assert (state.player1.round_wins, state.player2.round_wins) == (0, 0)
    assert get_game_status(state) == "Game ended in a tie"


def test_three_straight_wins_reach_victory_margin(state_factory):
    state = state_factory(starting_troops=100)
    for _ in range(3):
        state = play_round(state, 2, 1)
    assert state.status == STATUS_FINISHED
    assert state.winner == PLAYER1
    assert len(state.rounds) == 3
    assert state.current_round == 3
    assert state.player1.troops == 94


def test_player2_can_win_by_margin(state_factory):
    state = state_factory(starting_troops=30, victory_margin=2)
    state = play_round(state, 1, 5)
    state = play_round(state, 0, 1)
    assert state.status == STATUS_FINISHED
    assert state.winner == PLAYER2
    assert get_game_status(state) == "Bob wins!"


def test_depletion_with_leader_picks_leader(state_factory):
    state = state_factory(starting_troops=10, victory_margin=5)
    state = play_round(state, 7, 3)
    state = play_round(state, 3, 7)
    # Both pools now 0 but round wins are 1-1: tie
    assert state.status == STATUS_FINISHED
    assert state.winner is None

    # 2-1 on round wins when both pools run dry
    state = state_factory(starting_troops=10, victory_margin=5)
    state = play_round(state, 2, 1)
    state = play_round(state, 2, 1)
    assert state.status == STATUS_PLAYING
    state = play_round(state, 6, 8)
    assert (state.player1.troops, state.player2.troops) == (0, 0)
    assert (state.player1.round_wins, state.player2.round_wins) == (2, 1)
    assert state.status == STATUS_FINISHED
    assert state.winner == PLAYER1


def test_max_rounds_cap_is_checked_against_resolved_round(state_factory):
    state = state_factory(starting_troops=100, victory_margin=10, max_rounds=2)
    state = play_round(state, 0, 0)
    state = play_round(state, 0, 0)
    # current_round (2) is not yet beyond the cap when round 2 resolves
    assert state.status == STATUS_PLAYING
    state = play_round(state, 1, 0)
    assert state.status == STATUS_FINISHED
    assert state.winner == PLAYER1
    assert len(state.rounds) == 3


def test_margin_takes_precedence_over_depletion(state_factory):
    state = state_factory(starting_troops=3, victory_margin=1)
    state = play_round(state, 3, 2)
    state = play_round(state, 0, 1) if state.status == STATUS_PLAYING else state
    assert state.status == STATUS_FINISHED
    assert state.winner == PLAYER1
    assert len(state.rounds) == 1


def test_depleted_player_commitment_is_coerced_to_zero(state_factory):
    state = state_factory(starting_troops=10, victory_margin=10)
    state = play_round(state, 10, 1)
    assert state.player1.troops == 0
    state, ok = apply_move(state, "p1", 7)
    assert ok
    assert state.rounds[-1].player1_troops == 0
    assert state.player1.troops == 0
    state, ok = apply_move(state, "p2", 2)
    assert ok
    assert state.rounds[-1].winner == PLAYER2


@pytest.mark.parametrize("troops", [-1, 11])
def test_invalid_troop_counts_are_rejected(playing_state, troops):
    state, ok = apply_move(playing_state, "p1", troops)
    assert not ok
    assert state is playing_state
    assert state.player1.troops == 10
    assert state.rounds == []


def test_rejections_raise_invalid_move(playing_state):
    with pytest.raises(InvalidMove):
        resolve_move(playing_state, "stranger", 1)
    with pytest.raises(InvalidMove):
        resolve_move(playing_state, "p1", 11)
    waiting = initialize_game("g", Player("p1", "A", 0), Player("p2", "B", 0))
    with pytest.raises(InvalidMove):
        resolve_move(waiting, "p1", 1)


def test_same_player_cannot_move_twice_in_a_round(playing_state):
    state, ok = apply_move(playing_state, "p1", 3)
    assert ok
    again, ok = apply_move(state, "p1", 2)
    assert not ok
    assert again is state
    assert state.player1.troops == 7


def test_no_moves_after_finish(playing_state):
    state = play_round(playing_state, 5, 5)
    state = play_round(state, 5, 5)
    assert state.status == STATUS_FINISHED
    frozen = state.to_dict()
    after, ok = apply_move(state, "p1", 0)
    assert not ok
    assert after.to_dict() == frozen


def test_submission_order_does_not_change_the_round(playing_state):
    forward = play_round(playing_state, 6, 4)
    backward, ok = apply_move(playing_state, "p2", 4)
    assert ok
    backward, ok = apply_move(backward, "p1", 6)
    assert ok

    def comparable(state):
        data = state.to_dict()
        for r in data["rounds"]:
            r.pop("timestamp")
        data.pop("updated_at")
        return data

    assert comparable(forward) == comparable(backward)


def test_resolve_move_reports_events(playing_state):
    state, events = resolve_move(playing_state, "p1", 6)
    assert [e.type for e in events] == [TROOPS_COMMITTED]
    state, events = resolve_move(state, "p2", 4)
    assert [e.type for e in events] == [TROOPS_COMMITTED, ROUND_RESOLVED]
    assert events[1].payload["winner"] == PLAYER1

    state = play_round(state, 1, 0)
    state, _ = resolve_move(state, "p1", 1)
    state, events = resolve_move(state, "p2", 0)
    assert events[-1].type == GAME_FINISHED
    assert events[-1].payload["reason"] == "victory_margin"


def test_pool_never_negative_and_tracks_commitments(state_factory):
    state = state_factory(starting_troops=20, victory_margin=20)
    spent = {"p1": 0, "p2": 0}
    for p1, p2 in [(3, 5), (0, 2), (7, 7), (10, 6)]:
        state = play_round(state, p1, p2)
        spent["p1"] += p1
        spent["p2"] += p2
        assert state.player1.troops == 20 - spent["p1"] >= 0
        assert state.player2.troops == 20 - spent["p2"] >= 0
    assert total_troops_deployed(state, PLAYER1) == 20
    assert total_troops_deployed(state, PLAYER2) == 20


def test_round_descriptions(playing_state, capsys):
    state, _ = apply_move(playing_state, "p1", 6)
    assert describe_round(state, state.rounds[0]) == "Round 1: Alice 6 vs Bob 0 (waiting)"
    state, _ = apply_move(state, "p2", 4)
    assert describe_round(state, state.rounds[0]) == "Round 1: Alice 6 vs Bob 4 -> Alice"
    print_game_state(state, verbose=True)
    out = capsys.readouterr().out
    assert "Round 2" in out
    assert "Alice: troops=4, round wins=1" in out
