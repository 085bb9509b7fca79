"""
Main game reducer.
Applies troop commitments to state, enforcing rules and producing new state.
The raising form returns (new_state, events) where events describe what happened;
apply_move returns (new_state, success) for callers that only need a yes/no.
"""

import secrets

from backend.engine import PLAYER1, PLAYER2, STATUS_FINISHED, STATUS_PLAYING, STATUS_WAITING, TIE
from backend.engine.events import (
    GameEvent,
    game_finished,
    game_started,
    round_resolved,
    troops_committed,
)
from backend.engine.queries import get_round_wins, validate_move
from backend.engine.state import GameConfig, GameState, Player, Round, utc_now


class InvalidMove(ValueError):
    """A commitment the rules do not allow. No state was changed."""


def initialize_game(
    game_id: str,
    player1: Player,
    player2: Player,
    config: GameConfig | None = None,
) -> GameState:
    """
    Create a game in "waiting" status.
    Both players get config.starting_troops and zero round wins regardless of
    what the passed Player objects carry; only id, name and is_bot are kept.
    """
    config = config or GameConfig()
    now = utc_now()
    return GameState(
        id=game_id,
        player1=Player(id=player1.id, name=player1.name, troops=config.starting_troops, is_bot=player1.is_bot),
        player2=Player(id=player2.id, name=player2.name, troops=config.starting_troops, is_bot=player2.is_bot),
        config=config,
        current_round=1,
        rounds=[],
        status=STATUS_WAITING,
        winner=None,
        starting_troops=config.starting_troops,
        created_at=now,
        updated_at=now,
    )


def create_game(player1: Player, player2: Player, config: GameConfig | None = None) -> GameState:
    """initialize_game with a freshly generated id."""
    return initialize_game(secrets.token_hex(12), player1, player2, config)


def start_game(state: GameState) -> GameState:
    """waiting -> playing. Any other status returns the state unchanged."""
    new_state, _ = start_game_with_events(state)
    return new_state


def start_game_with_events(state: GameState) -> tuple[GameState, list[GameEvent]]:
    if state.status != STATUS_WAITING:
        return state, []
    new_state = state.copy()
    new_state.status = STATUS_PLAYING
    new_state.updated_at = utc_now()
    return new_state, [game_started(new_state.id)]


def resolve_move(state: GameState, player_id: str, troops: int) -> tuple[GameState, list[GameEvent]]:
    """
    Apply one player's commitment for the current round.

    The first commitment of a round opens it; the second resolves it: strictly
    more troops wins, equal is a tie and nobody scores. Troops are spent either way.
    After resolution the end conditions are checked and, unless the game just
    finished, current_round advances.

    Raises:
        InvalidMove: game not in progress, unknown player, negative troops,
            more troops than the pool holds, or a second commitment from the
            same player in one round.
    """
    validation = validate_move(state, player_id, troops)
    if not validation.valid:
        raise InvalidMove(validation.error)

    new_state = state.copy()
    events: list[GameEvent] = []
    role = new_state.role_of(player_id)
    player = new_state.player_for(role)

    if player.troops == 0:
        troops = 0
    player.troops -= troops

    now = utc_now()
    current = new_state.open_round()
    if current is None:
        current = Round(round_number=new_state.current_round, timestamp=now)
        new_state.rounds.append(current)
    elif not current.player1_moved and not current.player2_moved:
        # Older snapshots stored an open 0 vs 0 round for a first mover who committed 0;
        # the record itself is that commitment, so the other side completes it.
        current.record(PLAYER2 if role == PLAYER1 else PLAYER1, 0)
    current.record(role, troops)
    events.append(troops_committed(role, player_id, current.round_number, troops, player.troops))

    if current.player1_moved and current.player2_moved:
        events.extend(_resolve_round(new_state, current))

    new_state.updated_at = now
    return new_state, events


def apply_move(state: GameState, player_id: str, troops: int) -> tuple[GameState, bool]:
    """Like resolve_move, but a rejected move returns (state, False) with state untouched."""
    try:
        new_state, _ = resolve_move(state, player_id, troops)
    except InvalidMove:
        return state, False
    return new_state, True


def _resolve_round(state: GameState, current: Round) -> list[GameEvent]:
    """Decide the round winner, then check whether the game is over. Mutates state."""
    if current.player1_troops > current.player2_troops:
        current.winner = PLAYER1
        state.player1.round_wins += 1
    elif current.player2_troops > current.player1_troops:
        current.winner = PLAYER2
        state.player2.round_wins += 1
    else:
        current.winner = TIE

    events = [round_resolved(
        current.round_number,
        current.player1_troops,
        current.player2_troops,
        current.winner,
        get_round_wins(state),
    )]

    ending = _check_game_end(state)
    if ending is not None:
        winner, reason = ending
        state.status = STATUS_FINISHED
        state.winner = winner
        events.append(game_finished(winner, reason, get_round_wins(state)))
    else:
        state.current_round += 1
    return events


def _leader(state: GameState) -> str | None:
    if state.player1.round_wins > state.player2.round_wins:
        return PLAYER1
    if state.player2.round_wins > state.player1.round_wins:
        return PLAYER2
    return None


def _check_game_end(state: GameState) -> tuple[str | None, str] | None:
    """
    Return (winner, reason) if the game is over, else None. First match wins:
    victory margin reached, both pools empty, round cap exceeded.
    current_round still holds the round just resolved when this runs.
    """
    margin = abs(state.player1.round_wins - state.player2.round_wins)
    if margin >= state.config.victory_margin:
        return _leader(state), "victory_margin"
    if state.player1.troops == 0 and state.player2.troops == 0:
        return _leader(state), "troops_depleted"
    if state.current_round > state.config.max_rounds:
        return _leader(state), "max_rounds"
    return None


# ===== Snapshots =====

def serialize(state: GameState) -> dict:
    """Plain dict snapshot of the full game; see GameState.to_dict."""
    return state.to_dict()


def reconstruct(data: dict | str) -> GameState:
    """Rebuild a GameState from a snapshot dict (or its JSON string)."""
    if isinstance(data, str):
        return GameState.from_json(data)
    return GameState.from_dict(data)
