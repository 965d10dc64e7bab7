"""
Rock-Paper-Scissors rules.

Both players submit a move; the round resolves as soon as the second move arrives.
A tie either replays the round (moves cleared, stakes stay escrowed) or finishes as a
draw with refunds, depending on params['rps_tie_policy'].
"""
import logging
import random
from typing import Any, Dict, Optional

from memento.errors import InvalidMove
from . import lifecycle, negotiation
from .lifecycle import Transition, bump, event
from .state import Game, GAME_RPS

logger = logging.getLogger(__name__)

ROCK = 'rock'
PAPER = 'paper'
SCISSORS = 'scissors'
MOVES = (ROCK, PAPER, SCISSORS)

# key beats value
BEATS = {ROCK: SCISSORS, SCISSORS: PAPER, PAPER: ROCK}


def determine_winner(host_move: str, guest_move: str) -> Optional[str]:
    """'host', 'guest' or None for a tie."""
    if host_move not in MOVES or guest_move not in MOVES:
        raise InvalidMove(f"Unknown move pair: {host_move!r}, {guest_move!r}")
    if host_move == guest_move:
        return None
    return 'host' if BEATS[host_move] == guest_move else 'guest'


def negotiation_window_open(game: Game) -> bool:
    return game.get('host_move') is None and game.get('guest_move') is None


def move_field(game: Game, user_id: str) -> str:
    return 'host_move' if user_id == game['host_id'] else 'guest_move'


def create_game(game_id: str, host_id: str, bet_amount: Any = None, game_code: Optional[str] = None,
                now_ms: Optional[int] = None, rng: Optional[random.Random] = None) -> Transition:
    return lifecycle.create(GAME_RPS, game_id, host_id, bet_amount, game_code, now_ms,
                            extra={'host_move': None, 'guest_move': None})


def join_game(game: Game, guest_id: str, rng: Optional[random.Random] = None) -> Transition:
    return lifecycle.join(game, guest_id)


def propose_bet(game: Game, user_id: str, amount: Any) -> Transition:
    return negotiation.propose_bet(game, user_id, amount, negotiation_window_open)


def accept_bet(game: Game, user_id: str) -> Transition:
    return negotiation.accept_bet(game, user_id, negotiation_window_open)


def submit_move(game: Game, user_id: str, move: Any, params: Optional[Dict[str, Any]] = None) -> Transition:
    """Record the user's move; resolve the round once both moves are in."""
    lifecycle.require_playable(game, user_id)
    if move not in MOVES:
        raise InvalidMove(f"Move must be one of {MOVES}, got {move!r}")
    field = move_field(game, user_id)
    if game.get(field) is not None:
        raise InvalidMove(f"User {user_id} has already moved this round")

    new_game = bump(game, **{field: move})
    events = [event('MOVE_SUBMITTED', new_game, user_id=user_id)]
    if new_game.get('host_move') is None or new_game.get('guest_move') is None:
        return new_game, {}, events

    resolved, transfers, resolution_events = resolve_round(new_game, params)
    resolved['version'] = new_game['version']
    return resolved, transfers, events + resolution_events


def resolve_round(game: Game, params: Optional[Dict[str, Any]] = None) -> Transition:
    """Settle a round where both moves are present."""
    params = params or {}
    outcome = determine_winner(game['host_move'], game['guest_move'])
    if outcome is None:
        if params.get('rps_tie_policy', 'replay') == 'replay':
            logger.info(f"RPS game {game['id']} tied on {game['host_move']}; replaying round")
            replay = bump(game, host_move=None, guest_move=None)
            return replay, {}, [event('ROUND_TIED', replay, move=game['host_move'])]
        return lifecycle.finish(game, None)

    winner_id = game['host_id'] if outcome == 'host' else game['guest_id']
    return lifecycle.finish(game, winner_id)


def restart_game(game: Game, user_id: str, params: Optional[Dict[str, Any]] = None,
                 rng: Optional[random.Random] = None) -> Transition:
    return lifecycle.restart(game, user_id, params or {}, host_move=None, guest_move=None)


def forfeit_game(game: Game, user_id: str, params: Optional[Dict[str, Any]] = None) -> Transition:
    return lifecycle.forfeit(game, user_id, params or {})
