"""Lifecycle transitions shared by every game type.

Every transition is pure: it takes a game snapshot and returns
``(new_game, transfers, events)``. ``transfers`` holds signed MMC deltas per
user. Stakes are escrowed when a bet is committed (create with a bet, join,
acceptance, restart) so the amounts held for a game follow from its status:

- waiting with a bet: the host's stake;
- active with a bet: both stakes;
- finished or cancelled: nothing.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from memento.errors import GameNotJoinable, InvalidMove
from memento.utils import validate_amount, to_decimal
from .state import (
    Game, Transfers, new_game_record, is_active, is_participant, opponent_of, players,
    STATUS_WAITING, STATUS_ACTIVE, STATUS_FINISHED, STATUS_CANCELLED, LIVE_STATUSES,
)

logger = logging.getLogger(__name__)

Transition = Tuple[Game, Transfers, List[Dict[str, Any]]]


def add_transfer(transfers: Transfers, user_id: str, delta: Decimal) -> None:
    transfers[user_id] = transfers.get(user_id, Decimal('0')) + delta


def bump(game: Game, **changes: Any) -> Game:
    """Copy of game with changes applied and the version advanced."""
    new_game = {**game, **changes}
    new_game['version'] = game.get('version', 0) + 1
    return new_game


def event(event_type: str, game: Game, **payload: Any) -> Dict[str, Any]:
    return {'type': event_type, 'game_id': game['id'], 'game_type': game['game_type'], **payload}


def escrowed_stakes(game: Game) -> Transfers:
    """Stakes currently held for the game, per user (positive amounts)."""
    held: Transfers = {}
    bet = game.get('bet_amount')
    if bet is None:
        return held
    bet = to_decimal(bet)
    if game['status'] == STATUS_WAITING:
        held[game['host_id']] = bet
    elif is_active(game):
        for player in players(game):
            held[player] = bet
    return held


def create(game_type: str, game_id: str, host_id: str, bet_amount: Any = None,
           game_code: Optional[str] = None, now_ms: Optional[int] = None,
           extra: Optional[Dict[str, Any]] = None) -> Transition:
    """New game in 'waiting'. A given bet escrows the host's stake immediately."""
    bet = validate_amount(bet_amount, 'bet amount') if bet_amount is not None else None
    game = new_game_record(game_type, game_id, host_id, bet, game_code, now_ms)
    if extra:
        game.update(extra)

    transfers: Transfers = {}
    if bet is not None:
        add_transfer(transfers, host_id, -bet)
    return game, transfers, [event('GAME_CREATED', game, host_id=host_id, bet_amount=bet)]


def join(game: Game, guest_id: str, **changes: Any) -> Transition:
    """Seat the guest. Escrows the guest's stake when the bet is already set."""
    if game['status'] != STATUS_WAITING:
        raise GameNotJoinable(f"Game {game['id']} is {game['status']}, not waiting")
    if game.get('guest_id'):
        raise GameNotJoinable(f"Game {game['id']} already has a guest")
    if not guest_id or guest_id == game['host_id']:
        raise GameNotJoinable("Host cannot join their own game")

    new_game = bump(game, guest_id=guest_id, status=STATUS_ACTIVE, **changes)
    transfers: Transfers = {}
    if game.get('bet_amount') is not None:
        add_transfer(transfers, guest_id, -to_decimal(game['bet_amount']))
    return new_game, transfers, [event('GAME_JOINED', new_game, guest_id=guest_id)]


def require_playable(game: Game, user_id: str) -> None:
    """Preconditions for submitting a move in any game type."""
    if not is_active(game):
        raise InvalidMove(f"Game {game['id']} is {game['status']}, not active")
    if not is_participant(game, user_id):
        raise InvalidMove(f"User {user_id} is not playing game {game['id']}")
    if game.get('bet_amount') is None:
        raise InvalidMove("Bet must be agreed before playing")


def finish(game: Game, winner_id: Optional[str], **changes: Any) -> Transition:
    """
    Close the round. The winner takes both stakes; without a winner each stake is refunded.
    """
    bet = to_decimal(game['bet_amount'])
    transfers: Transfers = {}
    if winner_id is not None:
        add_transfer(transfers, winner_id, bet * 2)
    else:
        for player in players(game):
            add_transfer(transfers, player, bet)
    new_game = bump(game, status=STATUS_FINISHED, winner_id=winner_id, **changes)
    events = [event('GAME_FINISHED', new_game, winner_id=winner_id, payout=bet * 2 if winner_id else Decimal('0'))]
    return new_game, transfers, events


def restart(game: Game, user_id: str, params: Dict[str, Any], **changes: Any) -> Transition:
    """
    Start the next round of a finished game. The caller supplies the per-type reset in changes.
    """
    if game['status'] != STATUS_FINISHED:
        raise InvalidMove(f"Only finished games can be restarted, game {game['id']} is {game['status']}")
    if not is_participant(game, user_id):
        raise InvalidMove(f"User {user_id} is not playing game {game['id']}")

    keep_bet = params.get('restart_keeps_bet', True) and game.get('bet_amount') is not None
    new_game = bump(
        game,
        status=STATUS_ACTIVE,
        winner_id=None,
        round_number=game.get('round_number', 1) + 1,
        bet_amount=game['bet_amount'] if keep_bet else None,
        next_bet_amount=None,
        next_bet_proposer_id=None,
        **changes,
    )
    transfers: Transfers = {}
    if keep_bet:
        for player in players(game):
            add_transfer(transfers, player, -to_decimal(game['bet_amount']))
    return new_game, transfers, [event('GAME_RESTARTED', new_game, round_number=new_game['round_number'])]


def forfeit(game: Game, user_id: str, params: Dict[str, Any]) -> Transition:
    """
    Leave a waiting or active game. The game is cancelled and escrowed stakes are returned,
    unless forfeit_policy is 'award' and an opponent is seated, in which case the opponent
    takes the pot.
    """
    if game['status'] not in LIVE_STATUSES:
        raise InvalidMove(f"Game {game['id']} is {game['status']} and cannot be left")
    if not is_participant(game, user_id):
        raise InvalidMove(f"User {user_id} is not playing game {game['id']}")

    held = escrowed_stakes(game)
    transfers: Transfers = {}
    awarded_to = None
    opponent = opponent_of(game, user_id)
    if params.get('forfeit_policy', 'cancel') == 'award' and is_active(game) and opponent and held:
        awarded_to = opponent
        add_transfer(transfers, opponent, sum(held.values(), Decimal('0')))
    else:
        for player, stake in held.items():
            add_transfer(transfers, player, stake)

    new_game = bump(game, status=STATUS_CANCELLED, forfeited_by=user_id)
    logger.info(f"Game {game['id']} cancelled by {user_id}; awarded_to={awarded_to}")
    return new_game, transfers, [event('GAME_CANCELLED', new_game, forfeited_by=user_id, awarded_to=awarded_to)]
