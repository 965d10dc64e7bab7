"""
Bet negotiation shared by both game types.

A game holds at most one outstanding proposal as (next_bet_amount, next_bet_proposer_id).
Either player may overwrite it; only the other player may accept it. Acceptance commits the
bet and escrows both stakes.
"""
from typing import Any, Callable, Dict

from memento.errors import BetProposalRejected
from memento.utils import validate_amount, to_decimal
from .lifecycle import Transition, add_transfer, bump, event
from .state import Game, Transfers, is_active, is_participant, players

WindowPredicate = Callable[[Game], bool]


def has_pending_proposal(game: Game) -> bool:
    return game.get('next_bet_amount') is not None and game.get('next_bet_proposer_id') is not None


def can_negotiate(game: Game, window_open: WindowPredicate) -> bool:
    """Active, both players seated, no bet yet and nothing played this round."""
    return (
        is_active(game)
        and game.get('guest_id') is not None
        and game.get('bet_amount') is None
        and window_open(game)
    )


def propose_bet(game: Game, user_id: str, amount: Any, window_open: WindowPredicate) -> Transition:
    if not is_participant(game, user_id):
        raise BetProposalRejected(f"User {user_id} is not playing game {game['id']}")
    if not can_negotiate(game, window_open):
        raise BetProposalRejected(f"Game {game['id']} is not open for bet negotiation")
    bet = validate_amount(amount, 'bet amount')

    new_game = bump(game, next_bet_amount=bet, next_bet_proposer_id=user_id)
    return new_game, {}, [event('BET_PROPOSED', new_game, proposer_id=user_id, amount=bet)]


def accept_bet(game: Game, user_id: str, window_open: WindowPredicate) -> Transition:
    if not is_participant(game, user_id):
        raise BetProposalRejected(f"User {user_id} is not playing game {game['id']}")
    if not has_pending_proposal(game):
        raise BetProposalRejected(f"Game {game['id']} has no pending bet proposal")
    if game['next_bet_proposer_id'] == user_id:
        raise BetProposalRejected("Cannot accept your own bet proposal")
    if not can_negotiate(game, window_open):
        raise BetProposalRejected(f"Game {game['id']} is not open for bet negotiation")

    bet = to_decimal(game['next_bet_amount'])
    new_game = bump(game, bet_amount=bet, next_bet_amount=None, next_bet_proposer_id=None)
    transfers: Transfers = {}
    for player in players(game):
        add_transfer(transfers, player, -bet)
    return new_game, transfers, [event('BET_ACCEPTED', new_game, accepted_by=user_id, bet_amount=bet)]


def proposal_view(game: Game, user_id: str) -> Dict[str, Any]:
    """What a player sees of the negotiation: the pending amount and whether they may accept it."""
    pending = has_pending_proposal(game)
    return {
        'pending_amount': game.get('next_bet_amount') if pending else None,
        'proposed_by_me': pending and game['next_bet_proposer_id'] == user_id,
        'can_accept': pending and game['next_bet_proposer_id'] != user_id and is_participant(game, user_id),
    }
