"""
Game room operations.

Each operation loads the current record, runs the pure engine transition, then
commits the new record (conditional on the version that was read) together
with the stake transfers in one unit of work, and finally broadcasts the
resulting events. Rejections come back as failed results.
"""
import logging
import random
import secrets
import string
import uuid
from typing import Any, Dict, List, Optional

from memento.config import EngineParams
from memento.db import Store, MMC, get_store
from memento.engine import games as rules
from memento.engine.lifecycle import Transition
from memento.engine.negotiation import proposal_view
from memento.engine.state import Game, GAME_TYPES
from memento.errors import ActiveGameExists, NotFound, PreconditionFailed
from memento.utils import validate_amount, validate_balance
from memento.services.params import resolve_params
from memento.services.realtime import Channel, publish_event
from memento.services.results import ok, service_result

logger = logging.getLogger(__name__)

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_join_code(store: Optional[Store] = None, length: int = 6, attempts: int = 10) -> str:
    """Random A-Z0-9 code not used by any existing game."""
    store = store or get_store()
    for _ in range(attempts):
        code = ''.join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))
        if not store.game_code_exists(code):
            return code
        logger.info(f"Join code collision on {code}, retrying")
    raise PreconditionFailed(f"Could not allocate a unique join code in {attempts} attempts")


def _check_game_type(game_type: str) -> None:
    if game_type not in GAME_TYPES:
        raise NotFound(f"Unknown game type: {game_type}")


def _load_game(store: Store, game_type: str, game_id: str) -> Game:
    _check_game_type(game_type)
    game = store.get_game(game_id, game_type)
    if game is None:
        raise NotFound(f"Game {game_id} not found")
    return game


def _ensure_no_live_game(store: Store, user_id: str, game_type: str) -> None:
    existing = store.find_active_game_for_user(user_id, game_type)
    if existing is not None:
        raise ActiveGameExists(f"User {user_id} is already in game {existing['id']}",
                               {'game_id': existing['id']})


def _commit(store: Store, channel: Optional[Channel], game: Game, transition: Transition) -> Game:
    new_game, transfers, events = transition
    with store.transaction() as uow:
        uow.update_game(new_game, game)
        uow.apply_transfers(transfers, MMC)
    for event in events:
        publish_event(new_game, event, channel)
    return new_game


@service_result
def create_game(game_type: str, host_id: str, bet_amount: Any = None, *, private: bool = False,
                store: Optional[Store] = None, channel: Optional[Channel] = None,
                params: Optional[EngineParams] = None, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Open a game for host_id. A private game gets a join code instead of a lobby listing."""
    store = store or get_store()
    params = resolve_params(params, store)
    _check_game_type(game_type)
    _ensure_no_live_game(store, host_id, game_type)
    if bet_amount is not None:
        validate_balance(store.get_balance(host_id, MMC), validate_amount(bet_amount, 'bet amount'), MMC)

    code = generate_join_code(store, params['join_code_length'], params['join_code_attempts']) if private else None
    new_game, transfers, events = rules.create_game(game_type, str(uuid.uuid4()), host_id, bet_amount, code, rng=rng)
    with store.transaction() as uow:
        uow.create_game(new_game)
        uow.apply_transfers(transfers, MMC)
    for event in events:
        publish_event(new_game, event, channel)
    logger.info(f"{host_id} created {game_type} game {new_game['id']} (private={private})")
    return ok(game=new_game, game_id=new_game['id'], game_code=code)


def create_private_game(game_type: str, host_id: str, bet_amount: Any = None, **kwargs: Any) -> Dict[str, Any]:
    return create_game(game_type, host_id, bet_amount, private=True, **kwargs)


def _join(store: Store, channel: Optional[Channel], game: Game, guest_id: str,
          rng: Optional[random.Random]) -> Game:
    _ensure_no_live_game(store, guest_id, game['game_type'])
    if game.get('bet_amount') is not None:
        validate_balance(store.get_balance(guest_id, MMC), game['bet_amount'], MMC)
    return _commit(store, channel, game, rules.join_game(game, guest_id, rng))


@service_result
def join_game(game_type: str, game_id: str, guest_id: str, *, store: Optional[Store] = None,
              channel: Optional[Channel] = None, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    store = store or get_store()
    game = _load_game(store, game_type, game_id)
    return ok(game=_join(store, channel, game, guest_id, rng))


@service_result
def join_game_by_code(game_type: str, game_code: str, guest_id: str, *, store: Optional[Store] = None,
                      channel: Optional[Channel] = None, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Join a private game; the code is matched case-insensitively."""
    store = store or get_store()
    _check_game_type(game_type)
    code = (game_code or '').strip().upper()
    game = store.find_waiting_game_by_code(code, game_type)
    if game is None:
        raise NotFound(f"No waiting game with code {code}")
    return ok(game=_join(store, channel, game, guest_id, rng), game_id=game['id'])


@service_result
def propose_bet(game_type: str, game_id: str, user_id: str, amount: Any, *,
                store: Optional[Store] = None, channel: Optional[Channel] = None) -> Dict[str, Any]:
    store = store or get_store()
    game = _load_game(store, game_type, game_id)
    validate_balance(store.get_balance(user_id, MMC), validate_amount(amount, 'bet amount'), MMC)
    return ok(game=_commit(store, channel, game, rules.propose_bet(game, user_id, amount)))


@service_result
def accept_bet(game_type: str, game_id: str, user_id: str, *,
               store: Optional[Store] = None, channel: Optional[Channel] = None) -> Dict[str, Any]:
    """Commit the pending proposal; both stakes are escrowed in the same write."""
    store = store or get_store()
    game = _load_game(store, game_type, game_id)
    return ok(game=_commit(store, channel, game, rules.accept_bet(game, user_id)))


@service_result
def submit_move(game_type: str, game_id: str, user_id: str, move: Any, *,
                store: Optional[Store] = None, channel: Optional[Channel] = None,
                params: Optional[EngineParams] = None) -> Dict[str, Any]:
    store = store or get_store()
    params = resolve_params(params, store)
    game = _load_game(store, game_type, game_id)
    new_game = _commit(store, channel, game, rules.submit_move(game, user_id, move, params))
    return ok(game=new_game, status=new_game['status'], winner_id=new_game.get('winner_id'))


@service_result
def restart_game(game_type: str, game_id: str, user_id: str, *,
                 store: Optional[Store] = None, channel: Optional[Channel] = None,
                 params: Optional[EngineParams] = None, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    store = store or get_store()
    params = resolve_params(params, store)
    game = _load_game(store, game_type, game_id)
    return ok(game=_commit(store, channel, game, rules.restart_game(game, user_id, params, rng)))


@service_result
def forfeit_game(game_type: str, game_id: str, user_id: str, *,
                 store: Optional[Store] = None, channel: Optional[Channel] = None,
                 params: Optional[EngineParams] = None) -> Dict[str, Any]:
    """Leave the game; escrowed stakes are settled according to params['forfeit_policy']."""
    store = store or get_store()
    params = resolve_params(params, store)
    game = _load_game(store, game_type, game_id)
    return ok(game=_commit(store, channel, game, rules.forfeit_game(game, user_id, params)))


def get_available_games(game_type: str, *, store: Optional[Store] = None) -> List[Game]:
    """Public games waiting for a guest."""
    store = store or get_store()
    _check_game_type(game_type)
    return store.list_waiting_games(game_type)


def get_user_active_game(user_id: str, game_type: str, *, store: Optional[Store] = None) -> Optional[Game]:
    store = store or get_store()
    _check_game_type(game_type)
    return store.find_active_game_for_user(user_id, game_type)


def get_game(game_type: str, game_id: str, *, store: Optional[Store] = None) -> Optional[Game]:
    store = store or get_store()
    _check_game_type(game_type)
    return store.get_game(game_id, game_type)


def get_bet_proposal(game_type: str, game_id: str, user_id: str, *,
                     store: Optional[Store] = None) -> Dict[str, Any]:
    """The pending bet proposal as user_id sees it; raises NotFound for an unknown game."""
    store = store or get_store()
    _check_game_type(game_type)
    return proposal_view(_load_game(store, game_type, game_id), user_id)
