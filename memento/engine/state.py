from typing_extensions import TypedDict
from typing import Any, Dict, List, Optional
from decimal import Decimal

from memento.utils import to_decimal, get_current_ms, iso_to_ms

# Game statuses. 'playing' is a legacy synonym of 'active' found in older rows.
STATUS_WAITING = 'waiting'
STATUS_ACTIVE = 'active'
STATUS_PLAYING = 'playing'
STATUS_FINISHED = 'finished'
STATUS_CANCELLED = 'cancelled'

ACTIVE_STATUSES = (STATUS_ACTIVE, STATUS_PLAYING)
LIVE_STATUSES = (STATUS_WAITING, STATUS_ACTIVE, STATUS_PLAYING)

GAME_RPS = 'rps'
GAME_TTT = 'ttt'
GAME_TYPES = (GAME_RPS, GAME_TTT)

EMPTY_CELL = '_'
EMPTY_BOARD = EMPTY_CELL * 9

class Pool(TypedDict):
    token_id: str
    mmc_reserve: Decimal
    token_reserve: Decimal

class RPSGame(TypedDict):
    id: str
    game_type: str  # always 'rps'
    host_id: str
    guest_id: Optional[str]
    host_move: Optional[str]
    guest_move: Optional[str]
    bet_amount: Optional[Decimal]
    next_bet_amount: Optional[Decimal]
    next_bet_proposer_id: Optional[str]
    status: str
    winner_id: Optional[str]
    round_number: int
    game_code: Optional[str]
    is_private: bool
    expires_at: Optional[str]
    created_at: int  # epoch ms; stored as timestamptz
    version: int
    forfeited_by: Optional[str]

class TTTGame(TypedDict):
    id: str
    game_type: str  # always 'ttt'
    host_id: str
    guest_id: Optional[str]
    host_symbol: Optional[str]
    guest_symbol: Optional[str]
    board: str  # 9 chars over 'X', 'O', '_'
    turn_player_id: Optional[str]
    bet_amount: Optional[Decimal]
    next_bet_amount: Optional[Decimal]
    next_bet_proposer_id: Optional[str]
    status: str
    winner_id: Optional[str]
    round_number: int
    game_code: Optional[str]
    is_private: bool
    expires_at: Optional[str]
    created_at: int  # epoch ms; stored as timestamptz
    version: int
    forfeited_by: Optional[str]

# Tagged by 'game_type'
Game = RPSGame | TTTGame

# Signed MMC deltas per user produced by a transition: escrow debits are negative,
# refunds and payouts positive.
Transfers = Dict[str, Decimal]

def init_pool(token_id: str, mmc_reserve: Any, token_reserve: Any) -> Pool:
    """
    Build a pool snapshot. Reserves must be non-negative; a zero reserve yields an inactive pool.
    """
    mmc = to_decimal(mmc_reserve)
    tokens = to_decimal(token_reserve)
    if mmc < 0 or tokens < 0:
        raise ValueError(f"Pool reserves must be non-negative, got mmc={mmc} tokens={tokens}")
    return {'token_id': token_id, 'mmc_reserve': mmc, 'token_reserve': tokens}

def serialize_pool(pool: Pool) -> Dict[str, Any]:
    """
    Serialize pool to a JSON-compatible row (reserves as float).
    """
    return {
        'token_id': pool['token_id'],
        'mmc_reserve': float(pool['mmc_reserve']),
        'token_reserve': float(pool['token_reserve']),
    }

def deserialize_pool(row: Dict[str, Any]) -> Pool:
    return init_pool(row['token_id'], row['mmc_reserve'], row['token_reserve'])

def new_game_record(game_type: str, game_id: str, host_id: str, bet_amount: Optional[Decimal] = None,
                    game_code: Optional[str] = None, now_ms: Optional[int] = None) -> Dict[str, Any]:
    """
    Fields common to both game types, in 'waiting' status.
    """
    if game_type not in GAME_TYPES:
        raise ValueError(f"Unknown game type: {game_type}")
    return {
        'id': game_id,
        'game_type': game_type,
        'host_id': host_id,
        'guest_id': None,
        'bet_amount': bet_amount,
        'next_bet_amount': None,
        'next_bet_proposer_id': None,
        'status': STATUS_WAITING,
        'winner_id': None,
        'round_number': 1,
        'game_code': game_code,
        'is_private': game_code is not None,
        'expires_at': None,
        'created_at': now_ms if now_ms is not None else get_current_ms(),
        'version': 0,
        'forfeited_by': None,
    }

def deserialize_game(row: Dict[str, Any], game_type: str) -> Game:
    """
    Normalize a stored row: money fields to Decimal, legacy 'playing' to 'active', defaults for
    columns older rows may lack.
    """
    game: Dict[str, Any] = dict(row)
    game['game_type'] = game_type
    for key in ('bet_amount', 'next_bet_amount'):
        if game.get(key) is not None:
            game[key] = to_decimal(game[key])
    game['status'] = normalize_status(game.get('status', STATUS_WAITING))
    game.setdefault('guest_id', None)
    game.setdefault('winner_id', None)
    game.setdefault('next_bet_amount', None)
    game.setdefault('next_bet_proposer_id', None)
    game.setdefault('round_number', 1)
    game.setdefault('version', 0)
    game.setdefault('forfeited_by', None)
    if game.get('created_at') is not None:
        game['created_at'] = iso_to_ms(game['created_at'])
    game['is_private'] = bool(game.get('is_private'))
    if game_type == GAME_RPS:
        game.setdefault('host_move', None)
        game.setdefault('guest_move', None)
    else:
        game['board'] = game.get('board') or EMPTY_BOARD
        game.setdefault('host_symbol', None)
        game.setdefault('guest_symbol', None)
        game.setdefault('turn_player_id', None)
    return game

def serialize_game(game: Game) -> Dict[str, Any]:
    """
    Serialize a game to a storable row. Decimals become floats; the 'game_type' tag selects the
    table and is not stored.
    """
    row = {k: float(v) if isinstance(v, Decimal) else v for k, v in game.items()}
    row.pop('game_type', None)
    return row

def normalize_status(status: str) -> str:
    return STATUS_ACTIVE if status == STATUS_PLAYING else status

def is_active(game: Game) -> bool:
    return game['status'] in ACTIVE_STATUSES

def is_participant(game: Game, user_id: str) -> bool:
    return user_id is not None and user_id in (game['host_id'], game.get('guest_id'))

def opponent_of(game: Game, user_id: str) -> Optional[str]:
    if user_id == game['host_id']:
        return game.get('guest_id')
    if user_id == game.get('guest_id'):
        return game['host_id']
    return None

def players(game: Game) -> List[str]:
    return [p for p in (game['host_id'], game.get('guest_id')) if p]

