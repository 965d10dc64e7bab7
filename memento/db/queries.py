from typing import List, Dict, Any, Optional
import logging

from supabase import Client

from memento.config import get_supabase_client
from memento.errors import NotFound, PreconditionFailed
from memento.engine.state import LIVE_STATUSES, STATUS_WAITING

logger = logging.getLogger(__name__)

GAME_TABLES = {'rps': 'rps_games', 'ttt': 'ttt_games'}
BALANCE_COLUMNS = {'MMC': 'mmc_balance', 'USD': 'usd_balance'}

# Columns each written table accepts; any other key of a record stays in the engine.
# rps_games/ttt_games need the game room migration under supabase/migrations.
_GAME_COMMON = {
    'id', 'host_id', 'guest_id', 'bet_amount', 'next_bet_amount', 'next_bet_proposer_id',
    'status', 'winner_id', 'round_number', 'game_code', 'is_private', 'expires_at',
    'created_at', 'version', 'forfeited_by',
}
TABLE_COLUMNS = {
    'rps_games': _GAME_COMMON | {'host_move', 'guest_move'},
    'ttt_games': _GAME_COMMON | {'board', 'host_symbol', 'guest_symbol', 'turn_player_id'},
    'orders': {'id', 'token_id', 'user_id', 'type', 'amount', 'price', 'status',
               'payment_token_id', 'created_at'},
    'tokens': {'id', 'ticker', 'name', 'issuer_id', 'total_supply', 'current_price',
               'market_cap', 'net_worth', 'description', 'image_url', 'created_at'},
    'trades': {'id', 'token_id', 'buyer_id', 'seller_id', 'amount', 'price_per_token',
               'total_value', 'type', 'executed_at'},
    'price_history': {'id', 'token_id', 'price', 'market_cap', 'volume_24h', 'timestamp'},
}

def get_db() -> Client:
    return get_supabase_client()

def _one(result: Any) -> Optional[Dict[str, Any]]:
    return result.data[0] if result.data else None

def supported_fields(table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys the table has no column for."""
    columns = TABLE_COLUMNS[table]
    dropped = set(row) - columns
    if dropped:
        logger.debug(f"Not stored in {table}: {sorted(dropped)}")
    return {k: v for k, v in row.items() if k in columns}

# Config queries
def load_config() -> Dict[str, Any]:
    db = get_db()
    result = db.table('config').select('*').limit(1).execute()
    if result.data:
        config = result.data[0]
        config['params'] = config.get('params') or {}  # JSONB
        return config
    return {}

def update_config(config_data: Dict[str, Any]) -> None:
    """Merge params into the single config row, creating it on first use."""
    db = get_db()
    existing = db.table('config').select('config_id, params').limit(1).execute()
    update_data = dict(config_data)
    if 'params' in config_data and existing.data:
        update_data['params'] = {**(existing.data[0].get('params') or {}), **config_data['params']}
    logger.info(f"update_config storing: {update_data}")
    if existing.data:
        db.table('config').update(update_data).eq('config_id', existing.data[0]['config_id']).execute()
    else:
        db.table('config').insert(update_data).execute()

# Profiles queries
def fetch_profile(user_id: str) -> Dict[str, Any]:
    db = get_db()
    row = _one(db.table('profiles').select('*').eq('id', user_id).execute())
    if row is None:
        raise NotFound(f"User {user_id} not found")
    return row

def update_balance(user_id: str, currency: str, new_balance: float, expected_balance: float) -> None:
    """Conditional write: only applies while the stored balance still equals expected_balance."""
    db = get_db()
    column = BALANCE_COLUMNS[currency]
    result = db.table('profiles').update({column: new_balance}) \
        .eq('id', user_id).eq(column, expected_balance).execute()
    if not result.data:
        raise PreconditionFailed(f"{currency} balance of {user_id} changed concurrently")

def update_equity_flag(user_id: str, value: bool) -> None:
    db = get_db()
    result = db.table('profiles').update({'has_exchanged_equity': value}) \
        .eq('id', user_id).eq('has_exchanged_equity', not value).execute()
    if not result.data:
        raise PreconditionFailed(f"Equity exchange flag of {user_id} is already {value}")

# Holdings queries
def fetch_holding(user_id: str, token_id: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return _one(db.table('holdings').select('*').eq('user_id', user_id).eq('token_id', token_id).execute())

def upsert_holding(user_id: str, token_id: str, amount: float, expected_amount: Optional[float]) -> None:
    """Create the holding row, or update it conditionally on the previously read amount."""
    db = get_db()
    if expected_amount is None:
        db.table('holdings').insert({'user_id': user_id, 'token_id': token_id, 'amount': amount}).execute()
        return
    result = db.table('holdings').update({'amount': amount, 'updated_at': 'now()'}) \
        .eq('user_id', user_id).eq('token_id', token_id).eq('amount', expected_amount).execute()
    if not result.data:
        raise PreconditionFailed(f"Holding of {user_id} in {token_id} changed concurrently")

# AMM pool queries
def fetch_pool(token_id: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return _one(db.table('amm_pools').select('*').eq('token_id', token_id).execute())

def update_pool(token_id: str, row: Dict[str, float], expected: Dict[str, float]) -> None:
    db = get_db()
    result = db.table('amm_pools').update(row) \
        .eq('token_id', token_id) \
        .eq('mmc_reserve', expected['mmc_reserve']) \
        .eq('token_reserve', expected['token_reserve']).execute()
    if not result.data:
        raise PreconditionFailed(f"Pool {token_id} changed since it was read")

# Game queries
def fetch_game(game_type: str, game_id: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return _one(db.table(GAME_TABLES[game_type]).select('*').eq('id', game_id).execute())

def insert_game(game_type: str, row: Dict[str, Any]) -> None:
    db = get_db()
    table = GAME_TABLES[game_type]
    db.table(table).insert(supported_fields(table, row)).execute()

def delete_game(game_type: str, game_id: str) -> None:
    db = get_db()
    db.table(GAME_TABLES[game_type]).delete().eq('id', game_id).execute()

def update_game(game_type: str, game_id: str, row: Dict[str, Any], expected_version: int) -> None:
    db = get_db()
    table = GAME_TABLES[game_type]
    result = db.table(table).update(supported_fields(table, row)) \
        .eq('id', game_id).eq('version', expected_version).execute()
    if not result.data:
        raise PreconditionFailed(f"Game {game_id} is no longer at version {expected_version}")

def fetch_waiting_games(game_type: str) -> List[Dict[str, Any]]:
    db = get_db()
    return db.table(GAME_TABLES[game_type]).select('*') \
        .eq('status', STATUS_WAITING).eq('is_private', False).order('created_at').execute().data

def fetch_active_game_for_user(game_type: str, user_id: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    result = db.table(GAME_TABLES[game_type]).select('*') \
        .or_(f"host_id.eq.{user_id},guest_id.eq.{user_id}") \
        .in_('status', list(LIVE_STATUSES)).limit(1).execute()
    return _one(result)

def fetch_waiting_game_by_code(game_type: str, code: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return _one(db.table(GAME_TABLES[game_type]).select('*')
                .eq('game_code', code).eq('status', STATUS_WAITING).limit(1).execute())

def game_code_exists(code: str) -> bool:
    db = get_db()
    return any(db.table(table).select('id').eq('game_code', code).limit(1).execute().data
               for table in GAME_TABLES.values())

# Token queries
def insert_token(token: Dict[str, Any]) -> Dict[str, Any]:
    db = get_db()
    return _one(db.table('tokens').insert(supported_fields('tokens', token)).execute()) or token

def delete_token(token_id: str) -> None:
    db = get_db()
    db.table('orders').delete().eq('token_id', token_id).execute()
    db.table('tokens').delete().eq('id', token_id).execute()

def fetch_token(token_id: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return _one(db.table('tokens').select('*').eq('id', token_id).execute())

def fetch_token_by_issuer(issuer_id: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return _one(db.table('tokens').select('*').eq('issuer_id', issuer_id).limit(1).execute())

def update_token(token_id: str, patch: Dict[str, Any]) -> None:
    db = get_db()
    db.table('tokens').update(supported_fields('tokens', patch)).eq('id', token_id).execute()

# Orders, trades and price history
def insert_orders(orders: List[Dict[str, Any]]) -> None:
    db = get_db()
    if orders:
        db.table('orders').insert([supported_fields('orders', o) for o in orders]).execute()

def insert_trade(trade: Dict[str, Any]) -> None:
    db = get_db()
    db.table('trades').insert(supported_fields('trades', trade)).execute()

def insert_price_snapshot(snapshot: Dict[str, Any]) -> None:
    db = get_db()
    db.table('price_history').insert(supported_fields('price_history', snapshot)).execute()

def fetch_trades(token_id: Optional[str] = None) -> List[Dict[str, Any]]:
    db = get_db()
    query = db.table('trades').select('*')
    if token_id:
        query = query.eq('token_id', token_id)
    return query.order('executed_at').execute().data

def fetch_price_history(token_id: Optional[str] = None) -> List[Dict[str, Any]]:
    db = get_db()
    query = db.table('price_history').select('*')
    if token_id:
        query = query.eq('token_id', token_id)
    return query.order('timestamp').execute().data
