"""
Store backed by the Supabase tables through memento.db.queries.

Supabase has no multi-statement transactions over the REST API, so every
primitive write is a conditional update on the value read just before it and
the UnitOfWork compensates the steps already applied when a later one fails.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from memento.engine.state import Game, Pool, deserialize_game, deserialize_pool, serialize_game, serialize_pool
from memento.errors import NotFound
from memento.utils import ms_to_iso, to_decimal, to_float_fields, validate_balance
from . import queries
from .stores import Store, MMC

logger = logging.getLogger(__name__)


def game_row(game: Game) -> Dict[str, Any]:
    """Row for rps_games/ttt_games; created_at goes out as timestamptz text."""
    row = serialize_game(game)
    if isinstance(row.get('created_at'), int):
        row['created_at'] = ms_to_iso(row['created_at'])
    return row


class SupabaseStore(Store):
    # Reads

    def get_balance(self, user_id: str, currency: str = MMC) -> Decimal:
        profile = queries.fetch_profile(user_id)
        return to_decimal(profile.get(queries.BALANCE_COLUMNS[currency]))

    def get_holding(self, user_id: str, token_id: str) -> Decimal:
        row = queries.fetch_holding(user_id, token_id)
        return to_decimal(row['amount']) if row else Decimal('0')

    def get_pool(self, token_id: str) -> Optional[Pool]:
        row = queries.fetch_pool(token_id)
        return deserialize_pool(row) if row else None

    def get_game(self, game_id: str, game_type: str) -> Optional[Game]:
        row = queries.fetch_game(game_type, game_id)
        return deserialize_game(row, game_type) if row else None

    def list_waiting_games(self, game_type: str) -> List[Game]:
        return [deserialize_game(row, game_type) for row in queries.fetch_waiting_games(game_type)]

    def find_active_game_for_user(self, user_id: str, game_type: str) -> Optional[Game]:
        row = queries.fetch_active_game_for_user(game_type, user_id)
        return deserialize_game(row, game_type) if row else None

    def find_waiting_game_by_code(self, code: str, game_type: str) -> Optional[Game]:
        row = queries.fetch_waiting_game_by_code(game_type, code)
        return deserialize_game(row, game_type) if row else None

    def game_code_exists(self, code: str) -> bool:
        return queries.game_code_exists(code)

    def get_token(self, token_id: str) -> Optional[Dict[str, Any]]:
        return queries.fetch_token(token_id)

    def get_token_by_issuer(self, issuer_id: str) -> Optional[Dict[str, Any]]:
        return queries.fetch_token_by_issuer(issuer_id)

    def has_exchanged_equity(self, user_id: str) -> bool:
        return bool(queries.fetch_profile(user_id).get('has_exchanged_equity'))

    def list_trades(self, token_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return queries.fetch_trades(token_id)

    def list_price_history(self, token_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return queries.fetch_price_history(token_id)

    def load_config(self) -> Dict[str, Any]:
        return queries.load_config()

    def update_config(self, config: Dict[str, Any]) -> None:
        queries.update_config(config)

    # Writes

    def _adjust_balance(self, user_id: str, currency: str, delta: Decimal) -> Decimal:
        current = self.get_balance(user_id, currency)
        validate_balance(current, -delta, currency)
        new_balance = current + delta
        queries.update_balance(user_id, currency, float(new_balance), float(current))
        return new_balance

    def _adjust_holding(self, user_id: str, token_id: str, delta: Decimal) -> Decimal:
        row = queries.fetch_holding(user_id, token_id)
        current = to_decimal(row['amount']) if row else Decimal('0')
        validate_balance(current, -delta, f"{token_id} tokens")
        new_amount = current + delta
        queries.upsert_holding(user_id, token_id, float(new_amount), float(current) if row else None)
        return new_amount

    def _save_pool(self, pool: Pool, expected: Pool) -> None:
        row = serialize_pool(pool)
        queries.update_pool(pool['token_id'],
                            {'mmc_reserve': row['mmc_reserve'], 'token_reserve': row['token_reserve']},
                            serialize_pool(expected))

    def _create_game(self, game: Game) -> None:
        queries.insert_game(game['game_type'], game_row(game))

    def _delete_game(self, game_id: str, game_type: str) -> None:
        queries.delete_game(game_type, game_id)

    def _update_game(self, game: Game, expected_version: int) -> None:
        row = game_row(game)
        row.pop('id', None)
        queries.update_game(game['game_type'], game['id'], row, expected_version)

    def _set_equity_exchanged(self, user_id: str, value: bool) -> None:
        queries.update_equity_flag(user_id, value)

    def _create_token(self, token: Dict[str, Any]) -> Dict[str, Any]:
        row = to_float_fields({k: v for k, v in token.items() if v is not None})
        created = queries.insert_token(row)
        if not created.get('id'):
            raise NotFound(f"Token {token.get('ticker')} was not returned by the insert")
        return created

    def _delete_token(self, token_id: str) -> None:
        queries.delete_token(token_id)

    def _update_token(self, token_id: str, patch: Dict[str, Any]) -> None:
        queries.update_token(token_id, to_float_fields(patch))

    def _insert_orders(self, orders: List[Dict[str, Any]]) -> None:
        queries.insert_orders([to_float_fields(o) for o in orders])

    def insert_trade(self, trade: Dict[str, Any]) -> None:
        queries.insert_trade(to_float_fields(trade))

    def insert_price_snapshot(self, snapshot: Dict[str, Any]) -> None:
        queries.insert_price_snapshot(to_float_fields(snapshot))
