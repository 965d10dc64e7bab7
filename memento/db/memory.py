"""
In-process store used by the tests and local runs.

Every unit of work holds the store lock from start to finish, so concurrent
transactions are serialized and a losing conditional write still surfaces as
PreconditionFailed.
"""
import copy
import threading
import uuid
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

from memento.engine.state import Game, Pool, LIVE_STATUSES, STATUS_WAITING, init_pool, players
from memento.errors import NotFound, PreconditionFailed
from memento.utils import get_current_ms, to_decimal, validate_balance
from .stores import Store, CURRENCIES, MMC, USD


class InMemoryStore(Store):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.holdings: Dict[tuple, Decimal] = {}
        self.pools: Dict[str, Pool] = {}
        self.games: Dict[str, Dict[str, Game]] = {'rps': {}, 'ttt': {}}
        self.tokens: Dict[str, Dict[str, Any]] = {}
        self.orders: List[Dict[str, Any]] = []
        self.trades: List[Dict[str, Any]] = []
        self.price_history: List[Dict[str, Any]] = []
        self.config: Dict[str, Any] = {}

    # Fixtures

    def add_user(self, user_id: str, mmc: Any = 0, usd: Any = 0) -> None:
        with self._lock:
            self.profiles[user_id] = {
                'id': user_id,
                MMC: to_decimal(mmc),
                USD: to_decimal(usd),
                'has_exchanged_equity': False,
            }

    def put_pool(self, token_id: str, mmc_reserve: Any, token_reserve: Any) -> Pool:
        pool = init_pool(token_id, mmc_reserve, token_reserve)
        with self._lock:
            self.pools[token_id] = pool
        return dict(pool)

    def put_holding(self, user_id: str, token_id: str, amount: Any) -> None:
        with self._lock:
            self.holdings[(user_id, token_id)] = to_decimal(amount)

    # Reads

    def _profile(self, user_id: str) -> Dict[str, Any]:
        profile = self.profiles.get(user_id)
        if profile is None:
            raise NotFound(f"User {user_id} not found")
        return profile

    def get_balance(self, user_id: str, currency: str = MMC) -> Decimal:
        with self._lock:
            return self._profile(user_id)[currency]

    def get_holding(self, user_id: str, token_id: str) -> Decimal:
        with self._lock:
            return self.holdings.get((user_id, token_id), Decimal('0'))

    def get_pool(self, token_id: str) -> Optional[Pool]:
        with self._lock:
            pool = self.pools.get(token_id)
            return dict(pool) if pool else None

    def get_game(self, game_id: str, game_type: str) -> Optional[Game]:
        with self._lock:
            game = self.games[game_type].get(game_id)
            return copy.deepcopy(game) if game else None

    def list_waiting_games(self, game_type: str) -> List[Game]:
        with self._lock:
            waiting = [g for g in self.games[game_type].values()
                       if g['status'] == STATUS_WAITING and not g.get('is_private')]
            return [copy.deepcopy(g) for g in sorted(waiting, key=lambda g: g['created_at'])]

    def find_active_game_for_user(self, user_id: str, game_type: str) -> Optional[Game]:
        with self._lock:
            for game in self.games[game_type].values():
                if game['status'] in LIVE_STATUSES and user_id in players(game):
                    return copy.deepcopy(game)
            return None

    def find_waiting_game_by_code(self, code: str, game_type: str) -> Optional[Game]:
        with self._lock:
            for game in self.games[game_type].values():
                if game['status'] == STATUS_WAITING and game.get('game_code') == code:
                    return copy.deepcopy(game)
            return None

    def game_code_exists(self, code: str) -> bool:
        with self._lock:
            return any(g.get('game_code') == code for table in self.games.values() for g in table.values())

    def get_token(self, token_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            token = self.tokens.get(token_id)
            return dict(token) if token else None

    def get_token_by_issuer(self, issuer_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for token in self.tokens.values():
                if token['issuer_id'] == issuer_id:
                    return dict(token)
            return None

    def has_exchanged_equity(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._profile(user_id)['has_exchanged_equity'])

    def list_trades(self, token_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(t) for t in self.trades if token_id is None or t['token_id'] == token_id]

    def list_price_history(self, token_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(p) for p in self.price_history if token_id is None or p['token_id'] == token_id]

    def list_orders(self, token_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(o) for o in self.orders if token_id is None or o['token_id'] == token_id]

    def load_config(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self.config)

    def update_config(self, config: Dict[str, Any]) -> None:
        with self._lock:
            params = {**self.config.get('params', {}), **config.get('params', {})}
            self.config = {**self.config, **config, 'params': params}

    # Writes

    @contextmanager
    def _transaction_scope(self) -> Iterator[None]:
        with self._lock:
            yield

    def _adjust_balance(self, user_id: str, currency: str, delta: Decimal) -> Decimal:
        if currency not in CURRENCIES:
            raise ValueError(f"Unknown currency: {currency}")
        with self._lock:
            profile = self._profile(user_id)
            validate_balance(profile[currency], -delta, currency)
            profile[currency] = profile[currency] + delta
            return profile[currency]

    def _adjust_holding(self, user_id: str, token_id: str, delta: Decimal) -> Decimal:
        with self._lock:
            current = self.holdings.get((user_id, token_id), Decimal('0'))
            validate_balance(current, -delta, f"{token_id} tokens")
            self.holdings[(user_id, token_id)] = current + delta
            return current + delta

    def _save_pool(self, pool: Pool, expected: Pool) -> None:
        with self._lock:
            current = self.pools.get(pool['token_id'])
            if current is None:
                raise NotFound(f"Pool {pool['token_id']} not found")
            if (current['mmc_reserve'], current['token_reserve']) != \
                    (to_decimal(expected['mmc_reserve']), to_decimal(expected['token_reserve'])):
                raise PreconditionFailed(f"Pool {pool['token_id']} changed since it was read")
            self.pools[pool['token_id']] = init_pool(pool['token_id'], pool['mmc_reserve'], pool['token_reserve'])

    def _create_game(self, game: Game) -> None:
        with self._lock:
            table = self.games[game['game_type']]
            if game['id'] in table:
                raise PreconditionFailed(f"Game {game['id']} already exists")
            table[game['id']] = copy.deepcopy(game)

    def _delete_game(self, game_id: str, game_type: str) -> None:
        with self._lock:
            self.games[game_type].pop(game_id, None)

    def _update_game(self, game: Game, expected_version: int) -> None:
        with self._lock:
            current = self.games[game['game_type']].get(game['id'])
            if current is None:
                raise NotFound(f"Game {game['id']} not found")
            if current['version'] != expected_version:
                raise PreconditionFailed(
                    f"Game {game['id']} is at version {current['version']}, expected {expected_version}")
            self.games[game['game_type']][game['id']] = copy.deepcopy(game)

    def _set_equity_exchanged(self, user_id: str, value: bool) -> None:
        with self._lock:
            self._profile(user_id)['has_exchanged_equity'] = value

    def _create_token(self, token: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            created = {'created_at': get_current_ms(), **token, 'id': token.get('id') or str(uuid.uuid4())}
            self.tokens[created['id']] = created
            return dict(created)

    def _delete_token(self, token_id: str) -> None:
        with self._lock:
            self.tokens.pop(token_id, None)
            self.orders = [o for o in self.orders if o['token_id'] != token_id]

    def _update_token(self, token_id: str, patch: Dict[str, Any]) -> None:
        with self._lock:
            if token_id not in self.tokens:
                raise NotFound(f"Token {token_id} not found")
            self.tokens[token_id].update(patch)

    def _insert_orders(self, orders: List[Dict[str, Any]]) -> None:
        with self._lock:
            self.orders.extend(dict(o) for o in orders)

    def insert_trade(self, trade: Dict[str, Any]) -> None:
        with self._lock:
            self.trades.append({'executed_at': get_current_ms(), **trade})

    def insert_price_snapshot(self, snapshot: Dict[str, Any]) -> None:
        with self._lock:
            self.price_history.append({'timestamp': get_current_ms(), **snapshot})
