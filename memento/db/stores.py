"""
Store contract consumed by the services.

Reads are plain methods. Writes go through a UnitOfWork obtained from
``store.transaction()``: each step is applied immediately and registers a
compensating step, and if anything inside the ``with`` block raises, the
applied steps are undone in reverse order before the error propagates.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from memento.engine.state import Game, Pool, Transfers

logger = logging.getLogger(__name__)

MMC = 'MMC'
USD = 'USD'
CURRENCIES = (MMC, USD)


class Store(ABC):
    # Reads

    @abstractmethod
    def get_balance(self, user_id: str, currency: str = MMC) -> Decimal: ...

    @abstractmethod
    def get_holding(self, user_id: str, token_id: str) -> Decimal: ...

    @abstractmethod
    def get_pool(self, token_id: str) -> Optional[Pool]: ...

    @abstractmethod
    def get_game(self, game_id: str, game_type: str) -> Optional[Game]: ...

    @abstractmethod
    def list_waiting_games(self, game_type: str) -> List[Game]:
        """Public games still waiting for a guest, oldest first."""

    @abstractmethod
    def find_active_game_for_user(self, user_id: str, game_type: str) -> Optional[Game]:
        """The user's waiting or active game of this type, if any."""

    @abstractmethod
    def find_waiting_game_by_code(self, code: str, game_type: str) -> Optional[Game]: ...

    @abstractmethod
    def game_code_exists(self, code: str) -> bool: ...

    @abstractmethod
    def get_token(self, token_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def get_token_by_issuer(self, issuer_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def has_exchanged_equity(self, user_id: str) -> bool: ...

    @abstractmethod
    def list_trades(self, token_id: Optional[str] = None) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_price_history(self, token_id: Optional[str] = None) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def load_config(self) -> Dict[str, Any]: ...

    @abstractmethod
    def update_config(self, config: Dict[str, Any]) -> None: ...

    # Primitive writes, used through UnitOfWork

    @abstractmethod
    def _adjust_balance(self, user_id: str, currency: str, delta: Decimal) -> Decimal:
        """Apply delta and return the new balance. InsufficientFunds if it would go negative."""

    @abstractmethod
    def _adjust_holding(self, user_id: str, token_id: str, delta: Decimal) -> Decimal: ...

    @abstractmethod
    def _save_pool(self, pool: Pool, expected: Pool) -> None:
        """Replace the pool's reserves if they still equal expected, else PreconditionFailed."""

    @abstractmethod
    def _create_game(self, game: Game) -> None: ...

    @abstractmethod
    def _delete_game(self, game_id: str, game_type: str) -> None: ...

    @abstractmethod
    def _update_game(self, game: Game, expected_version: int) -> None:
        """Write the full record if the stored version is expected_version, else PreconditionFailed."""

    @abstractmethod
    def _set_equity_exchanged(self, user_id: str, value: bool) -> None: ...

    @abstractmethod
    def _create_token(self, token: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def _delete_token(self, token_id: str) -> None: ...

    @abstractmethod
    def _update_token(self, token_id: str, patch: Dict[str, Any]) -> None: ...

    @abstractmethod
    def _insert_orders(self, orders: List[Dict[str, Any]]) -> None: ...

    # Append-only logs, written after the unit of work commits

    @abstractmethod
    def insert_trade(self, trade: Dict[str, Any]) -> None: ...

    @abstractmethod
    def insert_price_snapshot(self, snapshot: Dict[str, Any]) -> None: ...

    @contextmanager
    def _transaction_scope(self) -> Iterator[None]:
        yield

    @contextmanager
    def transaction(self) -> Iterator['UnitOfWork']:
        uow = UnitOfWork(self)
        with self._transaction_scope():
            try:
                yield uow
            except BaseException:
                uow.rollback()
                raise


class UnitOfWork:
    def __init__(self, store: Store):
        self.store = store
        self._undo: List[Tuple[str, Callable[[], Any]]] = []

    def _step(self, name: str, undo: Callable[[], Any]) -> None:
        self._undo.append((name, undo))

    def adjust_balance(self, user_id: str, currency: str, delta: Decimal) -> Decimal:
        new_balance = self.store._adjust_balance(user_id, currency, delta)
        self._step(f"balance {user_id} {currency} {delta}",
                   lambda: self.store._adjust_balance(user_id, currency, -delta))
        return new_balance

    def apply_transfers(self, transfers: Transfers, currency: str = MMC) -> None:
        # debits first so a failing debit leaves no credits to undo
        for user_id, delta in sorted(transfers.items(), key=lambda item: item[1]):
            if delta != 0:
                self.adjust_balance(user_id, currency, delta)

    def adjust_holding(self, user_id: str, token_id: str, delta: Decimal) -> Decimal:
        new_amount = self.store._adjust_holding(user_id, token_id, delta)
        self._step(f"holding {user_id} {token_id} {delta}",
                   lambda: self.store._adjust_holding(user_id, token_id, -delta))
        return new_amount

    def save_pool(self, pool: Pool, expected: Pool) -> None:
        self.store._save_pool(pool, expected)
        self._step(f"pool {pool['token_id']}", lambda: self.store._save_pool(expected, pool))

    def create_game(self, game: Game) -> None:
        self.store._create_game(game)
        self._step(f"create game {game['id']}", lambda: self.store._delete_game(game['id'], game['game_type']))

    def update_game(self, game: Game, expected: Game) -> None:
        """Conditional on the stored record still being at expected's version."""
        self.store._update_game(game, expected['version'])
        self._step(f"update game {game['id']}", lambda: self.store._update_game(expected, game['version']))

    def set_equity_exchanged(self, user_id: str) -> None:
        self.store._set_equity_exchanged(user_id, True)
        self._step(f"equity flag {user_id}", lambda: self.store._set_equity_exchanged(user_id, False))

    def create_token(self, token: Dict[str, Any]) -> Dict[str, Any]:
        created = self.store._create_token(token)
        self._step(f"create token {created['id']}", lambda: self.store._delete_token(created['id']))
        return created

    def update_token(self, token_id: str, patch: Dict[str, Any], previous: Dict[str, Any]) -> None:
        self.store._update_token(token_id, patch)
        restore = {k: previous.get(k) for k in patch}
        self._step(f"update token {token_id}", lambda: self.store._update_token(token_id, restore))

    def insert_orders(self, orders: List[Dict[str, Any]]) -> None:
        # rows are removed together with their token
        self.store._insert_orders(orders)

    def rollback(self) -> None:
        while self._undo:
            name, undo = self._undo.pop()
            try:
                undo()
            except Exception:
                logger.exception(f"Compensation step failed: {name}")
