"""
Game notifications.

Every committed game transition is broadcast on the game's channel
('game:{id}' for Rock-Paper-Scissors, 'ttt_game:{id}' for Tic-Tac-Toe) together
with the new record, and subscribers also receive row updates of the game table.
Delivery is best-effort: failures are logged and never undo a committed write.
"""
import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from memento.config import get_async_supabase_client
from memento.db.queries import GAME_TABLES
from memento.engine.state import Game, serialize_game
from memento.utils import serialize_state, get_current_ms

logger = logging.getLogger(__name__)

Message = Dict[str, Any]
Callback = Callable[[Message], None]


def channel_name(game_type: str, game_id: str) -> str:
    prefix = 'game' if game_type == 'rps' else f'{game_type}_game'
    return f"{prefix}:{game_id}"


def make_game_payload(game: Game, event: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-compatible payload: the event fields plus the full record."""
    record = {**serialize_game(game), 'game_type': game['game_type']}
    payload = {**event, 'game': record, 'ts_ms': get_current_ms()}
    return json.loads(serialize_state(payload))


def extract_record(message: Message) -> Optional[Dict[str, Any]]:
    """Game row carried by a broadcast ('payload.game') or a table change ('data.record')."""
    payload = message.get('payload') or {}
    if isinstance(payload, dict) and payload.get('game'):
        return payload['game']
    data = message.get('data') or payload.get('data') or {}
    return data.get('record')


class Channel(ABC):
    @abstractmethod
    def subscribe(self, game_id: str, game_type: str, on_update: Callback) -> Any: ...

    @abstractmethod
    def unsubscribe(self, subscription: Any) -> None: ...

    @abstractmethod
    def publish(self, name: str, event_type: str, payload: Dict[str, Any]) -> None: ...


class InMemoryChannel(Channel):
    """Synchronous fan-out inside the process; keeps every published message."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Callback]] = {}
        self.published: List[Message] = []

    def subscribe(self, game_id: str, game_type: str, on_update: Callback) -> Any:
        name = channel_name(game_type, game_id)
        with self._lock:
            self._subscribers.setdefault(name, []).append(on_update)
        return (name, on_update)

    def unsubscribe(self, subscription: Any) -> None:
        name, callback = subscription
        with self._lock:
            callbacks = self._subscribers.get(name, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def publish(self, name: str, event_type: str, payload: Dict[str, Any]) -> None:
        message = {'channel': name, 'event': event_type, 'payload': payload}
        with self._lock:
            self.published.append(message)
            callbacks = list(self._subscribers.get(name, []))
        for callback in callbacks:
            try:
                callback(message)
            except Exception as e:
                logger.warning(f"Subscriber of {name} failed on {event_type}: {e}")

    def events(self, event_type: Optional[str] = None) -> List[Message]:
        return [m for m in self.published if event_type is None or m['event'] == event_type]


class SupabaseChannel(Channel):
    """
    Supabase Realtime. The async client runs on a private event loop thread so
    callers stay synchronous.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._client = None
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True, name='supabase-realtime')
        self._thread.start()

    def _run(self, coro: Any) -> Any:
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(self.timeout)

    async def _get_client(self) -> Any:
        if self._client is None:
            self._client = await get_async_supabase_client()
        return self._client

    async def _subscribe(self, game_id: str, game_type: str, on_update: Callback) -> Any:
        client = await self._get_client()
        channel = client.channel(channel_name(game_type, game_id))
        channel.on_postgres_changes(
            'UPDATE', schema='public', table=GAME_TABLES[game_type],
            filter=f'id=eq.{game_id}', callback=on_update,
        )
        channel.on_broadcast('*', on_update)
        await channel.subscribe()
        return channel

    async def _remove(self, channel: Any) -> None:
        client = await self._get_client()
        await client.remove_channel(channel)

    async def _send(self, name: str, event_type: str, payload: Dict[str, Any]) -> None:
        client = await self._get_client()
        channel = client.channel(name)
        await channel.subscribe()
        try:
            await channel.send_broadcast(event_type, payload)
        finally:
            await client.remove_channel(channel)

    def subscribe(self, game_id: str, game_type: str, on_update: Callback) -> Any:
        return self._run(self._subscribe(game_id, game_type, on_update))

    def unsubscribe(self, subscription: Any) -> None:
        try:
            self._run(self._remove(subscription))
        except Exception as e:
            logger.warning(f"Error removing realtime channel: {e}")

    def publish(self, name: str, event_type: str, payload: Dict[str, Any]) -> None:
        try:
            self._run(self._send(name, event_type, payload))
        except Exception as e:
            logger.warning(f"Error publishing to {name}: {e}")


_channel: Optional[Channel] = None


def get_channel() -> Channel:
    global _channel
    if _channel is None:
        _channel = SupabaseChannel()
    return _channel


def set_channel(channel: Optional[Channel]) -> None:
    global _channel
    _channel = channel


def publish_event(game: Game, event: Dict[str, Any], channel: Optional[Channel] = None) -> None:
    """Broadcast one engine event for game. Never raises."""
    channel = channel or get_channel()
    try:
        channel.publish(channel_name(game['game_type'], game['id']), event['type'], make_game_payload(game, event))
    except Exception as e:
        logger.warning(f"Error publishing {event.get('type')} for game {game['id']}: {e}")


def publish_trade(trade: Dict[str, Any], channel: Optional[Channel] = None) -> None:
    """Broadcast an executed AMM trade on 'amm:{token_id}'. Never raises."""
    channel = channel or get_channel()
    try:
        channel.publish(f"amm:{trade['token_id']}", 'AMM_TRADE', json.loads(serialize_state(trade)))
    except Exception as e:
        logger.warning(f"Error publishing AMM_TRADE for token {trade.get('token_id')}: {e}")
