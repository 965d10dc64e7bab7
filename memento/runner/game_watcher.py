import threading
import logging
from typing import Any, Callable, Dict, Optional

from memento.config import get_default_engine_params
from memento.db import Store, get_store
from memento.engine.state import Game, deserialize_game, serialize_game
from memento.services.realtime import Channel, extract_record, get_channel
from memento.utils import serialize_state, get_current_ms

logger = logging.getLogger(__name__)

class GameWatcher:
    """
    Keeps a client's view of one game current. Updates arrive from two sources,
    a polling thread and a realtime subscription, and both go through reconcile(),
    so on_update fires once per distinct state and never with an older version.
    """

    def __init__(self, game_id: str, game_type: str, on_update: Callable[[Game], None],
                 interval_ms: Optional[int] = None, *, store: Optional[Store] = None,
                 channel: Optional[Channel] = None):
        self.game_id = game_id
        self.game_type = game_type
        self.on_update = on_update
        self.interval_ms = interval_ms or get_default_engine_params()['poll_interval_ms']
        self.store = store or get_store()
        self.channel = channel
        # held across on_update so deliveries never overtake each other
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._subscription: Any = None
        self._last_fingerprint: Optional[str] = None
        self._last_version: Optional[int] = None
        self.stats: Dict[str, Any] = {
            'polls': 0,
            'pushes': 0,
            'delivered': 0,
            'skipped': 0,
            'error_count': 0,
            'last_error': None,
            'last_update_ms': None,
        }

    def reconcile(self, record: Optional[Dict[str, Any]]) -> bool:
        """Deliver record unless it is empty, already delivered, or older than the last one."""
        if not record:
            return False
        game = deserialize_game(record, self.game_type)
        if game.get('id') != self.game_id:
            return False
        fingerprint = serialize_state(serialize_game(game))
        version = game.get('version', 0)
        with self._lock:
            if fingerprint == self._last_fingerprint or \
                    (self._last_version is not None and version < self._last_version):
                self.stats['skipped'] += 1
                return False
            self._last_fingerprint = fingerprint
            self._last_version = version
            self.stats['delivered'] += 1
            self.stats['last_update_ms'] = get_current_ms()
            self.on_update(game)
        return True

    def poll_once(self) -> bool:
        self.stats['polls'] += 1
        return self.reconcile(self.store.get_game(self.game_id, self.game_type))

    def _on_push(self, message: Dict[str, Any]) -> None:
        self.stats['pushes'] += 1
        self.reconcile(extract_record(message))

    def _poll_loop(self) -> None:
        consecutive_errors = 0
        while not self._stop.is_set():
            try:
                self.poll_once()
                consecutive_errors = 0
                wait_s = self.interval_ms / 1000.0
            except Exception as e:
                consecutive_errors += 1
                self.stats['error_count'] += 1
                self.stats['last_error'] = str(e)
                logger.error(f"Watcher for game {self.game_id} poll error #{consecutive_errors}: {e}")
                wait_s = min(30, self.interval_ms / 1000.0 * 2 ** consecutive_errors)
            self._stop.wait(wait_s)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        channel = self.channel or get_channel()
        try:
            self._subscription = channel.subscribe(self.game_id, self.game_type, self._on_push)
        except Exception as e:
            # polling still covers updates
            logger.warning(f"Realtime subscription for game {self.game_id} failed: {e}")
            self._subscription = None
        self.channel = channel
        self._thread = threading.Thread(target=self._poll_loop, daemon=True, name=f"GameWatcher-{self.game_id}")
        self._thread.start()
        logger.info(f"Watching {self.game_type} game {self.game_id} every {self.interval_ms}ms")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._subscription is not None and self.channel is not None:
            self.channel.unsubscribe(self._subscription)
            self._subscription = None
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())
