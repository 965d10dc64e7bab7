# memento/db/__init__.py

from typing import Optional

from .stores import Store, UnitOfWork, MMC, USD
from .memory import InMemoryStore

_store: Optional[Store] = None

def get_store() -> Store:
    """Process-wide store; Supabase-backed unless one was installed with set_store."""
    global _store
    if _store is None:
        from .supabase_store import SupabaseStore
        _store = SupabaseStore()
    return _store

def set_store(store: Optional[Store]) -> None:
    global _store
    _store = store
