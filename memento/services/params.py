from typing import Optional

from memento.config import EngineParams, get_default_engine_params
from memento.db import Store, get_store
from memento.engine.params import validate_params

def load_engine_params(store: Optional[Store] = None) -> EngineParams:
    """Defaults overlaid with the 'params' of the stored config row."""
    store = store or get_store()
    stored = store.load_config().get('params') or {}
    params = get_default_engine_params()
    params.update({k: v for k, v in stored.items() if k in params})
    validate_params(params)
    return params

def resolve_params(params: Optional[EngineParams], store: Store) -> EngineParams:
    return params if params is not None else load_engine_params(store)
