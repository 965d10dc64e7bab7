import functools
import logging
from typing import Any, Callable, Dict
from typing_extensions import TypedDict

from memento.errors import EngineError, PreconditionFailed

logger = logging.getLogger(__name__)

class Result(TypedDict, total=False):
    success: bool
    error: str
    code: str
    retryable: bool
    details: Dict[str, Any]

def ok(**payload: Any) -> Dict[str, Any]:
    return {'success': True, **payload}

def failure(exc: EngineError) -> Result:
    return {
        'success': False,
        'error': exc.message,
        'code': exc.code,
        'retryable': isinstance(exc, PreconditionFailed),
        'details': exc.details,
    }

def service_result(func: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
    """
    Turns EngineError raised by func into a failed Result. Anything else, including
    InvariantViolation, propagates.
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        try:
            return func(*args, **kwargs)
        except PreconditionFailed as e:
            logger.warning(f"{func.__name__} lost a concurrent update: {e}")
            return failure(e)
        except EngineError as e:
            logger.info(f"{func.__name__} rejected: {e}")
            return failure(e)
    return wrapper
