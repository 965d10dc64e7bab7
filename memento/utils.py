import json
import time
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP, getcontext
from typing import Any, Dict

import numpy as np

from memento.errors import InvalidAmount, InsufficientFunds

getcontext().prec = 28

AMOUNT_DECIMALS = 6
PRICE_DECIMALS = 4

def get_current_ms() -> int:
    return int(time.time() * 1000)

def ms_to_iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).isoformat()

def iso_to_ms(value: Any) -> int:
    """Epoch ms from a timestamptz string; numbers are taken as ms already."""
    if isinstance(value, (int, float)):
        return int(value)
    return round(datetime.fromisoformat(str(value)).timestamp() * 1000)

def to_decimal(value: Any) -> Decimal:
    """Converts floats through str so 0.1 stays 0.1."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal('0')
    return Decimal(str(value))

def _quantize(value: Any, places: int, rounding: str) -> Decimal:
    try:
        return to_decimal(value).quantize(Decimal(f'1e-{places}'), rounding=rounding)
    except InvalidOperation:
        # more integer digits than the context precision leaves room for
        raise InvalidAmount(f"Value {value} is out of range.")

def amount_value(amount: float | str | Decimal) -> Decimal:
    """Quantizes an MMC or token amount, rounding toward zero."""
    return _quantize(amount, AMOUNT_DECIMALS, ROUND_DOWN)

def price_value(p: float | str | Decimal) -> Decimal:
    return _quantize(p, PRICE_DECIMALS, ROUND_HALF_UP)

def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or value is None:
        return False
    try:
        return to_decimal(value).is_finite()
    except (ArithmeticError, ValueError):
        return False

def validate_amount(amount: Any, name: str = 'amount') -> Decimal:
    """Returns the amount as Decimal, raising InvalidAmount unless finite and > 0."""
    if not is_finite_number(amount):
        raise InvalidAmount(f"Invalid {name}: {amount!r}. Must be a finite number.")
    value = to_decimal(amount)
    if value <= Decimal(0):
        raise InvalidAmount(f"Invalid {name}: {value}. Must be positive.")
    return value

def validate_balance(balance: Decimal, required: Decimal, what: str = 'MMC') -> None:
    if balance < required:
        raise InsufficientFunds(f"Insufficient {what}: have {balance}, need {required}.",
                                {'balance': str(balance), 'required': str(required)})

def serialize_state(state: Dict[str, Any]) -> str:
    def default_handler(obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (np.float64, np.float32)):
            return float(obj)
        if isinstance(obj, np.integer):
            return int(obj)
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
    return json.dumps(state, default=default_handler, sort_keys=True)

def deserialize_state(json_str: str) -> Dict[str, Any]:
    return json.loads(json_str)

def safe_divide(num: Decimal, den: Decimal) -> Decimal:
    if den == Decimal(0):
        raise ValueError("Division by zero.")
    return num / den

def to_float_fields(record: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a record with Decimal values converted to float for storage."""
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in record.items()}
