from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional
from typing_extensions import TypedDict

import mpmath as mp

from memento.utils import price_value, to_decimal, validate_amount
from .params import GOLDEN_RATIO

class LadderOrder(TypedDict):
    token_id: str
    user_id: str
    type: str  # always 'sell'
    amount: int
    price: Decimal
    status: str  # 'open'
    tier: int

def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))

def golden_power(i: int) -> Decimal:
    """phi**i evaluated in mpmath so high tiers keep full precision."""
    return Decimal(mp.nstr(mp.power(mp.mpf(str(GOLDEN_RATIO)), i), 28))

def seed_golden_ratio_ladder(
    token_id: str,
    issuer_id: str,
    base_price: Any,
    total_supply: Any,
    params: Optional[Dict[str, Any]] = None,
) -> List[LadderOrder]:
    """
    Builds the issuer's initial sell ladder.

    The issuer keeps issuer_reserve_frac of the supply; the rest is offered over
    ladder_tiers tiers where tier i is priced at base_price * phi**i and sized
    floor(available * phi**-i * ladder_depth), capped by what is still unallocated.
    Tiers stop as soon as the available supply is exhausted, and empty tiers are skipped.
    """
    params = params or {}
    reserve_frac = to_decimal(params.get('issuer_reserve_frac', '0.2'))
    tiers = int(params.get('ladder_tiers', 8))
    depth = to_decimal(params.get('ladder_depth', '0.15'))

    base = validate_amount(base_price, 'base price')
    supply = validate_amount(total_supply, 'total supply')

    available = _floor(supply * (Decimal('1') - reserve_frac))
    remaining = available

    orders: List[LadderOrder] = []
    i = 0
    while i < tiers and remaining > 0:
        phi_i = golden_power(i)
        tier_amount = _floor(Decimal(available) / phi_i * depth)
        amount = min(tier_amount, remaining)
        if amount > 0:
            orders.append({
                'token_id': token_id,
                'user_id': issuer_id,
                'type': 'sell',
                'amount': amount,
                'price': price_value(base * phi_i),
                'status': 'open',
                'tier': i,
            })
            remaining -= amount
        i += 1
    return orders

def ladder_summary(orders: List[LadderOrder]) -> Dict[str, Decimal]:
    """Total offered amount and notional value of a ladder."""
    total_amount = sum((Decimal(o['amount']) for o in orders), Decimal('0'))
    total_value = sum((Decimal(o['amount']) * to_decimal(o['price']) for o in orders), Decimal('0'))
    return {'total_amount': total_amount, 'total_value': total_value}
