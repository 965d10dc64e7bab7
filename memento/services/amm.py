import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from memento.db import Store, MMC, get_store
from memento.engine.amm_math import apply_buy, apply_sell, get_price, quote_buy, quote_sell, price_impact
from memento.engine.state import Pool, serialize_pool
from memento.errors import NotFound
from memento.utils import amount_value, price_value, safe_divide, to_decimal, validate_amount, validate_balance
from memento.services.realtime import Channel, publish_trade
from memento.services.results import ok, service_result

logger = logging.getLogger(__name__)

def _load_pool(store: Store, token_id: str) -> Pool:
    pool = store.get_pool(token_id)
    if pool is None:
        raise NotFound(f"No AMM pool for token {token_id}")
    return pool

def _token_price_patch(token: Dict[str, Any], pool: Pool) -> Dict[str, Any]:
    price = get_price(pool)
    return {
        'current_price': price_value(price),
        'market_cap': amount_value(to_decimal(token['total_supply']) * price),
    }

def _record_trade(store: Store, trade: Dict[str, Any], pool: Pool, channel: Optional[Channel]) -> None:
    """Trade log, price snapshot and broadcast after the trade is committed."""
    try:
        store.insert_trade(trade)
        token = store.get_token(trade['token_id'])
        if token:
            patch = _token_price_patch(token, pool)
            store.insert_price_snapshot({
                'token_id': trade['token_id'],
                'price': patch['current_price'],
                'market_cap': patch['market_cap'],
            })
    except Exception as e:
        logger.warning(f"Failed to record trade on {trade['token_id']}: {e}")
    publish_trade(trade, channel)

def _commit_trade(store: Store, user_id: str, pool: Pool, new_pool: Pool,
                  mmc_delta: Decimal, token_delta: Decimal) -> None:
    token_id = pool['token_id']
    token = store.get_token(token_id)
    with store.transaction() as uow:
        # debit first, then credit, then the conditional pool write
        if mmc_delta < 0:
            uow.adjust_balance(user_id, MMC, mmc_delta)
            uow.adjust_holding(user_id, token_id, token_delta)
        else:
            uow.adjust_holding(user_id, token_id, token_delta)
            uow.adjust_balance(user_id, MMC, mmc_delta)
        uow.save_pool(new_pool, pool)
        if token:
            uow.update_token(token_id, _token_price_patch(token, new_pool), token)

@service_result
def buy_from_amm(user_id: str, token_id: str, mmc_amount: Any, *,
                 store: Optional[Store] = None, channel: Optional[Channel] = None) -> Dict[str, Any]:
    """Spend mmc_amount MMC on tokens from the pool."""
    store = store or get_store()
    amount = validate_amount(mmc_amount, 'mmc amount')
    pool = _load_pool(store, token_id)
    validate_balance(store.get_balance(user_id, MMC), amount, MMC)

    new_pool, tokens_out = apply_buy(pool, amount)
    _commit_trade(store, user_id, pool, new_pool, -amount, tokens_out)
    logger.info(f"AMM buy: {user_id} spent {amount} MMC for {tokens_out} {token_id}")

    trade = {
        'token_id': token_id,
        'buyer_id': user_id,
        'seller_id': None,
        'amount': tokens_out,
        'price_per_token': price_value(safe_divide(amount, tokens_out)),
        'total_value': amount,
        'type': 'BUY',
    }
    _record_trade(store, trade, new_pool, channel)
    return ok(tokens_out=tokens_out, price=get_price(new_pool), pool=serialize_pool(new_pool), trade=trade)

@service_result
def sell_to_amm(user_id: str, token_id: str, token_amount: Any, *,
                store: Optional[Store] = None, channel: Optional[Channel] = None) -> Dict[str, Any]:
    """Sell token_amount tokens into the pool for MMC."""
    store = store or get_store()
    amount = validate_amount(token_amount, 'token amount')
    pool = _load_pool(store, token_id)
    validate_balance(store.get_holding(user_id, token_id), amount, f"{token_id} tokens")

    new_pool, mmc_out = apply_sell(pool, amount)
    _commit_trade(store, user_id, pool, new_pool, mmc_out, -amount)
    logger.info(f"AMM sell: {user_id} sold {amount} {token_id} for {mmc_out} MMC")

    trade = {
        'token_id': token_id,
        'buyer_id': None,
        'seller_id': user_id,
        'amount': amount,
        'price_per_token': price_value(safe_divide(mmc_out, amount)),
        'total_value': mmc_out,
        'type': 'SELL',
    }
    _record_trade(store, trade, new_pool, channel)
    return ok(mmc_out=mmc_out, price=get_price(new_pool), pool=serialize_pool(new_pool), trade=trade)

def get_quote(token_id: str, amount: Any, side: str = 'buy', *, store: Optional[Store] = None) -> Dict[str, Any]:
    """
    Preview of a trade for display. Never raises on bad input: an unknown pool or a
    non-positive amount quotes zero.
    """
    store = store or get_store()
    pool = store.get_pool(token_id)
    if pool is None:
        return {'amount_out': Decimal('0'), 'price': Decimal('0'), 'price_impact': Decimal('0')}
    if side == 'buy':
        amount_out = quote_buy(pool, amount)
        impact = price_impact(pool, amount)
    else:
        amount_out = quote_sell(pool, amount)
        impact = Decimal('0')
    return {'amount_out': amount_out, 'price': get_price(pool), 'price_impact': impact}
