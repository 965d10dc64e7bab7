import logging
from typing import Any, Dict, Optional

from memento.config import EngineParams
from memento.db import Store, MMC, USD, get_store
from memento.engine.order_book import seed_golden_ratio_ladder, ladder_summary
from memento.errors import AlreadyIssued, NotFound
from memento.utils import amount_value, price_value, to_decimal, validate_amount, validate_balance
from memento.services.params import resolve_params
from memento.services.results import ok, service_result

logger = logging.getLogger(__name__)

@service_result
def issue_token(issuer_id: str, ticker: str, name: str, total_supply: Any, base_price: Any, *,
                store: Optional[Store] = None, params: Optional[EngineParams] = None) -> Dict[str, Any]:
    """
    Create the issuer's personal token. The issuer receives the whole supply and the
    golden-ratio sell ladder is opened on their behalf. One token per issuer.
    """
    store = store or get_store()
    params = resolve_params(params, store)
    supply = validate_amount(total_supply, 'total supply')
    price = validate_amount(base_price, 'base price')
    if store.get_token_by_issuer(issuer_id):
        raise AlreadyIssued(f"User {issuer_id} has already issued a token")

    token = {
        'ticker': ticker.strip().upper(),
        'name': name.strip(),
        'issuer_id': issuer_id,
        'total_supply': supply,
        'current_price': price_value(price),
        'market_cap': amount_value(supply * price),
    }
    with store.transaction() as uow:
        created = uow.create_token(token)
        uow.adjust_holding(issuer_id, created['id'], supply)
        orders = seed_golden_ratio_ladder(created['id'], issuer_id, price, supply, params)
        uow.insert_orders(orders)

    try:
        store.insert_price_snapshot({
            'token_id': created['id'],
            'price': token['current_price'],
            'market_cap': token['market_cap'],
        })
    except Exception as e:
        logger.warning(f"Failed to record initial price of {token['ticker']}: {e}")

    summary = ladder_summary(orders)
    logger.info(f"Issued {token['ticker']} for {issuer_id}: supply={supply}, "
                f"ladder={len(orders)} tiers / {summary['total_amount']} tokens")
    return ok(token=created, orders=orders, ladder=summary)

@service_result
def convert_usd_to_mmc(user_id: str, usd_amount: Any, *,
                       store: Optional[Store] = None, params: Optional[EngineParams] = None) -> Dict[str, Any]:
    """Debit USD and credit MMC at params['usd_to_mmc_rate']."""
    store = store or get_store()
    params = resolve_params(params, store)
    usd = validate_amount(usd_amount, 'usd amount')
    validate_balance(store.get_balance(user_id, USD), usd, USD)
    mmc = amount_value(usd * to_decimal(params['usd_to_mmc_rate']))

    with store.transaction() as uow:
        uow.adjust_balance(user_id, USD, -usd)
        usd_balance = store.get_balance(user_id, USD)
        mmc_balance = uow.adjust_balance(user_id, MMC, mmc)
    logger.info(f"{user_id} converted {usd} USD to {mmc} MMC")
    return ok(usd_debited=usd, mmc_credited=mmc, usd_balance=usd_balance, mmc_balance=mmc_balance)

@service_result
def exchange_equity_for_mmc(user_id: str, *, store: Optional[Store] = None,
                            params: Optional[EngineParams] = None) -> Dict[str, Any]:
    """
    One-time bootstrap: the issuer hands params['equity_exchange_frac'] of their token
    supply to the platform account and receives params['equity_exchange_mmc'] MMC.
    """
    store = store or get_store()
    params = resolve_params(params, store)
    if store.has_exchanged_equity(user_id):
        raise AlreadyIssued(f"User {user_id} has already exchanged equity")
    token = store.get_token_by_issuer(user_id)
    if token is None:
        raise NotFound(f"User {user_id} has not issued a token")

    tokens = amount_value(to_decimal(token['total_supply']) * to_decimal(params['equity_exchange_frac']))
    mmc = amount_value(params['equity_exchange_mmc'])
    validate_balance(store.get_holding(user_id, token['id']), tokens, f"{token['ticker']} tokens")

    with store.transaction() as uow:
        uow.set_equity_exchanged(user_id)
        uow.adjust_holding(user_id, token['id'], -tokens)
        uow.adjust_holding(params['platform_user_id'], token['id'], tokens)
        mmc_balance = uow.adjust_balance(user_id, MMC, mmc)
    logger.info(f"{user_id} exchanged {tokens} {token['ticker']} for {mmc} MMC")
    return ok(tokens_transferred=tokens, mmc_credited=mmc, mmc_balance=mmc_balance)
