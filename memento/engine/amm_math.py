from decimal import Decimal
from typing import Any, Tuple

from memento.errors import InvalidAmount, InvariantViolation, PoolInactive
from memento.utils import amount_value, is_finite_number, safe_divide, to_decimal, validate_amount
from .state import Pool


def is_pool_active(pool: Pool) -> bool:
    """A pool trades only once both reserves are seeded."""
    return to_decimal(pool['mmc_reserve']) > 0 and to_decimal(pool['token_reserve']) > 0


def constant_product(pool: Pool) -> Decimal:
    """k = mmc_reserve * token_reserve."""
    return to_decimal(pool['mmc_reserve']) * to_decimal(pool['token_reserve'])


def get_price(pool: Pool) -> Decimal:
    """Spot price in MMC per token; zero for an unseeded pool."""
    token_reserve = to_decimal(pool['token_reserve'])
    if token_reserve <= 0:
        return Decimal('0')
    return to_decimal(pool['mmc_reserve']) / token_reserve


def _swap_out(reserve_in: Decimal, reserve_out: Decimal, amount_in: Decimal) -> Decimal:
    # Moves along x*y=k: new_out = k / (reserve_in + amount_in)
    k = reserve_in * reserve_out
    new_reserve_out = safe_divide(k, reserve_in + amount_in)
    return amount_value(reserve_out - new_reserve_out)


def _is_quotable(pool: Pool, amount: Any) -> bool:
    return is_finite_number(amount) and to_decimal(amount) > 0 and is_pool_active(pool)


def quote_buy(pool: Pool, mmc_in: Any) -> Decimal:
    """
    Tokens received for spending mmc_in MMC, without touching the pool.
    Non-positive input or an inactive pool quotes zero.
    """
    if not _is_quotable(pool, mmc_in):
        return Decimal('0')
    return _swap_out(to_decimal(pool['mmc_reserve']), to_decimal(pool['token_reserve']), to_decimal(mmc_in))


def quote_sell(pool: Pool, tokens_in: Any) -> Decimal:
    """MMC received for selling tokens_in tokens. Symmetric to quote_buy."""
    if not _is_quotable(pool, tokens_in):
        return Decimal('0')
    return _swap_out(to_decimal(pool['token_reserve']), to_decimal(pool['mmc_reserve']), to_decimal(tokens_in))


def _check_reserves(pool: Pool, new_pool: Pool, amount_out: Decimal, out_key: str) -> None:
    if amount_out >= to_decimal(pool[out_key]):
        raise InvariantViolation(f"Output {amount_out} would drain {out_key} of pool {pool['token_id']}")
    if new_pool['mmc_reserve'] <= 0 or new_pool['token_reserve'] <= 0:
        raise InvariantViolation(f"Non-positive reserve after trade on pool {pool['token_id']}: {new_pool}")


def apply_buy(pool: Pool, mmc_in: Any) -> Tuple[Pool, Decimal]:
    """
    Spend mmc_in MMC against the pool.
    Returns (new_pool, tokens_out). The input pool is not mutated.
    Raises InvalidAmount for non-positive input and PoolInactive for an unseeded pool.
    """
    amount = validate_amount(mmc_in, 'mmc amount')
    if not is_pool_active(pool):
        raise PoolInactive(f"Pool {pool['token_id']} has no liquidity")

    tokens_out = quote_buy(pool, amount)
    if tokens_out <= 0:
        raise InvalidAmount(f"MMC amount {amount} is too small to buy any tokens")
    new_pool: Pool = {
        'token_id': pool['token_id'],
        'mmc_reserve': to_decimal(pool['mmc_reserve']) + amount,
        'token_reserve': to_decimal(pool['token_reserve']) - tokens_out,
    }
    _check_reserves(pool, new_pool, tokens_out, 'token_reserve')
    return new_pool, tokens_out


def apply_sell(pool: Pool, tokens_in: Any) -> Tuple[Pool, Decimal]:
    """
    Sell tokens_in tokens into the pool.
    Returns (new_pool, mmc_out).
    """
    amount = validate_amount(tokens_in, 'token amount')
    if not is_pool_active(pool):
        raise PoolInactive(f"Pool {pool['token_id']} has no liquidity")

    mmc_out = quote_sell(pool, amount)
    if mmc_out <= 0:
        raise InvalidAmount(f"Token amount {amount} is too small to receive any MMC")
    new_pool: Pool = {
        'token_id': pool['token_id'],
        'mmc_reserve': to_decimal(pool['mmc_reserve']) - mmc_out,
        'token_reserve': to_decimal(pool['token_reserve']) + amount,
    }
    _check_reserves(pool, new_pool, mmc_out, 'mmc_reserve')
    return new_pool, mmc_out


def price_impact(pool: Pool, mmc_in: Any) -> Decimal:
    """Relative move of the spot price caused by a buy of mmc_in (0 when not quotable)."""
    if quote_buy(pool, mmc_in) <= 0:
        return Decimal('0')
    new_pool, _ = apply_buy(pool, mmc_in)
    return safe_divide(get_price(new_pool) - get_price(pool), get_price(pool))
