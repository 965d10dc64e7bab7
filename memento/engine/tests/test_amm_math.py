import pytest
from decimal import Decimal, getcontext

getcontext().prec = 28

from memento.engine import amm_math
from memento.engine.amm_math import (
    apply_buy,
    apply_sell,
    constant_product,
    get_price,
    is_pool_active,
    price_impact,
    quote_buy,
    quote_sell,
)
from memento.engine.state import Pool, init_pool
from memento.errors import InvalidAmount, InvariantViolation, PoolInactive
from memento.utils import amount_value, price_value

@pytest.fixture
def pool() -> Pool:
    return init_pool('tok', '1000', '1000')

@pytest.fixture
def empty_pool() -> Pool:
    return init_pool('tok', '0', '1000')

def test_price_and_k(pool):
    assert get_price(pool) == Decimal('1')
    assert constant_product(pool) == Decimal('1000000')
    assert is_pool_active(pool)

def test_inactive_pool_price_is_zero():
    assert get_price(init_pool('tok', '1000', '0')) == Decimal('0')
    assert not is_pool_active(init_pool('tok', '1000', '0'))

def test_buy_reference_example(pool):
    new_pool, tokens_out = apply_buy(pool, Decimal('100'))
    assert tokens_out == Decimal('90.909090')
    assert new_pool['mmc_reserve'] == Decimal('1100')
    assert new_pool['token_reserve'] == Decimal('909.090910')
    assert get_price(new_pool) > get_price(pool)

def test_sell_is_symmetric(pool):
    new_pool, mmc_out = apply_sell(pool, Decimal('100'))
    assert mmc_out == Decimal('90.909090')
    assert new_pool['token_reserve'] == Decimal('1100')
    assert get_price(new_pool) < get_price(pool)

def test_apply_does_not_mutate_input(pool):
    apply_buy(pool, 100)
    assert pool['mmc_reserve'] == Decimal('1000')
    assert pool['token_reserve'] == Decimal('1000')

@pytest.mark.parametrize('amount', ['1', '100', '12345.678', '1000000'])
def test_k_conserved_within_rounding(pool, amount):
    k = constant_product(pool)
    new_pool, _ = apply_buy(pool, amount)
    new_k = constant_product(new_pool)
    # outputs are rounded down, so k can only grow by the rounding dust
    assert new_k >= k
    assert float(new_k) == pytest.approx(float(k), rel=1e-6)

def test_quote_matches_apply(pool):
    assert quote_buy(pool, 250) == apply_buy(pool, 250)[1]
    assert quote_sell(pool, 250) == apply_sell(pool, 250)[1]

@pytest.mark.parametrize('amount', [0, -5, None, float('nan'), float('inf'), 'abc', True])
def test_quote_bad_input_is_zero(pool, amount):
    assert quote_buy(pool, amount) == Decimal('0')
    assert quote_sell(pool, amount) == Decimal('0')

def test_quote_inactive_pool_is_zero(empty_pool):
    assert quote_buy(empty_pool, 100) == Decimal('0')
    assert quote_sell(empty_pool, 100) == Decimal('0')

@pytest.mark.parametrize('amount', [0, -1, float('nan'), float('inf'), None])
def test_apply_rejects_invalid_amount(pool, amount):
    with pytest.raises(InvalidAmount):
        apply_buy(pool, amount)
    with pytest.raises(InvalidAmount):
        apply_sell(pool, amount)

def test_apply_rejects_inactive_pool(empty_pool):
    with pytest.raises(PoolInactive):
        apply_buy(empty_pool, 10)
    with pytest.raises(PoolInactive):
        apply_sell(empty_pool, 10)

def test_dust_buy_rejected(pool):
    with pytest.raises(InvalidAmount):
        apply_buy(pool, Decimal('0.0000001'))

def test_output_monotonic_and_concave(pool):
    outs = [quote_buy(pool, a) for a in (100, 200, 300, 400)]
    assert outs == sorted(outs)
    # equal input steps buy fewer tokens each time
    steps = [b - a for a, b in zip(outs, outs[1:])]
    assert steps == sorted(steps, reverse=True)
    assert outs[1] < 2 * outs[0]

def test_never_drains_reserve(pool):
    _, tokens_out = apply_buy(pool, Decimal('1e12'))
    assert tokens_out < pool['token_reserve']

def test_round_trip_favors_pool(pool):
    after_buy, tokens_out = apply_buy(pool, 100)
    _, mmc_back = apply_sell(after_buy, tokens_out)
    assert mmc_back <= Decimal('100')
    assert mmc_back == Decimal('99.999999')

def test_price_impact(pool):
    assert price_impact(pool, 100) > 0
    assert price_impact(pool, 0) == Decimal('0')
    assert price_impact(pool, 10) < price_impact(pool, 100)

def test_drained_output_is_invariant_violation(pool, monkeypatch):
    monkeypatch.setattr(amm_math, 'quote_buy', lambda p, amount: Decimal(p['token_reserve']))
    with pytest.raises(InvariantViolation):
        apply_buy(pool, 100)

def test_split_buy_never_beats_single_buy(pool):
    after_first, first = apply_buy(pool, 200)
    _, second = apply_buy(after_first, 200)
    _, single = apply_buy(pool, 400)
    # with no fee the two paths differ only by rounding dust
    assert first + second <= single
    assert single - (first + second) < Decimal('0.00001')

def test_out_of_range_amount_is_invalid():
    with pytest.raises(InvalidAmount):
        amount_value(Decimal(10) ** 25)
    with pytest.raises(InvalidAmount):
        price_value(Decimal(10) ** 25)
    assert amount_value('12.3456789') == Decimal('12.345678')
