import pytest
from decimal import Decimal

from memento.config import get_default_engine_params
from memento.engine.order_book import golden_power, ladder_summary, seed_golden_ratio_ladder
from memento.engine.params import GOLDEN_RATIO
from memento.errors import InvalidAmount

@pytest.fixture
def params():
    return get_default_engine_params()

def test_golden_power():
    assert golden_power(0) == Decimal('1')
    assert float(golden_power(1)) == pytest.approx(1.6180339887498949)
    assert float(GOLDEN_RATIO) == pytest.approx(1.618033988749895)
    assert float(golden_power(2)) == pytest.approx(float(GOLDEN_RATIO) + 1)

def test_ladder_for_million_supply(params):
    orders = seed_golden_ratio_ladder('tok', 'issuer', 1, 1_000_000, params)
    assert [o['amount'] for o in orders] == [120000, 74164, 45835, 28328, 17507, 10820, 6687, 4133]
    assert [o['price'] for o in orders] == [
        Decimal('1.0000'), Decimal('1.6180'), Decimal('2.6180'), Decimal('4.2361'),
        Decimal('6.8541'), Decimal('11.0902'), Decimal('17.9443'), Decimal('29.0344'),
    ]
    assert [o['tier'] for o in orders] == list(range(8))
    for order in orders:
        assert order['type'] == 'sell'
        assert order['status'] == 'open'
        assert order['user_id'] == 'issuer'
        assert order['token_id'] == 'tok'

def test_ladder_prices_scale_with_base(params):
    orders = seed_golden_ratio_ladder('tok', 'issuer', '2.5', 1_000_000, params)
    assert orders[0]['price'] == Decimal('2.5000')
    assert orders[1]['price'] == Decimal('4.0451')

def test_ladder_never_exceeds_available_supply(params):
    params['ladder_depth'] = 0.5
    orders = seed_golden_ratio_ladder('tok', 'issuer', 1, 1000, params)
    assert [o['amount'] for o in orders] == [400, 247, 152, 1]
    assert ladder_summary(orders)['total_amount'] == Decimal('800')

def test_tiny_supply_skips_empty_tiers(params):
    orders = seed_golden_ratio_ladder('tok', 'issuer', 1, 10, params)
    # floor(8 * 0.15) == 1 at tier 0, every later tier floors to zero
    assert [o['amount'] for o in orders] == [1]

def test_ladder_summary_value(params):
    orders = seed_golden_ratio_ladder('tok', 'issuer', 1, 1_000_000, params)
    summary = ladder_summary(orders)
    assert summary['total_amount'] == Decimal(sum(o['amount'] for o in orders))
    assert summary['total_value'] > summary['total_amount']

@pytest.mark.parametrize('base_price,supply', [(0, 1000), (1, 0), (-1, 1000), (1, float('nan'))])
def test_ladder_rejects_bad_inputs(params, base_price, supply):
    with pytest.raises(InvalidAmount):
        seed_golden_ratio_ladder('tok', 'issuer', base_price, supply, params)
