import pytest
from decimal import Decimal

from memento.config import get_default_engine_params
from memento.db import InMemoryStore, MMC, USD
from memento.services.tokens import convert_usd_to_mmc, exchange_equity_for_mmc, issue_token


@pytest.fixture
def params():
    return get_default_engine_params()


@pytest.fixture
def store():
    store = InMemoryStore()
    store.add_user('alice', mmc=0, usd=50)
    store.add_user('bob', mmc=0, usd=0)
    store.add_user(get_default_engine_params()['platform_user_id'])
    return store


def test_issue_token_seeds_ladder(store, params):
    result = issue_token('alice', ' alc ', 'Alice Token', 1_000_000, 1, store=store, params=params)
    assert result['success']
    token = result['token']
    assert token['ticker'] == 'ALC'
    assert token['current_price'] == Decimal('1.0000')
    assert store.get_holding('alice', token['id']) == Decimal('1000000')

    orders = store.list_orders(token['id'])
    assert [o['amount'] for o in orders] == [120000, 74164, 45835, 28328, 17507, 10820, 6687, 4133]
    assert all(o['user_id'] == 'alice' and o['type'] == 'sell' for o in orders)
    assert result['ladder']['total_amount'] == Decimal(sum(o['amount'] for o in orders))
    assert len(store.list_price_history(token['id'])) == 1


def test_one_token_per_issuer(store, params):
    issue_token('alice', 'ALC', 'Alice Token', 1000, 1, store=store, params=params)
    again = issue_token('alice', 'AL2', 'Second', 1000, 1, store=store, params=params)
    assert again['code'] == 'ALREADY_ISSUED'
    assert len(store.tokens) == 1


def test_issue_rejects_bad_supply(store, params):
    assert issue_token('bob', 'BOB', 'Bob', 0, 1, store=store, params=params)['code'] == 'INVALID_AMOUNT'
    assert store.get_token_by_issuer('bob') is None


def test_issue_rejects_out_of_range_market_cap(store, params):
    result = issue_token('alice', 'BIG', 'Big', 10**18, 10**7, store=store, params=params)
    assert result['success'] is False
    assert result['code'] == 'INVALID_AMOUNT'
    assert store.get_token_by_issuer('alice') is None
    assert len(store.tokens) == 0


def test_convert_usd_to_mmc(store, params):
    result = convert_usd_to_mmc('alice', 10, store=store, params=params)
    assert result['success']
    assert result['mmc_credited'] == Decimal('1000')
    assert store.get_balance('alice', USD) == Decimal('40')
    assert store.get_balance('alice', MMC) == Decimal('1000')
    assert result['usd_balance'] == Decimal('40')


def test_convert_needs_usd(store, params):
    result = convert_usd_to_mmc('bob', 1, store=store, params=params)
    assert result['code'] == 'INSUFFICIENT_FUNDS'
    assert store.get_balance('bob', MMC) == Decimal('0')


def test_equity_exchange_once(store, params):
    token_id = issue_token('alice', 'ALC', 'Alice', 1_000_000, 1, store=store, params=params)['token']['id']
    result = exchange_equity_for_mmc('alice', store=store, params=params)
    assert result['success']
    assert result['tokens_transferred'] == Decimal('10000')
    assert store.get_balance('alice', MMC) == Decimal('1000000')
    assert store.get_holding('alice', token_id) == Decimal('990000')
    assert store.get_holding(params['platform_user_id'], token_id) == Decimal('10000')
    assert store.has_exchanged_equity('alice')

    again = exchange_equity_for_mmc('alice', store=store, params=params)
    assert again['code'] == 'ALREADY_ISSUED'
    assert store.get_balance('alice', MMC) == Decimal('1000000')


def test_equity_exchange_needs_token(store, params):
    assert exchange_equity_for_mmc('bob', store=store, params=params)['code'] == 'NOT_FOUND'
    assert not store.has_exchanged_equity('bob')
