import pytest
from decimal import Decimal

from memento.engine.state import (
    EMPTY_BOARD,
    GAME_RPS,
    GAME_TTT,
    STATUS_ACTIVE,
    deserialize_game,
    deserialize_pool,
    init_pool,
    is_participant,
    new_game_record,
    normalize_status,
    opponent_of,
    players,
    serialize_game,
    serialize_pool,
)
from memento.utils import deserialize_state, serialize_state


@pytest.fixture
def rps_row():
    return {
        'id': 'g1',
        'host_id': 'alice',
        'guest_id': 'bob',
        'status': 'playing',
        'bet_amount': 25.5,
        'host_move': 'rock',
        'guest_move': None,
    }


def test_init_pool_rejects_negative_reserves():
    with pytest.raises(ValueError):
        init_pool('tok', '-1', '10')
    pool = init_pool('tok', 0.1, '10')
    assert pool['mmc_reserve'] == Decimal('0.1')


def test_pool_row_roundtrip():
    row = serialize_pool(init_pool('tok', '1100', '909.090910'))
    assert row == {'token_id': 'tok', 'mmc_reserve': 1100.0, 'token_reserve': 909.09091}
    assert deserialize_pool(row)['token_reserve'] == Decimal('909.09091')


def test_deserialize_legacy_rps_row(rps_row):
    game = deserialize_game(rps_row, GAME_RPS)
    assert game['game_type'] == GAME_RPS
    assert game['status'] == STATUS_ACTIVE
    assert game['bet_amount'] == Decimal('25.5')
    assert game['next_bet_amount'] is None
    assert game['round_number'] == 1
    assert game['version'] == 0
    assert game['winner_id'] is None
    assert game['is_private'] is False
    assert game['forfeited_by'] is None


def test_deserialize_timestamptz_created_at(rps_row):
    rps_row['created_at'] = '2023-11-14T22:13:20.250000+00:00'
    assert deserialize_game(rps_row, GAME_RPS)['created_at'] == 1700000000250
    rps_row['created_at'] = 1700000000000
    assert deserialize_game(rps_row, GAME_RPS)['created_at'] == 1700000000000


def test_deserialize_ttt_defaults():
    game = deserialize_game({'id': 't1', 'host_id': 'alice', 'board': None}, GAME_TTT)
    assert game['board'] == EMPTY_BOARD
    assert game['turn_player_id'] is None
    assert game['guest_id'] is None
    assert game['status'] == 'waiting'


def test_serialize_game_drops_tag_and_decimals(rps_row):
    row = serialize_game(deserialize_game(rps_row, GAME_RPS))
    assert 'game_type' not in row
    assert row['bet_amount'] == 25.5
    assert isinstance(row['bet_amount'], float)
    # rows survive the JSON used for realtime payloads
    assert deserialize_state(serialize_state(row))['host_move'] == 'rock'


def test_new_game_record():
    game = new_game_record(GAME_TTT, 't1', 'alice', Decimal('3'), 'CODE42', now_ms=10)
    assert game['status'] == 'waiting'
    assert game['is_private'] is True
    assert game['created_at'] == 10
    with pytest.raises(ValueError):
        new_game_record('poker', 'p1', 'alice')


def test_players_and_opponents(rps_row):
    game = deserialize_game(rps_row, GAME_RPS)
    assert players(game) == ['alice', 'bob']
    assert opponent_of(game, 'alice') == 'bob'
    assert opponent_of(game, 'bob') == 'alice'
    assert opponent_of(game, 'carol') is None
    assert is_participant(game, 'bob')
    assert not is_participant(game, None)


def test_normalize_status():
    assert normalize_status('playing') == 'active'
    assert normalize_status('finished') == 'finished'
