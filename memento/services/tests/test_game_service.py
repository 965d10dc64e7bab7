import pytest
from decimal import Decimal

from memento.db import InMemoryStore, MMC, set_store
from memento.errors import NotFound, PreconditionFailed
from memento.services import games as game_service
from memento.services.realtime import InMemoryChannel, set_channel


class FirstChoice:
    def choice(self, seq):
        return seq[0]


@pytest.fixture
def store():
    store = InMemoryStore()
    store.add_user('alice', mmc=100)
    store.add_user('bob', mmc=100)
    store.add_user('carol', mmc=5)
    return store


@pytest.fixture
def channel():
    return InMemoryChannel()


@pytest.fixture
def services(store, channel):
    """Service calls bound to the in-memory store and channel."""
    class Bound:
        def __getattr__(self, name):
            func = getattr(game_service, name)
            if name.startswith('get_'):
                return lambda *args, **kwargs: func(*args, store=store, **kwargs)
            return lambda *args, **kwargs: func(*args, store=store, channel=channel, **kwargs)
    return Bound()


def balances(store):
    return {u: store.get_balance(u, MMC) for u in ('alice', 'bob')}


def test_rps_full_flow(store, channel, services):
    created = services.create_game('rps', 'alice')
    assert created['success']
    game_id = created['game_id']
    assert services.join_game('rps', game_id, 'bob')['success']
    assert services.propose_bet('rps', game_id, 'alice', 30)['success']
    assert services.accept_bet('rps', game_id, 'bob')['success']
    assert balances(store) == {'alice': Decimal('70'), 'bob': Decimal('70')}

    services.submit_move('rps', game_id, 'alice', 'paper')
    result = services.submit_move('rps', game_id, 'bob', 'rock')
    assert result['status'] == 'finished'
    assert result['winner_id'] == 'alice'
    assert balances(store) == {'alice': Decimal('130'), 'bob': Decimal('70')}

    names = {m['channel'] for m in channel.published}
    assert names == {f'game:{game_id}'}
    finished = channel.events('GAME_FINISHED')[0]['payload']
    assert finished['game']['status'] == 'finished'
    assert finished['winner_id'] == 'alice'


def test_ttt_flow_publishes_on_ttt_channel(store, channel, services):
    created = services.create_game('ttt', 'alice', 10)
    game_id = created['game_id']
    assert store.get_balance('alice', MMC) == Decimal('90')
    joined = services.join_game('ttt', game_id, 'bob', rng=FirstChoice())
    assert joined['game']['turn_player_id'] == 'alice'
    assert store.get_balance('bob', MMC) == Decimal('90')

    for user, cell in [('alice', 0), ('bob', 3), ('alice', 1), ('bob', 4), ('alice', 2)]:
        result = services.submit_move('ttt', game_id, user, cell)
    assert result['winner_id'] == 'alice'
    assert balances(store) == {'alice': Decimal('110'), 'bob': Decimal('90')}
    assert all(m['channel'] == f'ttt_game:{game_id}' for m in channel.published)


def test_rejections_come_back_as_results(services):
    game_id = services.create_game('rps', 'alice')['game_id']
    services.join_game('rps', game_id, 'bob')

    early = services.submit_move('rps', game_id, 'alice', 'rock')
    assert early['success'] is False
    assert early['code'] == 'INVALID_MOVE'

    services.propose_bet('rps', game_id, 'alice', 10)
    own = services.accept_bet('rps', game_id, 'alice')
    assert own['code'] == 'BET_PROPOSAL_REJECTED'

    missing = services.join_game('rps', 'no-such-game', 'carol')
    assert missing['code'] == 'NOT_FOUND'


def test_bet_requires_funds(services):
    assert services.create_game('rps', 'carol', 50)['code'] == 'INSUFFICIENT_FUNDS'
    game_id = services.create_game('rps', 'alice', 50)['game_id']
    assert services.join_game('rps', game_id, 'carol')['code'] == 'INSUFFICIENT_FUNDS'


def test_one_live_game_per_type(services):
    assert services.create_game('rps', 'alice')['success']
    second = services.create_game('rps', 'alice')
    assert second['code'] == 'ACTIVE_GAME_EXISTS'
    assert services.create_game('ttt', 'alice')['success']


def test_private_game_join_by_code(store, services):
    created = services.create_private_game('rps', 'alice', 20)
    code = created['game_code']
    assert len(code) == 6 and code.isalnum() and code == code.upper()
    assert services.get_available_games('rps') == []

    joined = services.join_game_by_code('rps', f'  {code.lower()} ', 'bob')
    assert joined['success']
    assert joined['game_id'] == created['game_id']
    assert joined['game']['status'] == 'active'
    assert services.join_game_by_code('rps', 'ZZZZZZ', 'carol')['code'] == 'NOT_FOUND'


def test_lobby_lists_public_waiting_games(services):
    services.create_game('rps', 'alice')
    lobby = services.get_available_games('rps')
    assert [g['host_id'] for g in lobby] == ['alice']
    assert services.get_user_active_game('alice', 'rps')['id'] == lobby[0]['id']
    assert services.get_user_active_game('bob', 'rps') is None


def test_forfeit_refunds_stakes(store, services):
    game_id = services.create_game('rps', 'alice', 40)['game_id']
    services.join_game('rps', game_id, 'bob')
    assert balances(store) == {'alice': Decimal('60'), 'bob': Decimal('60')}

    result = services.forfeit_game('rps', game_id, 'bob')
    assert result['game']['status'] == 'cancelled'
    assert balances(store) == {'alice': Decimal('100'), 'bob': Decimal('100')}
    assert services.forfeit_game('rps', game_id, 'bob')['code'] == 'INVALID_MOVE'


def test_restart_escrows_again(store, services):
    game_id = services.create_game('rps', 'alice', 25)['game_id']
    services.join_game('rps', game_id, 'bob')
    services.submit_move('rps', game_id, 'alice', 'rock')
    services.submit_move('rps', game_id, 'bob', 'paper')
    assert balances(store) == {'alice': Decimal('75'), 'bob': Decimal('125')}

    restarted = services.restart_game('rps', game_id, 'alice')
    assert restarted['game']['round_number'] == 2
    assert balances(store) == {'alice': Decimal('50'), 'bob': Decimal('100')}


def test_stale_version_is_retryable(store, services, monkeypatch):
    game_id = services.create_game('rps', 'alice')['game_id']
    services.join_game('rps', game_id, 'bob')
    real_get = store.get_game
    stale = real_get(game_id, 'rps')
    services.propose_bet('rps', game_id, 'alice', 10)

    monkeypatch.setattr(store, 'get_game', lambda gid, gtype: stale)
    result = services.propose_bet('rps', game_id, 'bob', 15)
    monkeypatch.undo()
    assert result['code'] == 'PRECONDITION_FAILED'
    assert result['retryable'] is True
    assert store.get_game(game_id, 'rps')['next_bet_amount'] == Decimal('10')


def test_generate_join_code_gives_up_on_collisions(store, monkeypatch):
    monkeypatch.setattr(store, 'game_code_exists', lambda code: True)
    with pytest.raises(PreconditionFailed):
        game_service.generate_join_code(store, length=6, attempts=3)


def test_bet_proposal_as_each_player_sees_it(services):
    game_id = services.create_game('ttt', 'alice')['game_id']
    services.join_game('ttt', game_id, 'bob')
    services.propose_bet('ttt', game_id, 'bob', 12)
    assert services.get_bet_proposal('ttt', game_id, 'alice') == {
        'pending_amount': Decimal('12'), 'proposed_by_me': False, 'can_accept': True,
    }
    assert services.get_bet_proposal('ttt', game_id, 'bob')['can_accept'] is False
    with pytest.raises(NotFound):
        services.get_bet_proposal('ttt', 'missing', 'alice')


@pytest.fixture
def installed(store, channel):
    """Make the in-memory store and channel the process-wide defaults."""
    set_store(store)
    set_channel(channel)
    yield store, channel
    set_store(None)
    set_channel(None)


def test_services_fall_back_to_installed_defaults(installed):
    store, channel = installed
    created = game_service.create_game('rps', 'alice', 10)
    assert created['success']
    assert game_service.get_game('rps', created['game_id'])['host_id'] == 'alice'
    assert store.get_balance('alice', MMC) == Decimal('90')
    assert [m['channel'] for m in channel.published] == [f"game:{created['game_id']}"]
