import pytest
from decimal import Decimal

from memento.engine import ttt
from memento.engine.state import EMPTY_BOARD, STATUS_ACTIVE, STATUS_CANCELLED, STATUS_FINISHED
from memento.errors import BetProposalRejected, InvalidMove

HOST = 'host'
GUEST = 'guest'

class FirstChoice:
    """Deals X to the host."""
    def choice(self, seq):
        return seq[0]

class LastChoice:
    """Deals O to the host."""
    def choice(self, seq):
        return seq[-1]

@pytest.fixture
def params():
    return {'forfeit_policy': 'cancel', 'restart_keeps_bet': True}

@pytest.fixture
def active_game():
    game, _, _ = ttt.create_game('t1', HOST, now_ms=1)
    game, _, _ = ttt.join_game(game, GUEST, rng=FirstChoice())
    return game

@pytest.fixture
def betting_game(active_game):
    game, _, _ = ttt.propose_bet(active_game, GUEST, 10)
    game, _, _ = ttt.accept_bet(game, HOST)
    return game

def play(game, cells):
    """Alternate moves starting with whoever holds the turn."""
    transfers, events = {}, []
    for cell in cells:
        game, transfers, events = ttt.submit_move(game, game['turn_player_id'], cell)
    return game, transfers, events

@pytest.mark.parametrize('line', [
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
])
def test_check_winner_lines(line):
    board = ['_'] * 9
    for cell in line:
        board[cell] = 'O'
    assert ttt.check_winner(''.join(board)) == 'O'

def test_check_winner_none():
    assert ttt.check_winner(EMPTY_BOARD) is None
    assert ttt.check_winner('XOXXOOOXX') is None
    assert ttt.is_board_full('XOXXOOOXX')
    assert not ttt.is_board_full('XOX_OOOXX')
    with pytest.raises(ValueError):
        ttt.check_winner('XO')

def test_outcome():
    assert ttt.outcome(EMPTY_BOARD) == (None, False)
    assert ttt.outcome('XXX_OO___') == ('X', True)
    assert ttt.outcome('XOXXOOOXX') == (None, True)

def test_join_deals_symbols(active_game):
    assert active_game['status'] == STATUS_ACTIVE
    assert active_game['host_symbol'] == 'X'
    assert active_game['guest_symbol'] == 'O'
    assert active_game['turn_player_id'] == HOST
    assert active_game['board'] == EMPTY_BOARD

def test_o_host_waits_for_guest():
    game, _, _ = ttt.create_game('t2', HOST)
    game, _, _ = ttt.join_game(game, GUEST, rng=LastChoice())
    assert game['host_symbol'] == 'O'
    assert game['guest_symbol'] == 'X'
    assert game['turn_player_id'] == GUEST

def test_move_requires_bet(active_game):
    with pytest.raises(InvalidMove):
        ttt.submit_move(active_game, HOST, 0)

def test_turn_order(betting_game):
    with pytest.raises(InvalidMove):
        ttt.submit_move(betting_game, GUEST, 0)
    game, transfers, events = ttt.submit_move(betting_game, HOST, 4)
    assert game['board'] == '____X____'
    assert game['turn_player_id'] == GUEST
    assert game['version'] == betting_game['version'] + 1
    assert transfers == {}
    assert events[0]['cell'] == 4 and events[0]['symbol'] == 'X'
    with pytest.raises(InvalidMove):
        ttt.submit_move(game, HOST, 0)

def test_occupied_cell_rejected(betting_game):
    game, _, _ = ttt.submit_move(betting_game, HOST, 4)
    with pytest.raises(InvalidMove):
        ttt.submit_move(game, GUEST, 4)

@pytest.mark.parametrize('cell', [-1, 9, 4.5, 'a', None, True])
def test_invalid_cell_rejected(betting_game, cell):
    with pytest.raises(InvalidMove):
        ttt.submit_move(betting_game, HOST, cell)

def test_numeric_string_cell_accepted(betting_game):
    game, _, _ = ttt.submit_move(betting_game, HOST, '8')
    assert game['board'] == '________X'

def test_host_wins(betting_game):
    game, transfers, events = play(betting_game, [0, 3, 1, 4, 2])
    assert game['board'] == 'XXXOO____'
    assert game['status'] == STATUS_FINISHED
    assert game['winner_id'] == HOST
    assert game['turn_player_id'] is None
    assert transfers == {HOST: Decimal('20')}
    assert [e['type'] for e in events] == ['MOVE_SUBMITTED', 'GAME_FINISHED']

def test_finishing_move_advances_version_once(betting_game):
    game, _, _ = play(betting_game, [0, 3, 1, 4])
    finished, _, _ = ttt.submit_move(game, HOST, 2)
    assert finished['version'] == game['version'] + 1

def test_full_board_is_draw(betting_game):
    game, transfers, _ = play(betting_game, [0, 1, 2, 4, 3, 5, 7, 6, 8])
    assert game['board'] == 'XOXXOOOXX'
    assert game['status'] == STATUS_FINISHED
    assert game['winner_id'] is None
    assert transfers == {HOST: Decimal('10'), GUEST: Decimal('10')}

def test_negotiation_closes_after_first_move(active_game):
    proposed, _, _ = ttt.propose_bet(active_game, HOST, 5)
    assert ttt.negotiation_window_open(proposed)
    accepted, _, _ = ttt.accept_bet(proposed, GUEST)
    moved, _, _ = ttt.submit_move(accepted, HOST, 0)
    assert not ttt.negotiation_window_open(moved)
    with pytest.raises(BetProposalRejected):
        ttt.propose_bet(moved, HOST, 5)

def test_restart_redeals_symbols(betting_game, params):
    finished, _, _ = play(betting_game, [0, 3, 1, 4, 2])
    restarted, transfers, _ = ttt.restart_game(finished, GUEST, params, rng=LastChoice())
    assert restarted['status'] == STATUS_ACTIVE
    assert restarted['board'] == EMPTY_BOARD
    assert restarted['host_symbol'] == 'O'
    assert restarted['turn_player_id'] == GUEST
    assert restarted['round_number'] == 2
    assert restarted['bet_amount'] == Decimal('10')
    assert transfers == {HOST: Decimal('-10'), GUEST: Decimal('-10')}

def test_forfeit_clears_turn(betting_game, params):
    game, transfers, _ = ttt.forfeit_game(betting_game, GUEST, params)
    assert game['status'] == STATUS_CANCELLED
    assert game['turn_player_id'] is None
    assert game['forfeited_by'] == GUEST
    assert transfers == {HOST: Decimal('10'), GUEST: Decimal('10')}
