"""
Tic-Tac-Toe rules.

The board is a 9-character string over 'X', 'O' and '_' in row-major order. Symbols are
dealt at random when the guest joins and again on restart; X always moves first.
"""
import logging
import random
from typing import Any, Dict, Optional, Tuple

import numpy as np

from memento.errors import InvalidMove
from . import lifecycle, negotiation
from .lifecycle import Transition, bump, event
from .state import Game, GAME_TTT, EMPTY_BOARD, EMPTY_CELL, opponent_of

logger = logging.getLogger(__name__)

X = 'X'
O = 'O'
SYMBOLS = (X, O)

# rows, columns, diagonals as flat cell indices
WIN_LINES = np.array([
    [0, 1, 2], [3, 4, 5], [6, 7, 8],
    [0, 3, 6], [1, 4, 7], [2, 5, 8],
    [0, 4, 8], [2, 4, 6],
])


def check_winner(board: str) -> Optional[str]:
    """The symbol owning a complete line, or None."""
    if len(board) != 9:
        raise ValueError(f"Board must have 9 cells, got {len(board)}")
    cells = np.array(list(board))
    lines = cells[WIN_LINES]
    complete = (lines == lines[:, :1]).all(axis=1) & (lines[:, 0] != EMPTY_CELL)
    if not complete.any():
        return None
    return str(lines[np.argmax(complete), 0])


def is_board_full(board: str) -> bool:
    return EMPTY_CELL not in board


def place(board: str, cell: int, symbol: str) -> str:
    return board[:cell] + symbol + board[cell + 1:]


def assign_symbols(game: Game, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Deal X and O between the two players; the X holder takes the first turn."""
    rng = rng or random.Random()
    host_symbol = rng.choice(SYMBOLS)
    guest_symbol = O if host_symbol == X else X
    guest_id = game.get('guest_id')
    return {
        'host_symbol': host_symbol,
        'guest_symbol': guest_symbol,
        'turn_player_id': game['host_id'] if host_symbol == X else guest_id,
    }


def symbol_of(game: Game, user_id: str) -> str:
    return game['host_symbol'] if user_id == game['host_id'] else game['guest_symbol']


def negotiation_window_open(game: Game) -> bool:
    return game.get('board', EMPTY_BOARD) == EMPTY_BOARD


def _parse_cell(move: Any) -> int:
    if isinstance(move, bool):
        raise InvalidMove(f"Cell must be an integer 0-8, got {move!r}")
    try:
        cell = int(move)
    except (TypeError, ValueError):
        raise InvalidMove(f"Cell must be an integer 0-8, got {move!r}")
    if cell != move and str(cell) != str(move):
        raise InvalidMove(f"Cell must be an integer 0-8, got {move!r}")
    if not 0 <= cell <= 8:
        raise InvalidMove(f"Cell {cell} is off the board")
    return cell


def create_game(game_id: str, host_id: str, bet_amount: Any = None, game_code: Optional[str] = None,
                now_ms: Optional[int] = None, rng: Optional[random.Random] = None) -> Transition:
    return lifecycle.create(GAME_TTT, game_id, host_id, bet_amount, game_code, now_ms, extra={
        'board': EMPTY_BOARD,
        'host_symbol': None,
        'guest_symbol': None,
        'turn_player_id': None,
    })


def join_game(game: Game, guest_id: str, rng: Optional[random.Random] = None) -> Transition:
    seated = {**game, 'guest_id': guest_id}
    return lifecycle.join(game, guest_id, board=EMPTY_BOARD, **assign_symbols(seated, rng))


def propose_bet(game: Game, user_id: str, amount: Any) -> Transition:
    return negotiation.propose_bet(game, user_id, amount, negotiation_window_open)


def accept_bet(game: Game, user_id: str) -> Transition:
    return negotiation.accept_bet(game, user_id, negotiation_window_open)


def submit_move(game: Game, user_id: str, move: Any, params: Optional[Dict[str, Any]] = None) -> Transition:
    """Place the user's symbol on cell `move` (0-8), then check for a line or a full board."""
    lifecycle.require_playable(game, user_id)
    if game.get('turn_player_id') != user_id:
        raise InvalidMove(f"It is not {user_id}'s turn")
    cell = _parse_cell(move)
    board = game['board']
    if board[cell] != EMPTY_CELL:
        raise InvalidMove(f"Cell {cell} is already taken")

    symbol = symbol_of(game, user_id)
    new_board = place(board, cell, symbol)
    new_game = bump(game, board=new_board, turn_player_id=opponent_of(game, user_id))
    events = [event('MOVE_SUBMITTED', new_game, user_id=user_id, cell=cell, symbol=symbol)]

    winner, done = outcome(new_board)
    if not done:
        return new_game, {}, events

    winner_id = None
    if winner is not None:
        winner_id = game['host_id'] if winner == game['host_symbol'] else game['guest_id']
    resolved, transfers, finish_events = lifecycle.finish(new_game, winner_id, turn_player_id=None)
    resolved['version'] = new_game['version']
    return resolved, transfers, events + finish_events


def outcome(board: str) -> Tuple[Optional[str], bool]:
    """(winning symbol, round over)."""
    winner = check_winner(board)
    if winner is not None:
        return winner, True
    return None, is_board_full(board)


def restart_game(game: Game, user_id: str, params: Optional[Dict[str, Any]] = None,
                 rng: Optional[random.Random] = None) -> Transition:
    return lifecycle.restart(game, user_id, params or {}, board=EMPTY_BOARD, **assign_symbols(game, rng))


def forfeit_game(game: Game, user_id: str, params: Optional[Dict[str, Any]] = None) -> Transition:
    new_game, transfers, events = lifecycle.forfeit(game, user_id, params or {})
    new_game['turn_player_id'] = None
    return new_game, transfers, events
