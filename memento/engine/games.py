"""
Dispatch of game operations on the record's 'game_type' tag.
"""
from types import ModuleType
from typing import Any, Dict, Optional
import random

from . import rps, ttt
from .lifecycle import Transition
from .state import Game, GAME_RPS, GAME_TTT

GAME_RULES: Dict[str, ModuleType] = {
    GAME_RPS: rps,
    GAME_TTT: ttt,
}


def rules_for(game_type: str) -> ModuleType:
    try:
        return GAME_RULES[game_type]
    except KeyError:
        raise ValueError(f"Unknown game type: {game_type}")


def create_game(game_type: str, game_id: str, host_id: str, bet_amount: Any = None,
                game_code: Optional[str] = None, now_ms: Optional[int] = None,
                rng: Optional[random.Random] = None) -> Transition:
    return rules_for(game_type).create_game(game_id, host_id, bet_amount, game_code, now_ms, rng)


def join_game(game: Game, guest_id: str, rng: Optional[random.Random] = None) -> Transition:
    return rules_for(game['game_type']).join_game(game, guest_id, rng)


def propose_bet(game: Game, user_id: str, amount: Any) -> Transition:
    return rules_for(game['game_type']).propose_bet(game, user_id, amount)


def accept_bet(game: Game, user_id: str) -> Transition:
    return rules_for(game['game_type']).accept_bet(game, user_id)


def submit_move(game: Game, user_id: str, move: Any, params: Optional[Dict[str, Any]] = None) -> Transition:
    return rules_for(game['game_type']).submit_move(game, user_id, move, params)


def restart_game(game: Game, user_id: str, params: Optional[Dict[str, Any]] = None,
                 rng: Optional[random.Random] = None) -> Transition:
    return rules_for(game['game_type']).restart_game(game, user_id, params, rng)


def forfeit_game(game: Game, user_id: str, params: Optional[Dict[str, Any]] = None) -> Transition:
    return rules_for(game['game_type']).forfeit_game(game, user_id, params)


def negotiation_window_open(game: Game) -> bool:
    return rules_for(game['game_type']).negotiation_window_open(game)
