# memento/services/__init__.py

# Service entry points. Each mutating operation returns a Result dict:
# {'success': True, ...payload} or {'success': False, 'error', 'code', 'retryable'}.
from .amm import buy_from_amm, sell_to_amm, get_quote
from .tokens import issue_token, convert_usd_to_mmc, exchange_equity_for_mmc
from .games import (
    create_game, create_private_game, join_game, join_game_by_code, propose_bet, accept_bet,
    submit_move, restart_game, forfeit_game, get_available_games, get_user_active_game, get_game,
    get_bet_proposal, generate_join_code,
)
from .realtime import publish_event, publish_trade
