from .state import Pool, RPSGame, TTTGame, Game, Transfers
from .amm_math import quote_buy, quote_sell, apply_buy, apply_sell, get_price
from .order_book import seed_golden_ratio_ladder
from .games import GAME_RULES
