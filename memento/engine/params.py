from decimal import Decimal

import mpmath as mp

# Import the complete EngineParams from config which includes every tunable
from memento.config import EngineParams

mp.mp.dps = 30

# phi = (1 + sqrt(5)) / 2, kept as a 28-digit Decimal for the ladder math
GOLDEN_RATIO = Decimal(mp.nstr((1 + mp.sqrt(5)) / 2, 28))

RPS_TIE_POLICIES = ('replay', 'draw')
FORFEIT_POLICIES = ('cancel', 'award')

def validate_params(params: EngineParams) -> None:
    if not (0 <= params['issuer_reserve_frac'] < 1):
        raise ValueError("issuer_reserve_frac must be in [0,1)")
    if params['ladder_tiers'] < 1:
        raise ValueError("ladder_tiers must be >= 1")
    if params['ladder_depth'] <= 0:
        raise ValueError("ladder_depth must be >0")
    if params['rps_tie_policy'] not in RPS_TIE_POLICIES:
        raise ValueError(f"rps_tie_policy must be one of {RPS_TIE_POLICIES}")
    if params['forfeit_policy'] not in FORFEIT_POLICIES:
        raise ValueError(f"forfeit_policy must be one of {FORFEIT_POLICIES}")
    if params['join_code_length'] < 4:
        raise ValueError("join_code_length must be >= 4")
    if params['join_code_attempts'] < 1:
        raise ValueError("join_code_attempts must be >= 1")
    if params['poll_interval_ms'] <= 0:
        raise ValueError("poll_interval_ms must be >0")
    if params['usd_to_mmc_rate'] <= 0:
        raise ValueError("usd_to_mmc_rate must be >0")
    if not (0 < params['equity_exchange_frac'] <= 1):
        raise ValueError("equity_exchange_frac must be in (0,1]")
    if params['equity_exchange_mmc'] <= 0:
        raise ValueError("equity_exchange_mmc must be >0")


def get_parameter_documentation() -> dict[str, str]:
    """Returns a description of every engine parameter and how it shapes pricing or play.

    Returns:
        Dictionary mapping parameter names to descriptions.
    """
    return {
        'issuer_reserve_frac': (
            "Share of a new token's supply kept by the issuer and never offered on the "
            "initial ladder. The remaining 1 - issuer_reserve_frac is floored to whole "
            "tokens and distributed over the ladder tiers."
        ),
        'ladder_tiers': (
            "Number of golden-ratio tiers. Tier i is priced at base_price * phi**i, "
            "so each tier is ~61.8% more expensive than the previous one."
        ),
        'ladder_depth': (
            "Fraction of the available supply offered at tier 0. Tier i offers "
            "available * phi**-i * ladder_depth, capped by what is still unallocated."
        ),
        'rps_tie_policy': (
            "'replay': a tied Rock-Paper-Scissors round clears both moves and stays active "
            "with the stakes still escrowed. 'draw': the round finishes without a winner "
            "and both stakes are refunded."
        ),
        'forfeit_policy': (
            "'cancel': leaving an active game cancels it and refunds escrowed stakes. "
            "'award': the remaining player receives the whole pot."
        ),
        'restart_keeps_bet': (
            "When true a restarted game keeps its bet and escrows both stakes again. "
            "When false the bet is cleared and players negotiate a new one."
        ),
        'join_code_length': "Length of private game join codes (A-Z, 0-9).",
        'join_code_attempts': "How many fresh codes are tried before giving up on a collision.",
        'poll_interval_ms': "Fallback polling interval used by game watchers.",
        'usd_to_mmc_rate': "MMC credited per USD converted.",
        'equity_exchange_frac': "Share of the issuer's token supply given up in the one-time equity exchange.",
        'equity_exchange_mmc': "MMC credited by the one-time equity exchange.",
        'platform_user_id': "Account receiving the tokens given up in equity exchanges.",
    }
