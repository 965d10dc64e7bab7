import argparse
import logging
from typing import Dict, Any, Optional

from memento.config import EngineParams, get_default_engine_params
from memento.db import Store, get_store
from memento.engine.params import (
    FORFEIT_POLICIES,
    RPS_TIE_POLICIES,
    get_parameter_documentation,
    validate_params,
)

logger = logging.getLogger(__name__)


def seed_config(overrides: Optional[Dict[str, Any]] = None, store: Optional[Store] = None) -> EngineParams:
    """
    Seeds the engine params into the config row using defaults, with optional overrides.
    Unknown override keys are skipped with a warning.
    """
    store = store or get_store()
    params: EngineParams = get_default_engine_params()

    if overrides:
        for key, value in overrides.items():
            if key in params:
                params[key] = value
            else:
                logger.warning(f"Override key '{key}' not in EngineParams.")

    validate_params(params)
    store.update_config({'params': dict(params)})
    logger.info("Config seeded successfully with defaults and overrides.")
    return params


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def build_parser() -> argparse.ArgumentParser:
    # argparse %-formats help text
    docs = {k: v.replace("%", "%%") for k, v in get_parameter_documentation().items()}
    parser = argparse.ArgumentParser(description="Seed engine params into the config table with optional overrides.")
    parser.add_argument("--issuer_reserve_frac", type=float, help=docs["issuer_reserve_frac"])
    parser.add_argument("--ladder_tiers", type=int, help=docs["ladder_tiers"])
    parser.add_argument("--ladder_depth", type=float, help=docs["ladder_depth"])
    parser.add_argument("--rps_tie_policy", choices=RPS_TIE_POLICIES, help=docs["rps_tie_policy"])
    parser.add_argument("--forfeit_policy", choices=FORFEIT_POLICIES, help=docs["forfeit_policy"])
    parser.add_argument("--restart_keeps_bet", type=_parse_bool, help=docs["restart_keeps_bet"])
    parser.add_argument("--join_code_length", type=int, help=docs["join_code_length"])
    parser.add_argument("--join_code_attempts", type=int, help=docs["join_code_attempts"])
    parser.add_argument("--poll_interval_ms", type=int, help=docs["poll_interval_ms"])
    parser.add_argument("--usd_to_mmc_rate", type=float, help=docs["usd_to_mmc_rate"])
    parser.add_argument("--equity_exchange_frac", type=float, help=docs["equity_exchange_frac"])
    parser.add_argument("--equity_exchange_mmc", type=float, help=docs["equity_exchange_mmc"])
    parser.add_argument("--platform_user_id", type=str, help=docs["platform_user_id"])
    return parser


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args()
    overrides = {k: v for k, v in vars(args).items() if v is not None}
    seed_config(overrides)
