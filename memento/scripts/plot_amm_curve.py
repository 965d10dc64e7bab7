import argparse
import logging
from typing import Any, Dict, Optional

import matplotlib.pyplot as plt
import numpy as np

from memento.config import get_default_engine_params
from memento.engine.amm_math import constant_product, get_price
from memento.engine.order_book import seed_golden_ratio_ladder
from memento.engine.state import init_pool
from memento.utils import to_decimal

logger = logging.getLogger(__name__)


def sample_curve(mmc_reserve: float, token_reserve: float, points: int = 200,
                 span: float = 4.0) -> Dict[str, np.ndarray]:
    """
    Samples x*y=k around the current reserves: token reserve from token_reserve/span to
    token_reserve*span, with the matching MMC reserve and spot price.
    """
    pool = init_pool('sample', mmc_reserve, token_reserve)
    k = float(constant_product(pool))
    tokens = np.linspace(token_reserve / span, token_reserve * span, points)
    mmc = k / tokens
    return {'token_reserve': tokens, 'mmc_reserve': mmc, 'price': mmc / tokens}


def generate_graph(mmc_reserve: float, token_reserve: float, total_supply: float, base_price: float,
                   output_path: Optional[str] = None, params: Optional[Dict[str, Any]] = None) -> None:
    """
    Two panels: the constant-product curve with the current pool marked, and the
    golden-ratio ladder a token with this supply and base price would open with.
    """
    params = params or get_default_engine_params()
    curve = sample_curve(mmc_reserve, token_reserve)
    pool = init_pool('sample', mmc_reserve, token_reserve)
    orders = seed_golden_ratio_ladder('sample', 'issuer', base_price, total_supply, params)

    fig, (ax_curve, ax_ladder) = plt.subplots(1, 2, figsize=(12, 5))
    ax_curve.plot(curve['token_reserve'], curve['mmc_reserve'], label='x * y = k', color='blue')
    ax_curve.scatter([token_reserve], [mmc_reserve], color='red', zorder=3,
                     label=f'Pool (price {float(get_price(pool)):.4f} MMC)')
    ax_curve.set_xlabel('Token reserve')
    ax_curve.set_ylabel('MMC reserve')
    ax_curve.set_title('Constant-product curve')
    ax_curve.legend()
    ax_curve.grid(True)

    tiers = [o['tier'] for o in orders]
    ax_ladder.bar(tiers, [o['amount'] for o in orders], color='green', label='Tokens offered')
    ax_price = ax_ladder.twinx()
    ax_price.plot(tiers, [float(to_decimal(o['price'])) for o in orders], color='orange', marker='o',
                  label='Price (MMC)')
    ax_ladder.set_xlabel('Tier')
    ax_ladder.set_ylabel('Tokens')
    ax_price.set_ylabel('Price (MMC)')
    ax_ladder.set_title('Golden-ratio ladder')
    ax_ladder.grid(True)

    fig.tight_layout()
    if output_path:
        plt.savefig(output_path)
        logger.info(f"Graph written to {output_path}")
    else:
        plt.show()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Plot the AMM curve and the golden-ratio ladder.")
    parser.add_argument("--mmc_reserve", type=float, default=1000.0)
    parser.add_argument("--token_reserve", type=float, default=1000.0)
    parser.add_argument("--total_supply", type=float, default=1_000_000.0)
    parser.add_argument("--base_price", type=float, default=1.0)
    parser.add_argument("--output", type=str, default=None)
    args = parser.parse_args()
    generate_graph(args.mmc_reserve, args.token_reserve, args.total_supply, args.base_price, args.output)
