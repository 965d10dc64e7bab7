import argparse
import logging
from typing import Optional

import pandas as pd

from memento.db import Store, get_store

logger = logging.getLogger(__name__)


def export_trades_csv(filename: str, token_id: Optional[str] = None, store: Optional[Store] = None) -> int:
    store = store or get_store()
    df = pd.DataFrame(store.list_trades(token_id))
    df.to_csv(filename, index=False, float_format='%.6f')
    return len(df)


def export_price_history_csv(filename: str, token_id: Optional[str] = None, store: Optional[Store] = None) -> int:
    store = store or get_store()
    df = pd.DataFrame(store.list_price_history(token_id))
    df.to_csv(filename, index=False, float_format='%.6f')
    return len(df)


def export_config_csv(filename: str, store: Optional[Store] = None) -> None:
    store = store or get_store()
    params = store.load_config().get('params', {})
    df = pd.DataFrame([params])
    df.to_csv(filename, index=False, float_format='%.6f')


def trade_summary(token_id: Optional[str] = None, store: Optional[Store] = None) -> pd.DataFrame:
    """Count, volume and average price per token and side."""
    store = store or get_store()
    df = pd.DataFrame(store.list_trades(token_id))
    if df.empty:
        return pd.DataFrame(columns=['token_id', 'type', 'trades', 'tokens', 'mmc', 'avg_price'])
    for column in ('amount', 'total_value'):
        df[column] = df[column].astype(float)
    summary = df.groupby(['token_id', 'type']).agg(
        trades=('amount', 'size'), tokens=('amount', 'sum'), mmc=('total_value', 'sum'),
    ).reset_index()
    summary['avg_price'] = summary['mmc'] / summary['tokens']
    return summary


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Export trades, price history and config to CSV.")
    parser.add_argument("--token_id", type=str, default=None)
    parser.add_argument("--prefix", type=str, default="memento")
    args = parser.parse_args()
    n_trades = export_trades_csv(f"{args.prefix}_trades.csv", args.token_id)
    n_prices = export_price_history_csv(f"{args.prefix}_price_history.csv", args.token_id)
    export_config_csv(f"{args.prefix}_config.csv")
    logger.info(f"Exported {n_trades} trades and {n_prices} price snapshots")
