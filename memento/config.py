from typing_extensions import TypedDict
import os
from dotenv import load_dotenv
from supabase import create_client, acreate_client, Client, AsyncClient

def load_env() -> dict[str, str]:
    # Try to load from .env file (for local development)
    load_dotenv()

    required_vars = ['SUPABASE_URL', 'SUPABASE_SERVICE_KEY']
    env_vars = {}

    for key in required_vars:
        value = os.getenv(key)
        env_vars[key] = value

        if value is None:
            raise ValueError(f"Missing required environment variable: {key}. "
                             f"Please set it in the environment or in a .env file.")

    return env_vars

def get_supabase_client() -> Client:
    env = load_env()
    return create_client(env['SUPABASE_URL'], env['SUPABASE_SERVICE_KEY'])

class EngineParams(TypedDict):
    # Golden-ratio ladder seeded at token issuance
    issuer_reserve_frac: float
    ladder_tiers: int
    ladder_depth: float
    # Game room
    rps_tie_policy: str  # 'replay' or 'draw'
    forfeit_policy: str  # 'cancel' or 'award'
    restart_keeps_bet: bool
    join_code_length: int
    join_code_attempts: int
    poll_interval_ms: int
    # MMC funding
    usd_to_mmc_rate: float
    equity_exchange_frac: float
    equity_exchange_mmc: float
    platform_user_id: str

def get_default_engine_params() -> EngineParams:
    return EngineParams(
        issuer_reserve_frac=0.2,
        ladder_tiers=8,
        ladder_depth=0.15,
        rps_tie_policy='replay',
        forfeit_policy='cancel',
        restart_keeps_bet=True,
        join_code_length=6,
        join_code_attempts=10,
        poll_interval_ms=3000,
        usd_to_mmc_rate=100.0,
        equity_exchange_frac=0.01,
        equity_exchange_mmc=1_000_000.0,
        platform_user_id='00000000-0000-0000-0000-000000000000',
    )

async def get_async_supabase_client() -> AsyncClient:
    """Async client; realtime subscriptions are only available on it."""
    env = load_env()
    return await acreate_client(env['SUPABASE_URL'], env['SUPABASE_SERVICE_KEY'])
