"""
Centralized environment detection utilities.

Only the ENV variable decides the environment. Values: 'local', 'dev',
'staging', 'prod'. Defaults to 'dev'.
"""
import os
from functools import lru_cache


@lru_cache(maxsize=1)
def get_env_name() -> str:
    """Current environment name from ENV (lowercase)."""
    return os.getenv("ENV", "dev").lower()


@lru_cache(maxsize=1)
def is_local_env() -> bool:
    """True if ENV is 'local', 'dev' or 'test'."""
    return get_env_name() in {"local", "dev", "test"}


@lru_cache(maxsize=1)
def is_production_env() -> bool:
    """True if ENV is 'prod' or 'production'."""
    return get_env_name() in {"prod", "production"}
