from functools import lru_cache
from typing import Optional

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(extra="ignore", case_sensitive=False, env_file=".env")

    # Database
    database_url: str = "sqlite:///./vcbroker.db"
    auto_create_tables: bool = True

    # Logging
    log_level: str = "INFO"

    # Public base URL (batch session QR codes point back here)
    app_base_url: str = "http://localhost:8000"

    # Wallet sandbox (issuance / revocation)
    wallet_api_base: str = "http://localhost:9001"
    wallet_api_key: str = ""
    wallet_auth_header: str = "Access-Token"
    wallet_auth_scheme: Optional[str] = None

    # Verifier sandbox (OIDVP QR + result)
    verifier_api_base: str = "http://localhost:9002"
    verifier_api_key: str = ""
    verifier_auth_header: str = "Access-Token"
    verifier_auth_scheme: Optional[str] = None
    verifier_ref: str = "00000000_template001"

    # Shared sandbox behaviour
    sandbox_timeout_ms: int = 20000
    sandbox_max_attempts: int = 3
    sandbox_retry_initial_delay_s: float = 0.5

    # Issued credential validity sent to the wallet (YYYYMMDD)
    credential_expired_date: str = "20251231"

    # Claim windows
    issuance_claim_window_minutes: int = 10
    verification_window_minutes: int = 5
    batch_session_hours: int = 3

    # Actor token (stands in for the acting simulated person)
    actor_token_secret: str = "dev-secret-change-me"
    actor_token_algorithm: str = "HS256"
    actor_token_ttl_minutes: int = 60

    @property
    def sandbox_timeout_s(self) -> float:
        return self.sandbox_timeout_ms / 1000.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build the settings once; everything else receives them by injection."""
    return Settings()
