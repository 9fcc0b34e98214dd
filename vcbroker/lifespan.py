"""
Application lifespan management for startup and shutdown events
"""
import logging
from contextlib import asynccontextmanager

from .config import get_settings
from .core.env import get_env_name
from .core.startup_validation import validate_actor_token_secret
from .db import Base, dispose_engine, get_engine
from .integrations import build_verifier_client, build_wallet_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    """Build the sandbox clients once, close them on shutdown."""
    settings = get_settings()
    logger.info(f"[STARTUP] Starting VC lifecycle broker (ENV={get_env_name()})")
    validate_actor_token_secret(settings)

    if settings.auto_create_tables:
        from . import models  # noqa: F401  registers tables on Base
        Base.metadata.create_all(bind=get_engine())
        logger.info("[STARTUP] Database tables ensured")

    # Tests may install their own clients before startup
    if getattr(app.state, "wallet_client", None) is None:
        app.state.wallet_client = build_wallet_client(settings)
    if getattr(app.state, "verifier_client", None) is None:
        app.state.verifier_client = build_verifier_client(settings)
    logger.info("[STARTUP] Sandbox clients ready")

    try:
        yield
    finally:
        logger.info("[SHUTDOWN] Closing sandbox clients")
        await app.state.wallet_client.aclose()
        await app.state.verifier_client.aclose()
        app.state.wallet_client = None
        app.state.verifier_client = None
        dispose_engine()
