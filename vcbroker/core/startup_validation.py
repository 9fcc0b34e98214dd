"""
Startup validation for non-local environments
"""
import logging

from ..config import Settings
from .env import get_env_name, is_local_env

logger = logging.getLogger(__name__)

DEFAULT_SECRETS = {"dev-secret", "dev-secret-change-me"}


def validate_actor_token_secret(settings: Settings) -> None:
    """Refuse to start outside local/dev/test with a missing or default actor token secret."""
    if is_local_env():
        return

    if not settings.actor_token_secret or settings.actor_token_secret in DEFAULT_SECRETS:
        error_msg = (
            "CRITICAL SECURITY ERROR: actor token secret must be set and not use the default value "
            f"in non-local environment. ENV={get_env_name()}. Set ACTOR_TOKEN_SECRET."
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    if settings.actor_token_secret == settings.database_url:
        error_msg = (
            "CRITICAL SECURITY ERROR: actor token secret cannot equal database_url "
            f"in non-local environment. ENV={get_env_name()}."
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info("Actor token secret validation passed")
