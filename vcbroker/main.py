import logging
import sys

from fastapi import FastAPI

from .config import get_settings
from .exception_handlers import register_exception_handlers
from .lifespan import lifespan
from .middleware.logging import LoggingMiddleware
from .middleware.request_id import RequestIDMiddleware
from .routers import admin, health, issuance, verification


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="VC Lifecycle Broker", version="0.1.0", lifespan=lifespan)

    # Registered last runs first: RequestID wraps Logging
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(issuance.router)
    app.include_router(verification.router)
    app.include_router(admin.router)

    logging.getLogger("vcbroker").info("VC lifecycle broker app created")
    return app


app = create_app()
