"""FastAPI application factory."""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from token_telemetry import __version__
from token_telemetry.api.routes import router as transactions_router
from token_telemetry.config.loader import CONFIG_ENV_VAR, Settings, load_settings
from token_telemetry.storage.repository import TransactionRepository

logger = logging.getLogger("token_telemetry")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around one ledger.

    Settings default to the YAML file named by ``TOKEN_TELEMETRY_CONFIG``,
    or built-in defaults when it is unset.
    """
    if settings is None:
        settings = load_settings(os.environ.get(CONFIG_ENV_VAR))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(level=settings.log_level)
        logger.info(
            "Token telemetry %s serving ledger %s", __version__, settings.database.path
        )
        yield
        logger.info("Token telemetry shut down.")

    app = FastAPI(
        title="Token Telemetry",
        version=__version__,
        description="Per-user token usage history and summaries.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.repository = TransactionRepository(
        settings.database.path,
        default_limit=settings.api.default_limit,
        max_limit=settings.api.max_limit,
    )

    app.include_router(transactions_router)

    @app.get("/health", tags=["meta"])
    def health_check() -> dict:
        return {"status": "ok", "version": __version__}

    return app
