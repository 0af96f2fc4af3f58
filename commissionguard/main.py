# commissionguard/main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from commissionguard.config import ConfigurationError, Settings, load_settings
from commissionguard.db import Database, InitializationError
from commissionguard.logger import setup_logger
from commissionguard.repository import TicketRepository
from commissionguard.routers import board, tickets

logger = setup_logger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the application; a supplied ``database`` is not closed on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.startup_error = None
        app.state.settings = settings
        app.state.database = database
        app.state.repository = None
        owns_database = database is None

        try:
            if app.state.settings is None:
                app.state.settings = load_settings()
            if app.state.database is None:
                app.state.database = Database(app.state.settings)
            app.state.repository = TicketRepository(app.state.database.tickets)
            logger.info(f"Serving tickets from {app.state.settings.tickets_collection}")
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            app.state.startup_error = f"Configuration error: {e}"
        except InitializationError as e:
            app.state.startup_error = f"Initialization error: {e}"

        yield

        if owns_database and app.state.database is not None:
            app.state.database.close()

    # -------------------------
    # Initialize FastAPI App
    # -------------------------
    app = FastAPI(title="CommissionGuard", lifespan=lifespan)

    @app.get("/health")
    def health():
        return {"status": "ok" if not app.state.startup_error else "unavailable"}

    # -------------------------
    # Include Routers
    # -------------------------
    app.include_router(board.router)
    app.include_router(tickets.router)
    return app


app = create_app()
