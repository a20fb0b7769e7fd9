# backend/main.py
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI

from api import routes as api_routes
from core import config

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handle startup and shutdown events.
    """
    configure_logging()
    os.makedirs(config.DATA_DIR, exist_ok=True)
    logger.info("Key broker started, reading servers from %s", config.SERVERS_FILE)
    yield
    logger.info("Key broker shutting down")

app = FastAPI(
    title="Key Broker",
    lifespan=lifespan
)

# --- Include API Routes ---
app.include_router(api_routes.router)

# --- Main entry point for Uvicorn ---
if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
    )
