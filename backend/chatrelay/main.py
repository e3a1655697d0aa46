"""
Chat Relay Backend - FastAPI Application
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrelay import __version__
from chatrelay.core.config import settings
from chatrelay.core.database import close_db, init_db
from chatrelay.core.logging import setup_logging, get_logger
from chatrelay.api import chats, providers

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging(settings)
    logger.info("Starting Chat Relay Backend", version=__version__)
    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    await close_db()
    logger.info("Shutting down Chat Relay Backend")


app = FastAPI(
    title="Chat Relay API",
    description="Streaming chat backend for multiple LLM providers",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chats.router, prefix="/api/chats", tags=["chats"])
app.include_router(providers.router, prefix="/api/providers", tags=["providers"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "chatrelay-backend"}
