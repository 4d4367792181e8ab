"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import connectors, transfers
from config import settings
from logging_config import setup_logging
from services.link_service import LinkService

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the link service on startup and tear it down on shutdown."""
    service = LinkService()
    app.state.link_service = service
    logger.info(
        "Link service started (providers: %s)",
        ", ".join(c.config.display_name for c in service.connectors.values()),
    )
    try:
        yield
    finally:
        # Close every open widget session even if shutdown is abnormal
        await service.close()


app = FastAPI(
    title="Mesh Bridge",
    description="Link a wallet and an exchange account and transfer between them",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(connectors.router)
app.include_router(transfers.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
