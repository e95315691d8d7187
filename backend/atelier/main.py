"""
Atelier Tracker - FastAPI Application

Main entry point for the order tracker backend.

Architecture:
- OrderFactory -> Order (aggregate root, seeded with order_created)
- ActivityLedger / StageStateMachine -> append-only activity feed
- RiskSignalEngine / classify_urgency -> derived, never stored
- OrderStore -> persistence with optimistic concurrency
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .database import init_db
from .routers import orders_router


LOG_LEVEL = os.getenv("ATELIER_LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    logger.info(f"Atelier Tracker {__version__} started")
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Atelier Tracker",
    description="""
    Atelier Tracker - Jewellery Order Pipeline

    Tracks custom jewellery enquiries and orders from first enquiry to
    customer pickup.

    ## Pipeline
    Enquiry -> Estimation -> CAD Design -> Order Confirmed -> Building ->
    Certification -> Shipped to Store -> Customer Pickup

    ## Key Principles
    - Every change is an entry in the order's append-only activity feed
    - Risk (stale / stuck) and urgency are derived on every read
    - CAD Design is only shown for orders that need it
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(orders_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Atelier Tracker",
        "version": __version__,
        "description": "Jewellery enquiry and order tracker",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


# For running with: python -m atelier.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
