"""
Loan Ledger API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .loans import router as loans_router
from .payments import router as payments_router
from .dashboard import router as dashboard_router
from .. import __version__
from ..config import get_config
from ..engine import LedgerEngine


def create_app(engine: Optional[LedgerEngine] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        engine: Ledger engine to serve; built from the environment
            configuration when omitted
    """
    if engine is None:
        engine = LedgerEngine.from_config(get_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.engine.close()

    app = FastAPI(
        title="Loan Ledger API",
        description="Micro-lending ledger: loans, payments and delinquency tracking",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.engine = engine

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(payments_router, prefix="/payments", tags=["Payments"])
    app.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "loan_ledger_api",
            "version": __version__
        }

    return app


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "loan_ledger.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
