"""
Loan Engine API Application Factory
"""

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .loans import router as loans_router
from .clients import router as clients_router
from .jobs import router as jobs_router
from .. import __version__


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="N'GNA SÔRÔ! Loan Engine API",
        description="Loan schedules, delinquency accrual and payment reminders for SFD loans",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(clients_router, prefix="/clients", tags=["Clients"])
    app.include_router(jobs_router, prefix="/jobs", tags=["Jobs"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "ngna_soro_api",
            "version": __version__
        }

    return app


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False,
               log_level: str = "info"):
    """Run the FastAPI server"""
    uvicorn.run(
        "ngna_soro.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level=log_level.lower()
    )
