"""
Lendbook API Application Factory
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .calculator import router as calculator_router
from .loans import router as loans_router
from .payments import router as payments_router
from .creditors import router as creditors_router
from .debtors import router as debtors_router
from .dashboard import router as dashboard_router
from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    app = FastAPI(
        title="Lendbook API",
        description="Loan portfolio administration: schedules, creditor allocations and collections",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(calculator_router, prefix="/calculator", tags=["Calculator"])
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(payments_router, prefix="/payments", tags=["Payments"])
    app.include_router(creditors_router, prefix="/creditors", tags=["Creditors"])
    app.include_router(debtors_router, prefix="/debtors", tags=["Debtors"])
    app.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "lendbook_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Lendbook API",
            "version": __version__,
            "currency": config.default_currency,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "calculator": "/calculator",
                "loans": "/loans",
                "payments": "/payments",
                "creditors": "/creditors",
                "debtors": "/debtors",
                "dashboard": "/dashboard",
            }
        }

    return app


app = create_app()


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "lendbook.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )
