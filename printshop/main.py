"""
FastAPI application for Printshop Orders.
Run with `python cli.py serve` or `uvicorn printshop.main:app`.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from printshop.api.routes import cron, health, orders, sync
from printshop.core.config import Config, get_config
from printshop.core.database import get_database
from printshop.core.logging import setup_logging_from_config

API_PREFIX = "/api"
ROUTERS = (health.router, orders.router, sync.router, cron.router)


def create_app(config: Config = None) -> FastAPI:
    """Build the API: logging, document store, CORS and the /api routers."""
    config = config or get_config()
    setup_logging_from_config(config)
    get_database()

    application = FastAPI(
        title="Printshop Orders API",
        description="Marketplace order cache for a 3D-printing shop",
        version=health.VERSION,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Browser frontends call the API directly
    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_list("api", "cors_origins", default=["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in ROUTERS:
        application.include_router(router, prefix=API_PREFIX)

    @application.get("/")
    def root():
        return {
            "name": "Printshop Orders API",
            "version": health.VERSION,
            "docs": "/docs"
        }

    return application


app = create_app()
