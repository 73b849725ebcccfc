"""
Tariff Desk API - Main application entry point.

Backend for the freight brokerage CRM: tariff families and versions,
expiry risk, carrier blockers and CSP renewal tracking.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from app.api import (
    customers,
    carriers,
    csp_events,
    tariffs,
    insights,
    pins,
)
from app.services.errors import TariffDeskError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting %s", settings.app_name)
    yield
    logger.info("Shutting down %s", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="""
    ## Tariff Desk API

    Tariff lifecycle backend for a freight brokerage CRM:

    - **Tariff families**: versions grouped by customer (or carrier for blankets)
    - **Risk engine**: expiry risk, carrier blockers, CSP opportunities
    - **Lifecycle rules**: default terms, active-version warnings, renewal CSP linkage

    ### Authentication
    All endpoints require a Supabase JWT bearer token.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TariffDeskError)
async def tariff_desk_error_handler(request: Request, exc: TariffDeskError):
    logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": f"Database error: {exc}"})


# Include routers
app.include_router(customers.router, prefix="/customers", tags=["Customers"])
app.include_router(carriers.router, prefix="/carriers", tags=["Carriers"])
app.include_router(csp_events.router, prefix="/csp-events", tags=["CSP Events"])
app.include_router(tariffs.router, prefix="/tariffs", tags=["Tariffs"])
app.include_router(insights.router, prefix="/insights", tags=["Insights"])
app.include_router(pins.router, prefix="/pins", tags=["Pins"])


@app.get("/", tags=["Health"])
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": "1.0.0",
    }
