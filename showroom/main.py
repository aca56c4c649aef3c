"""
Showroom admin service

Inventory, orders and shipment tracking for the showroom back office.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import subprocess
import os

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from showroom.core_settings import get_settings
from showroom.api.auth import router as auth_router
from showroom.api.dashboard import router as dashboard_router
from showroom.api.inventory import router as inventory_router
from showroom.api.logistics import router as logistics_router
from showroom.api.orders import router as orders_router
from showroom.infrastructure.db import engine, init_models

SERVICE_NAME = "showroom-admin"
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.0.0")
SERVICE_DESCRIPTION = "Showroom inventory, order and logistics admin"

settings = get_settings()

setup_logging(service_name=SERVICE_NAME, level=settings.LOG_LEVEL)

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {SERVICE_NAME} version {SERVICE_VERSION}")

    if settings.RUN_MIGRATIONS:
        logger.info("Running database migrations")
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=os.path.join(os.path.dirname(__file__), ".."),
            capture_output=True,
            text=True,
            check=False
        )
        if result.returncode != 0:
            logger.warning(f"Migration output: {result.stderr}")
        else:
            logger.info("Database migrations completed")

    try:
        init_models()
        logger.info("Database models initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database models: {e}")
        raise

    logger.info(f"{SERVICE_NAME} started successfully")
    yield
    logger.info(f"Shutting down {SERVICE_NAME}")

app = FastAPI(
    title=SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

health_service = ServiceHealth(SERVICE_NAME, SERVICE_VERSION, engine=engine, redis_url=settings.REDIS_URL)
app.include_router(health_service.create_health_router())

app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(inventory_router)
app.include_router(orders_router)
app.include_router(logistics_router)

@app.get("/")
async def root():
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs"
    }
