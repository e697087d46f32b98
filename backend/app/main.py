# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.constants import ALLOWED_ORIGINS, API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .core.request_context import attach_request_id_filter
from .errors import register_error_handlers
from .middleware.request_id_asgi import RequestIdMiddlewareASGI
from .routes.v1 import (
    bookings as bookings_v1,
    checkout as checkout_v1,
    class_instances as class_instances_v1,
    class_templates as class_templates_v1,
    health as health_v1,
    metrics as metrics_v1,
    passes as passes_v1,
    subscriptions as subscriptions_v1,
    webhooks as webhooks_v1,
)
from .schemas.main_responses import RootResponse

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
)
attach_request_id_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

# Register unified error envelope handlers
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)
logger.info("CORS allow_origins=%s", ALLOWED_ORIGINS)

# Outermost, so every log line of a request carries its id
app.add_middleware(RequestIdMiddlewareASGI)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")

api_v1.include_router(passes_v1.router, prefix="/passes")
api_v1.include_router(subscriptions_v1.router, prefix="/subscriptions")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(class_templates_v1.router, prefix="/classTemplates")
api_v1.include_router(class_instances_v1.router, prefix="/classInstances")
api_v1.include_router(checkout_v1.router, prefix="/checkout")
api_v1.include_router(webhooks_v1.router, prefix="/webhooks")
api_v1.include_router(health_v1.router, prefix="/health")

app.include_router(api_v1)

# Unversioned: scrapers and probes expect fixed paths
app.include_router(health_v1.router, prefix="/health")
app.include_router(metrics_v1.router, prefix="/metrics")


@app.get("/", response_model=RootResponse)
def read_root() -> RootResponse:
    return RootResponse(message=f"{BRAND_NAME} API", version=API_VERSION, docs="/docs")
