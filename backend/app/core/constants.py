"""Application-wide constants for the dance school platform."""

from __future__ import annotations

import os

# Text constraints
MAX_REASON_LENGTH = 255
MAX_PASS_NAME_LENGTH = 120

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 500

# Schedule generation
DAYS_OF_WEEK = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
MAX_GENERATION_WEEKS = 104

# Tenant context headers
TENANT_SLUG_HEADER = "x-tenant-slug"
TENANT_ID_HEADER = "x-tenant-id"
INTERNAL_WEBHOOK_SECRET_HEADER = "x-webhook-secret"

# Default cancellation reasons
DEFAULT_INSTANCE_CANCEL_REASON = "Cancelled by admin"
DEFAULT_SERIES_CANCEL_REASON = "Series cancelled by admin"

# Frontend URLs
DEFAULT_DEV_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def _split_env(name: str) -> list[str]:
    value = os.getenv(name, "")
    return [origin.strip() for origin in value.split(",") if origin.strip()]


ALLOWED_ORIGINS = (
    _split_env("ALLOWED_ORIGINS") or _split_env("CORS_ALLOWED_ORIGINS") or DEFAULT_DEV_ORIGINS
)

# Brand Configuration
BRAND_NAME = "DanceHub"

# API Documentation
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = f"Backend API for {BRAND_NAME} - passes, class schedules and bookings"
API_VERSION = "1.0.0"
