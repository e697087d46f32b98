"""Responses for the service's operational endpoints."""

from pydantic import Field

from ._strict_base import StrictModel


class HealthResponse(StrictModel):
    """Response for health check endpoint."""

    status: str = Field(description="Health status")
    service: str = Field(description="Service name")
    version: str = Field(description="API version")
    environment: str = Field(description="Environment name")
    database: str = Field(description="Database reachability (ok/error)")
    timestamp: str = Field(description="UTC ISO8601Z timestamp of the health response")


class RootResponse(StrictModel):
    message: str
    version: str
    docs: str
