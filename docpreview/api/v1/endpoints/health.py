"""Health check API endpoints."""

from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel, Field

from docpreview.api.dependencies import ContainerDep

router = APIRouter()


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Health check status")
    version: str = Field(..., description="Running application version")
    service: str = Field(..., description="Service name")
    database: Dict[str, Any] = Field(default_factory=dict, description="Database probe result")
    storage: Dict[str, Any] = Field(default_factory=dict, description="Blob storage configuration")
    auth_enabled: bool = Field(..., description="Whether session tokens are verified")


@router.get(
    "",
    response_model=HealthCheckResponse,
    tags=["Health"],
    summary="Health check endpoint",
    description="Check if the service is running and healthy",
    operation_id="get_service_health_status",
)
async def health_check(container: ContainerDep) -> HealthCheckResponse:
    """Health check endpoint."""
    settings = container.settings
    db_health = await container.database.health_check()
    storage_ok = container.storage_configured

    return HealthCheckResponse(
        status="healthy" if db_health["status"] == "healthy" and storage_ok else "degraded",
        version=settings.app_version,
        service=settings.app_name,
        database=db_health,
        storage={
            "backend": settings.storage.backend or None,
            "configured": storage_ok,
            "queue": settings.preview.queue_backend,
        },
        auth_enabled=settings.auth_enabled,
    )
