"""Health check and system info routes."""

from fastapi import APIRouter, Depends

from src.config import get_settings
from src.db.backend import KeyValueBackend
from src.db.session import get_backend
from src.schemas.schemas import HealthResponse

router = APIRouter(tags=["System"])

settings = get_settings()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the service and its key-value backend.",
)
async def health_check(backend: KeyValueBackend = Depends(get_backend)):
    """
    Health check endpoint.

    Returns the status of:
    - API server
    - Key-value backend connection
    """
    backend_status = "ok" if await backend.ping() else "error"

    return HealthResponse(
        status="healthy" if backend_status == "ok" else "degraded",
        version="1.0.0",
        backend=backend_status,
    )


@router.get(
    "/v1/info",
    summary="Service information",
    description="Get general information about the service.",
)
async def service_info():
    """Get service information."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "environment": settings.app_env,
        "storage_backend": settings.storage_backend,
        "transcription_ttl_seconds": settings.transcription_ttl_seconds,
        "max_upload_size_mb": settings.max_upload_size_mb,
        "allowed_mime_types": settings.allowed_mime_types,
        "documentation": "/docs",
        "redoc": "/redoc",
    }
