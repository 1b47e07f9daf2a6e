"""Health check and service info routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from studyflow.auth.security import get_stores
from studyflow.config import get_settings, is_configured
from studyflow.errors import StoreUnavailableError
from studyflow.schemas.schemas import DatabaseHealth, HealthResponse
from studyflow.services.store import StoreProvider

router = APIRouter(tags=["System"])

settings = get_settings()

_STATUS_CODES = {
    "ok": status.HTTP_200_OK,
    "degraded": status.HTTP_503_SERVICE_UNAVAILABLE,
    "error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Report which persistence backend is active and whether it answers.",
    responses={503: {"model": HealthResponse}, 500: {"model": HealthResponse}},
)
async def health_check(stores: StoreProvider = Depends(get_stores)):
    """
    Health check endpoint.

    - **ok**: the database answers and its tables exist
    - **degraded**: the tables are missing, or the in-memory demo store is active
    - **error**: the database cannot be reached
    """
    configured = is_configured(settings.database_url)

    if stores.is_demo:
        overall = "degraded"
        database = DatabaseHealth(
            configured=configured,
            connected=False,
            error="Using in-memory demo store; data is not persisted",
        )
    else:
        try:
            async with stores.session() as store:
                schema_ok = await store.validate_database()
        except StoreUnavailableError as e:
            overall = "error"
            database = DatabaseHealth(configured=configured, connected=False, error=e.message)
        else:
            overall = "ok" if schema_ok else "degraded"
            database = DatabaseHealth(
                configured=configured,
                connected=True,
                error=None if schema_ok else "Database tables are missing",
            )

    body = HealthResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc),
        backend=stores.backend,
        database=database,
    )
    return JSONResponse(status_code=_STATUS_CODES[overall], content=body.model_dump(mode="json"))


@router.get("/", tags=["Root"])
async def root():
    """Root endpoint with service info."""
    return {
        "service": settings.app_name,
        "version": "1.0.0",
        "environment": settings.app_env,
        "capabilities": settings.capabilities,
        "docs": "/docs",
        "health": "/api/health",
    }
