"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from plk_api.bootstrap import get_facade
from plk_api.entitlements.facade import EntitlementFacade

router = APIRouter()
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    catalog_version: str
    services: dict[str, str]


def check_ledger(facade: EntitlementFacade) -> str:
    """Check usage ledger backend connectivity.

    Returns:
        str: "up" if healthy, "down" otherwise
    """
    if facade.ledger.ping():
        return "up"
    logger.error("Usage ledger health check failed")
    return "down"


@router.get("/health", response_model=HealthResponse)
def health_check(facade: EntitlementFacade = Depends(get_facade)) -> HealthResponse:
    """
    Health check endpoint.

    Always returns 200 OK (use /readyz for dependency gating).
    """
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        catalog_version=facade.catalog.version,
        services={"api": "up", "ledger": check_ledger(facade)},
    )


@router.get("/readyz", response_model=HealthResponse)
def readiness_check(response: Response, facade: EntitlementFacade = Depends(get_facade)) -> HealthResponse:
    """
    Readiness check endpoint.

    Returns 503 if the usage ledger is unreachable.
    """
    services = {"api": "up", "ledger": check_ledger(facade)}

    if any(svc_status != "up" for svc_status in services.values()):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            version=API_VERSION,
            catalog_version=facade.catalog.version,
            services=services,
        )

    return HealthResponse(
        status="ready",
        version=API_VERSION,
        catalog_version=facade.catalog.version,
        services=services,
    )
