"""PharmaLink Entitlements API - FastAPI Application Entry Point."""

import logging
import time
import uuid
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from plk_api.bootstrap import build_facade_from_env
from plk_api.config.env import get_cors_allowed_origins, get_log_level, is_production_env, json_logs_enabled
from plk_api.context import account_id_var, feature_key_var, request_id_var
from plk_api.entitlements.exceptions import (
    AccountNotFoundError,
    CatalogError,
    EntitlementError,
    InvalidDurationError,
    TrackingModeError,
    UnknownFeatureError,
    UnknownTierError,
)
from plk_api.entitlements.facade import EntitlementFacade
from plk_api.entitlements.problem_details import (
    PROBLEM_TYPE_BASE,
    TYPE_CONFIGURATION,
    TYPE_INTERNAL,
    TYPE_INVALID_DURATION,
    TYPE_NOT_FOUND,
    TYPE_TRACKING_MODE,
    TYPE_VALIDATION,
    create_problem_details_response,
)
from plk_api.routers import catalog, entitlements, health
from plk_api.utils import configure_json_logging

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Dev fallback when CORS_ALLOWED_ORIGINS is unset (never "*" with credentials)
DEV_CORS_ORIGINS = [
    "http://localhost:8081",
    "http://localhost:19006",
    "http://127.0.0.1:8081",
]


def resolve_cors_origins() -> List[str]:
    """CORS_ALLOWED_ORIGINS, or the dev origins outside production.

    Production never falls back: an unset list disables CORS.
    """
    origins = get_cors_allowed_origins()
    if origins or is_production_env():
        return origins
    return DEV_CORS_ORIGINS


def _instance() -> str:
    """Opaque problem instance from the request id."""
    request_id = request_id_var.get()
    return f"urn:pharmalink:trace:{request_id or uuid.uuid4()}"


def _get_title_for_status(status_code: int) -> str:
    """Get human-readable title for HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        402: "Payment Required",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        422: "Unprocessable Content",
        429: "Too Many Requests",
        500: "Internal Server Error",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")


# ============================================================================
# RFC 9457 Exception Handlers
# ============================================================================


async def entitlement_error_handler(request: Request, exc: EntitlementError) -> JSONResponse:
    """Map entitlement exceptions to problem details.

    Unknown account/feature -> 404, invalid duration -> 422, tracking misuse -> 409.
    Unknown tier and catalog errors are configuration defects -> 500, never
    a silent "unlimited".
    """
    if isinstance(exc, (AccountNotFoundError, UnknownFeatureError)):
        status_code, type_uri = 404, TYPE_NOT_FOUND
    elif isinstance(exc, InvalidDurationError):
        status_code, type_uri = 422, TYPE_INVALID_DURATION
    elif isinstance(exc, TrackingModeError):
        status_code, type_uri = 409, TYPE_TRACKING_MODE
    elif isinstance(exc, (UnknownTierError, CatalogError)):
        logger.error("Entitlement configuration defect: %s", exc, exc_info=True)
        return create_problem_details_response(
            type_uri=TYPE_CONFIGURATION,
            title="Entitlement configuration error",
            status=500,
            detail=str(exc),
            instance=_instance(),
        )
    else:
        logger.error("Unhandled entitlement error: %s", exc, exc_info=True)
        status_code, type_uri = 500, TYPE_INTERNAL

    return create_problem_details_response(
        type_uri=type_uri,
        title=_get_title_for_status(status_code),
        status=status_code,
        detail=str(exc),
        instance=_instance(),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with RFC 9457 Problem Details format (no {"detail": ...} wrapper)."""
    detail_value = exc.detail if exc.detail is not None else _get_title_for_status(exc.status_code)

    return create_problem_details_response(
        type_uri=f"{PROBLEM_TYPE_BASE}/http-{exc.status_code}",
        title=_get_title_for_status(exc.status_code),
        status=exc.status_code,
        detail=str(detail_value),
        instance=_instance(),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors (422, application/problem+json)."""
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    field = ".".join(str(loc) for loc in first_error.get("loc", []))
    msg = first_error.get("msg", "Validation error")

    return create_problem_details_response(
        type_uri=TYPE_VALIDATION,
        title="Request Validation Failed",
        status=422,
        detail=f"Invalid field '{field}': {msg}",
        instance=_instance(),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions (500, application/problem+json)."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)

    return create_problem_details_response(
        type_uri=TYPE_INTERNAL,
        title="Internal Server Error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred. Please try again later.",
        instance=_instance(),
    )


# ============================================================================
# Application Factory
# ============================================================================


def create_app(facade: Optional[EntitlementFacade] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        facade: Entitlement facade to serve. Built from environment
            configuration when omitted (tests inject their own).

    Returns:
        Configured FastAPI application instance
    """
    if json_logs_enabled():
        configure_json_logging(log_level=get_log_level())

    new_app = FastAPI(
        title="PharmaLink Entitlements API",
        description="Subscription quotas, usage ledger and mission contact fees.",
        version=API_VERSION,
        docs_url="/api-docs",
        redoc_url="/redoc",
    )

    new_app.state.facade = facade if facade is not None else build_facade_from_env()

    new_app.add_middleware(
        CORSMiddleware,
        allow_origins=resolve_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    new_app.add_exception_handler(EntitlementError, entitlement_error_handler)
    new_app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    new_app.add_exception_handler(RequestValidationError, validation_exception_handler)
    new_app.add_exception_handler(Exception, general_exception_handler)

    new_app.include_router(health.router, tags=["health"])
    new_app.include_router(entitlements.router)
    new_app.include_router(catalog.router)

    # Completion logging middleware (inner)
    @new_app.middleware("http")
    async def completion_logging_mw(request: Request, call_next):
        """Log every HTTP request completion (logs even when the handler raises)."""
        account_id_var.set("")
        feature_key_var.set("")

        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "http.request.completed",
                extra={
                    "event": "http.request.completed",
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            account_id_var.set("")
            feature_key_var.set("")

    # Request ID middleware (outermost for context propagation)
    @new_app.middleware("http")
    async def request_id_mw(request: Request, call_next):
        """Accept X-Request-ID or generate one, and echo it on the response."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    return new_app


app = create_app()
