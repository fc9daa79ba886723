"""FastAPI application entry point.

This module creates and configures the FastAPI application instance with:
- Application metadata and OpenAPI documentation
- Middleware (CORS, RequestID, Timing, ErrorLogging, SecurityHeaders)
- Exception handlers (APIException, HTTPException, ValidationError, general)
- API routers (v1)
- Health check endpoints (/health, /ready)
- Startup/shutdown lifecycle management (database, rate limiter sweep)
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from intake_core.config import get_settings
from intake_core.database import check_connection, close_db, init_db
from intake_core.exceptions import APIException
from intake_core.middleware import setup_middleware
from intake_core.services.rate_limit_service import get_rate_limit_service
from intake_core.utils.logging import get_logger, log_error, setup_logging

setup_logging()
logger = get_logger("main")

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Handles startup and shutdown of:
    - Database connection pool
    - Rate limiter expiry sweep
    """
    logger.info("Starting intake service...")
    rate_limiter = get_rate_limit_service()
    try:
        await init_db()

        rate_limiter.start()

        if not settings.tavus.is_configured:
            logger.warning("Tavus is not configured - conversation creation will fail")
        if not settings.email.is_configured:
            logger.warning("Resend is not configured - match emails will be skipped")
        if not settings.stripe.webhook_secret:
            logger.warning("Stripe webhook secret is not configured - billing webhooks will be rejected")

        logger.info("Intake service started successfully")
        yield
    except Exception as e:
        logger.error(f"Failed to start intake service: {e}", exc_info=True)
        raise
    finally:
        logger.info("Shutting down intake service...")
        try:
            await rate_limiter.stop()
            await close_db()
            logger.info("Intake service shut down successfully")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)


app = FastAPI(
    title="Intake Core API",
    description=(
        "Legal lead intake and distribution: video intake conversations, transcript "
        "extraction, firm matching, exclusive claims and billing webhooks."
    ),
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    debug=settings.debug,
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "webhooks",
            "description": "Tavus conversation events and Stripe billing events",
        },
        {
            "name": "conversations",
            "description": "Public intake conversation lifecycle",
        },
        {
            "name": "leads",
            "description": "Lead extraction and exclusive claims",
        },
        {
            "name": "notifications",
            "description": "In-app notifications for firm users",
        },
        {
            "name": "jobs",
            "description": "Internal maintenance jobs",
        },
        {
            "name": "v1",
            "description": "API v1 information and metadata",
        },
    ],
    license_info={
        "name": "Proprietary",
    },
)

setup_middleware(app)

from intake_core.api.v1.router import router as v1_router

app.include_router(v1_router)


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle custom API exceptions."""
    log_error(
        exc,
        context={
            "method": request.method,
            "path": request.url.path,
            "status_code": exc.status_code,
            "code": exc.code,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle HTTP exceptions (404, etc.)."""
    if exc.status_code == 404:
        logger.warning(
            f"404 Not Found: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": 404,
            },
        )
    else:
        log_error(
            exc,
            context={
                "method": request.method,
                "path": request.url.path,
                "status_code": exc.status_code,
            },
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "code": "HTTP_ERROR",
                "status_code": exc.status_code,
                "details": {},
            }
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error.get("loc", [])),
                "message": error.get("msg"),
                "type": error.get("type"),
            }
        )

    logger.warning(
        f"Validation error: {request.method} {request.url.path}",
        extra={
            "method": request.method,
            "path": request.url.path,
            "validation_errors": errors,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation failed",
                "code": "VALIDATION_ERROR",
                "status_code": 422,
                "details": {
                    "validation_errors": errors,
                },
            }
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    log_error(
        exc,
        context={
            "method": request.method,
            "path": request.url.path,
            "unhandled": True,
        },
    )

    # Internal details stay out of production responses
    if settings.is_production:
        message = "An internal server error occurred"
    else:
        message = str(exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": message,
                "code": "INTERNAL_SERVER_ERROR",
                "status_code": 500,
                "details": {} if settings.is_production else {"exception_type": type(exc).__name__},
            }
        },
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
        "integrations": {
            "tavus": settings.tavus.is_configured,
            "email": settings.email.is_configured,
            "stripe": bool(settings.stripe.webhook_secret),
        },
    }


@app.get("/ready")
async def readiness_check():
    """Readiness check endpoint with database connectivity check."""
    logger.debug("Readiness check requested")
    db_connected = await check_connection()

    if not db_connected:
        logger.warning("Readiness check failed: database not connected")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "app_name": settings.app_name,
                "environment": settings.environment.value,
                "database": "disconnected",
            },
        )

    logger.debug("Readiness check passed: all systems operational")
    return {
        "status": "ready",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
        "database": "connected",
    }
