"""
FastAPI application setup for the billing service.
Creates Billplz bills, reconciles payment callbacks and sends appointment emails.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from billing_service.config.config import config
from billing_service.config.logger_config import log
from billing_service.infrastructure.database.session import (
    check_connection,
    init_sqlmodel,
)
from billing_service.interfaces.http.emails import router as email_router
from billing_service.interfaces.http.errors import error_response
from billing_service.interfaces.http.payment import router as payment_router
from billing_service.observability.metrics import create_metrics_endpoint
from billing_service.observability.middleware import metrics_middleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan handler: runs on startup and shutdown.
    Initializes the database engine and creates the payments table.
    """
    log.info("Starting billing-service initialization")

    try:
        init_sqlmodel()
        log.info("Database engine initialized")
    except Exception as e:
        log.exception("Failed to initialize dependencies", error=str(e))
        raise

    yield

    log.info("billing-service shutdown complete")


app = FastAPI(
    title="billing-service",
    description="Billplz bills, payment callbacks and appointment emails",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return malformed request bodies in the {success: false, error} envelope."""
    errors = exc.errors()
    fields = ", ".join(
        ".".join(str(part) for part in error["loc"] if part != "body")
        for error in errors
    )
    log.warning("Request validation failed", path=request.url.path, fields=fields)
    return error_response(
        status.HTTP_400_BAD_REQUEST, f"Invalid request body: {fields or 'body'}"
    )


@app.get("/")
def read_root():
    return {"message": "Hello from billing-service!"}


@app.get("/health")
async def health_check():
    """Health check endpoint for liveness probe."""
    db_healthy = check_connection()

    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "database": "connected" if db_healthy else "disconnected",
    }


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)
app.middleware("http")(metrics_middleware)
app.include_router(payment_router)
app.include_router(email_router)
metrics_endpoint = create_metrics_endpoint()
app.add_api_route("/metrics", metrics_endpoint, name="metrics", include_in_schema=False)
