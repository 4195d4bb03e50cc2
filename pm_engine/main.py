"""FastAPI application."""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .domain_errors import DomainError
from .problem_details import build_problem_details_response
from .routers import preventive

# Create app
app = FastAPI(
    title="Preventive Maintenance Engine",
    version="1.0.0",
    description="Recurrence, reconciliation and execution API for preventive maintenance"
)

if settings.ENV.lower() == "production" and any(origin.strip() == "*" for origin in settings.cors_origins):
    raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard when using credentials).")

# CORS
cors_headers = ["Authorization", "Content-Type"]
if settings.ENV.lower() != "production":
    cors_headers = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=cors_headers,
)


@app.exception_handler(DomainError)
async def handle_domain_error(_: Request, exc: DomainError):
    return build_problem_details_response(exc)


# Include routers
app.include_router(preventive.router, prefix="/api/v1")


@app.get("/api/v1/system/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "1.0.0",
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Preventive Maintenance Engine API",
        "version": "1.0.0",
        "docs": "/docs"
    }
