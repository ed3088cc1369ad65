"""
POS Sales API - Main Application.

FastAPI application with CORS enabled for the till frontend.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from config import load_settings
from domain.validation import ValidationError
from services.sale_service import InsufficientCapitalError
from services.settlement_service import ReconciliationError

settings = load_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="POS Sales API",
    description="REST API for ringing up point-of-sale transactions",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - Allow all origins for development
# TODO: Restrict origins once the till frontend has a fixed host
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
def handle_validation_error(request: Request, exc: ValidationError):
    """
    Map domain rejections to 4xx responses.

    ReconciliationError (payments short) and InsufficientCapitalError (branch
    cannot cover a cashback) are 400; malformed payloads and unknown
    enumeration values are 422.
    """
    status_code = 400 if isinstance(exc, (ReconciliationError, InsufficientCapitalError)) else 422
    body = exc.to_dict()
    body["status_code"] = status_code
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RuntimeError)
def handle_runtime_error(request: Request, exc: RuntimeError):
    logger.error("Request to %s failed: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal error", "violations": [], "status_code": 500, "detail": str(exc)},
    )


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "pos-sales-api"
    }


@app.get("/", tags=["Root"])
def root():
    return {
        "message": "POS Sales API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import sales

app.include_router(sales.router, prefix="/api/v1", tags=["Sales"])
