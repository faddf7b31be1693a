"""
Quscina Auth - identity, lockout and credential recovery service
Main FastAPI application
"""
from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.router import router as api_router
from src.core.config import get_settings
from src.core.logger import configure_app_logging, get_logger
from src.core.middleware import (
    SecurityHeadersMiddleware,
    RequestLoggingMiddleware,
)
from src.core.rate_limit import limiter

# Configure application logging
configure_app_logging(log_to_file=True)

# Get logger for this module
logger = get_logger(__name__)

settings = get_settings()
app = FastAPI(title="Quscina Auth", debug=settings.debug)

# Shared rate limiter for every router
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add security middleware
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# Include API routes
app.include_router(api_router)

logger.info("Quscina auth application initialized")


@app.get("/health")
def health():
    return {"status": "ok"}
