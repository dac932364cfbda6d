"""
FastAPI application entry point.

This module sets up the coach relay with its middleware chain, routers and
exception handlers. Request order, outermost first:

    request logging -> security headers -> CORS -> body size limit
    -> rate limit -> auth -> routes
"""
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from routers import ingest, query
from core.config import settings
from core.logging import setup_logging
from core.exceptions import register_exception_handlers
from core.auth import AuthMiddleware
from core.body_limit import BodySizeLimitMiddleware
from core.rate_limit import RateLimitMiddleware
from core.security_headers import SecurityHeadersMiddleware
from schemas import HealthResponse
import logging
import time

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking (production)
if settings.SENTRY_DSN:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            profiles_sample_rate=settings.SENTRY_PROFILES_SAMPLE_RATE,
            integrations=[FastApiIntegration(transaction_style="endpoint")],
            # Don't send PII
            send_default_pii=False,
            # Filter sensitive data
            before_send=lambda event, hint: _filter_sensitive_data(event),
        )
        logger.info(f"Sentry initialized for environment: {settings.ENVIRONMENT}")
    except ImportError:
        logger.warning("sentry-sdk not installed, error tracking disabled")


def _filter_sensitive_data(event):
    """Filter sensitive data before sending to Sentry."""
    # Remove Authorization headers
    if "request" in event and "headers" in event["request"]:
        headers = event["request"]["headers"]
        if isinstance(headers, dict):
            headers.pop("authorization", None)
            headers.pop("Authorization", None)
            headers.pop("cookie", None)
    return event


missing = settings.missing_provider_settings()
if missing:
    logger.warning(f"Missing environment variables: {', '.join(missing)}")

# Create FastAPI app
app = FastAPI(
    title="Flick Coach Relay",
    description="Session ingestion and AI coach queries for the Flick shooting coach app",
    version="1.0.0",
    docs_url="/docs" if (settings.DEBUG or settings.EXPOSE_API_DOCS) else None,
    redoc_url="/redoc" if (settings.DEBUG or settings.EXPOSE_API_DOCS) else None,
    openapi_url="/openapi.json" if (settings.DEBUG or settings.EXPOSE_API_DOCS) else None,
)

register_exception_handlers(app)

# Starlette wraps each added middleware around the previous ones, so they are
# added innermost first.
app.add_middleware(AuthMiddleware)

if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)

app.add_middleware(BodySizeLimitMiddleware)

# CORS middleware
# Production: set CORS_ORIGINS env var (comma-separated)
# Development: DEBUG=True or no CORS_ORIGINS allows all origins
if settings.CORS_ORIGINS and not settings.DEBUG:
    allowed_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
else:
    allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.add_middleware(SecurityHeadersMiddleware)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing information."""
    start_time = time.time()

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"Request failed: {request.method} {request.url.path}",
            exc_info=True,
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                }
            }
        )
        raise

    process_time = time.time() - start_time
    logger.info(
        f"Response: {request.method} {request.url.path} - {response.status_code}",
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
                "status_code": response.status_code,
                "process_time_ms": round(process_time * 1000, 2),
            }
        }
    )

    # Add timing header
    response.headers["X-Process-Time"] = str(process_time)
    return response


@app.get("/health", response_model=HealthResponse)
async def health():
    """Liveness check for load balancers and uptime monitors. No auth."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


# Include routers
app.include_router(ingest.router)
app.include_router(query.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
