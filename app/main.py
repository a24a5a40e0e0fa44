"""FastAPI application initialization and configuration."""

import logging
import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.api.v1.endpoints.achievements import router as achievements_router
from app.api.v1.endpoints.progression import limiter, router as progression_router
from app.config import settings
from app.errors import Forbidden, InvalidInput, NotFound, ProgressionError, StorageFailure

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="RuneQuest Progression API",
    description="Progression, streak and achievement tracking for the RuneQuest rune-learning app.",
    version="1.0.0",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    openapi_url="/api/v1/openapi.json",
)

# --- Middleware ---

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)


# Request logging
@app.middleware("http")
async def log_requests(request: Request, call_next) -> Response:
    """Log every incoming request and its duration."""
    start = time.perf_counter()
    response: Response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s -> %s (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


# --- Domain errors ---

_ERROR_STATUS: dict[type[ProgressionError], int] = {
    InvalidInput: 400,
    Forbidden: 403,
    NotFound: 404,
    StorageFailure: 500,
}


@app.exception_handler(ProgressionError)
async def progression_error_handler(request: Request, exc: ProgressionError) -> JSONResponse:
    """Render service errors in the ``{"detail": {"error": ...}}`` envelope."""
    status_code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        message = "Server Error"
    else:
        message = exc.message
    return JSONResponse(
        status_code=status_code,
        content={"detail": {"error": {"code": exc.code, "message": message}}},
    )


@app.get("/api/v1/health", tags=["Health"])
async def health() -> dict:
    """Liveness probe (no auth required)."""
    return {"status": "healthy"}


# Register routes
app.include_router(progression_router, prefix="/api/v1", tags=["Progression"])
app.include_router(achievements_router, prefix="/api/v1", tags=["Achievements"])

logger.info("RuneQuest Progression API started (debug=%s)", settings.DEBUG)
