"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api import admin, health, transcriptions
from src.config import get_settings
from src.db.session import close_backend, init_backend
from src.middleware.rate_limit import limiter
from src.schemas.schemas import ErrorResponse

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting Transcription Service...")

    try:
        await init_backend()
        logger.info(f"Key-value backend ({settings.storage_backend}) initialized successfully")
    except Exception as e:
        logger.error(f"Key-value backend initialization failed: {e}")
        raise

    logger.info("Transcription Service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Transcription Service...")
    await close_backend()


# Create FastAPI app
app = FastAPI(
    title="Transcription Service",
    description="""
## Audio Transcription API

Upload an audio file and get back its transcription. Transcriptions are kept
in a key-value store and expire after a fixed time-to-live (24 hours by
default).

### Supported formats
mp3, wav, m4a, ogg and webm, up to 25MB.

### Identifying the user
Requests that create or list transcriptions must carry the user ID:
```
X-User-Id: user-123
```

### Rate Limiting
Requests are rate-limited per user ID (or IP address).
Default limits: 60 uploads/minute, 500 uploads/hour.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if settings.debug else "An unexpected error occurred",
        ).model_dump(exclude_none=True),
    )


# Include routers
app.include_router(health.router)
app.include_router(transcriptions.router)
app.include_router(admin.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with service info."""
    return {
        "service": "Transcription Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
