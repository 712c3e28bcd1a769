import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.config import get_settings

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
from app.api import cache, hotspots, layers, markers, rings
from app.db.database import engine
from app.services.analysis_service import create_analysis_service
from app.utils.async_utils import create_task_with_error_handling

# Initialize settings early for Sentry
settings = get_settings()

# Initialize Sentry (must be before FastAPI app creation for proper error capture)
if settings.sentry_dsn:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.sentry_environment,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
            ],
            traces_sample_rate=1.0 if settings.debug else 0.2,
        )
        logger.info(f"Sentry initialized for environment: {settings.sentry_environment}")
    except Exception as e:
        logger.warning(f"Sentry initialization failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.app_name}...")

    service = create_analysis_service(settings, engine=engine)
    await service.startup()
    app.state.analysis_service = service

    # Census loading can take minutes on a cold cache - don't block startup
    if settings.load_data_on_startup:
        create_task_with_error_handling(service.load_data(), task_name="census_data_load")

    yield
    # Shutdown
    logger.info("Shutting down...")
    await service.shutdown()
    await engine.dispose()


app = FastAPI(
    title="ACS Ring Analyzer API",
    description="Census ACS education and income markers with hotspot clustering and ring analysis around ZIP codes",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting setup
from slowapi.errors import RateLimitExceeded
from app.middleware.rate_limit import limiter, rate_limit_exceeded_handler

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# CORS middleware - origins from environment variable
cors_origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
logger.info(f"CORS Origins configured: {cors_origins}")

CORS_ALLOWED_HEADERS = [
    "Accept",
    "Accept-Language",
    "Content-Type",
    "Origin",
    "X-Requested-With",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=CORS_ALLOWED_HEADERS,
    max_age=600,
)

# Include routers
app.include_router(markers.router, prefix="/api/markers", tags=["Markers"])
app.include_router(hotspots.router, prefix="/api/hotspots", tags=["Hotspots"])
app.include_router(rings.router, prefix="/api/rings", tags=["Rings"])
app.include_router(cache.router, prefix="/api/cache", tags=["Cache"])
app.include_router(layers.router, prefix="/api/layers", tags=["Layers"])


@app.get("/", tags=["Health"])
@app.get("/health", tags=["Health"])
@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint - available at /, /health, and /api/health"""
    service = getattr(app.state, "analysis_service", None)
    return {
        "status": "healthy",
        "app": settings.app_name,
        "data_loaded": bool(service and service.loaded),
    }
