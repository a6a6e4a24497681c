import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from idvt.config import settings
from idvt.services.errors import DocumentNotFoundError, EngineError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Dashboard query resolution and indicator computation for DHIS2",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DocumentNotFoundError)
async def document_not_found_handler(request: Request, exc: DocumentNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(httpx.HTTPError)
async def upstream_error_handler(request: Request, exc: httpx.HTTPError):
    logger.warning("Upstream request failed: %s", exc)
    return JSONResponse(status_code=502, content={"detail": f"Upstream request failed: {exc}"})


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.APP_NAME} v{settings.VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # Create offline cache tables (non-blocking: app starts even if DB is unreachable)
    from sqlalchemy.exc import OperationalError
    from idvt.db.session import engine, Base
    import idvt.models  # noqa: F401 - Import models to register them

    logger.info("Creating database tables...")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created.")
    except OperationalError as e:
        logger.warning("Database unreachable at startup (tables not created). Error: %s", e)

    if not settings.dhis2_enabled:
        logger.warning("DHIS2_URL is not set; host DHIS2 queries and the dataStore are unavailable")


@app.on_event("shutdown")
async def shutdown_event():
    from idvt.db.dhis2 import close_dhis2_client
    from idvt.services.document_store import close_document_store
    from idvt.services.pipeline import shutdown_scheduler

    logger.info("Shutting down application")
    await shutdown_scheduler()
    await close_document_store()
    await close_dhis2_client()


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "dhis2": settings.dhis2_enabled,
        "storage": settings.STORAGE,
    }


# Import and include routers
from idvt.api import documents, maps, offline, visualizations

app.include_router(documents.router, prefix="/api", tags=["Documents"])
app.include_router(visualizations.router, prefix="/api", tags=["Visualizations"])
app.include_router(offline.router, prefix="/api", tags=["Offline"])
app.include_router(maps.router, prefix="/api", tags=["Maps"])
