"""
PlayerPath Session API

Main entry point. Owns the session coordinator for the process and exposes
it to the UI client under /api/v1.
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Common library imports
from common.auth import initialize_firebase_app
from common.database import MongoDB
from common.utils import success_response

# App-specific imports
from app.config import settings
from app.dependencies import build_session_coordinator
from app.routers import auth_router, session_router, media_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Database Instance
# =============================================================================
# Local persistence: preferences, user mirror, upload queue
main_db = MongoDB()


# =============================================================================
# Application Lifespan
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Connects the database, initializes Firebase and starts the session
    coordinator; tears them down in reverse order.
    """
    # Startup
    logger.info("Starting PlayerPath API...")

    try:
        settings.validate_required()
    except ValueError as e:
        logger.warning(str(e))

    await main_db.connect(
        uri=settings.MONGODB_URI,
        database_name=settings.MONGODB_DATABASE,
    )

    initialize_firebase_app(
        credentials_path=settings.FIREBASE_CREDENTIALS_PATH,
        project_id=settings.FIREBASE_PROJECT_ID,
        storage_bucket=settings.FIREBASE_STORAGE_BUCKET,
    )

    http_client = httpx.AsyncClient(timeout=30.0)
    coordinator = build_session_coordinator(main_db.db, settings, http_client=http_client)
    await coordinator.start()
    app.state.session_coordinator = coordinator

    logger.info("PlayerPath API started successfully!")

    yield

    # Shutdown
    logger.info("Shutting down PlayerPath API...")
    await coordinator.close()
    await http_client.aclose()
    await main_db.disconnect()
    logger.info("PlayerPath API shut down complete.")


# =============================================================================
# FastAPI Application
# =============================================================================
app = FastAPI(
    title="PlayerPath API",
    description="Authenticated session and role reconciliation for PlayerPath",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development() else None,
    redoc_url="/redoc" if settings.is_development() else None,
)

# =============================================================================
# CORS Middleware
# =============================================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# Include Routers (all under /api/v1 prefix)
# =============================================================================
API_PREFIX = "/api/v1"

app.include_router(auth_router, prefix=API_PREFIX, tags=["Authentication"])
app.include_router(session_router, prefix=API_PREFIX, tags=["Session"])
app.include_router(media_router, prefix=API_PREFIX, tags=["Media"])


# =============================================================================
# Health Check Endpoint
# =============================================================================
@app.get("/health", tags=["Health"])
async def health():
    """
    Health check endpoint.

    Returns the status of the API and database connection.
    """
    coordinator = getattr(app.state, "session_coordinator", None)
    return success_response({
        "status": "ok",
        "version": "1.0.0",
        "database": main_db.is_connected,
        "session": coordinator.phase.value if coordinator else None,
    })


# =============================================================================
# Run with Uvicorn
# =============================================================================
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development(),
    )
