"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from spotlight import __version__
from spotlight.config import settings
from spotlight.db.database import init_db, close_db
from spotlight.api.routes import router
from spotlight.services.clip_tracker import get_clip_tracker
from spotlight.utils.transcoder import LocalTranscoder
from spotlight.workers.job_runner import job_runner
from spotlight.workers.handlers import register_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Spotlight...")

    await init_db()
    logger.info("Database initialized")

    register_handlers(job_runner)
    logger.info("Job handlers registered")

    tracker = get_clip_tracker()
    logger.info(f"Clip transcoder: {settings.transcoder_mode}")

    yield

    # Shutdown
    logger.info("Shutting down Spotlight...")
    await job_runner.shutdown()
    if isinstance(tracker.transcoder, LocalTranscoder):
        await tracker.transcoder.drain()
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Sports highlight detection, enrichment, clipping and personalized ranking",
    version=__version__,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")

# Locally rendered clips and thumbnails
if settings.transcoder_mode == "local":
    settings.clips_dir.mkdir(parents=True, exist_ok=True)
    settings.thumbnails_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/media", StaticFiles(directory=str(settings.data_dir)), name="media")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": __version__,
        "api": "/api",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "spotlight.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
