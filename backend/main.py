from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from database import SessionLocal
from init_db import init_database, load_tool_path_settings
from api import chat, executions, files, regions, settings
from config.paths import get_log_dir, get_tmp_dir
from constants import SettingKeys
from dependencies import get_ffmpeg_service, get_session_tracker
import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

# Configure logging with rotating file handler
LOG_FILE = get_log_dir() / "backend.log"

# Create formatters and handlers
log_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

# File handler with rotation (10MB per file, keep 5 backups)
file_handler = RotatingFileHandler(
    LOG_FILE,
    maxBytes=10 * 1024 * 1024,  # 10MB
    backupCount=5,
    encoding='utf-8'
)
file_handler.setFormatter(log_formatter)
file_handler.setLevel(logging.INFO)

# Console handler
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(log_formatter)
console_handler.setLevel(logging.INFO)

# Configure root logger
root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)
root_logger.addHandler(file_handler)
root_logger.addHandler(console_handler)

logger = logging.getLogger(__name__)
logger.info(f"Logging initialized: {LOG_FILE}")

APP_VERSION = "1.0.0"


def configure_tools_from_settings():
    """Apply the persisted custom tool paths to the composition root."""
    db = SessionLocal()
    try:
        paths = load_tool_path_settings(db)
    finally:
        db.close()
    get_ffmpeg_service().configure_tool_paths(
        paths[SettingKeys.FFMPEG_PATH],
        paths[SettingKeys.FFPROBE_PATH],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown"""
    # Startup
    init_database()
    configure_tools_from_settings()
    logger.info(f"Temp directory: {get_tmp_dir()}")

    status = await get_ffmpeg_service().check_availability()
    if status["available"]:
        logger.info(f"✅ ffmpeg available: {status.get('version', status['path'])}")
    else:
        logger.warning(f"⚠️  ffmpeg not available at {status['path']} - commands will fail until it is configured")

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Stopping running executions...")
    await get_ffmpeg_service().executor.shutdown()
    logger.info(f"Application shutdown complete ({get_session_tracker().session_count()} session(s) tracked)")


app = FastAPI(
    title="FFmpeg Chat API",
    description="Natural-language ffmpeg commands with live output, cancellation and chained outputs",
    version=APP_VERSION,
    lifespan=lifespan
)

# Configure CORS - the UI may be served from a dev server on another port
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(executions.router, prefix="/api", tags=["executions"])
app.include_router(regions.router, prefix="/api", tags=["regions"])
app.include_router(files.router, prefix="/api", tags=["files"])
app.include_router(chat.router, prefix="/api", tags=["chat"])
app.include_router(settings.router, prefix="/api", tags=["settings"])


@app.get("/api/health")
def health_check():
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": "FFmpeg Chat API",
        "version": APP_VERSION
    }


# Determine frontend directory path
def get_frontend_path():
    """Get the path to the static frontend directory"""
    # Check if running from PyInstaller bundle
    if getattr(sys, 'frozen', False):
        base_path = Path(sys._MEIPASS)
    else:
        base_path = Path(__file__).parent.parent

    frontend_path = base_path / 'public'
    if frontend_path.exists():
        logger.info(f"Frontend path found: {frontend_path}")
        return frontend_path
    logger.info(f"Frontend path not found: {frontend_path} - running in API-only mode")
    return None


# Mount static files if frontend exists
frontend_path = get_frontend_path()
if frontend_path:
    app.mount("/", StaticFiles(directory=str(frontend_path), html=True), name="frontend")
else:
    @app.get("/")
    def root():
        """Root endpoint - API only mode"""
        return {
            "message": "FFmpeg Chat API",
            "docs": "/docs",
            "health": "/api/health",
            "note": "Frontend not available - running in API-only mode"
        }


if __name__ == "__main__":
    import uvicorn
    from constants import ServerConfig

    logger.info(f"🚀 Starting FFmpeg Chat on {ServerConfig.url()}...")
    uvicorn.run(app, host=ServerConfig.HOST, port=ServerConfig.PORT)
