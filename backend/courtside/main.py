import logging
import os
import subprocess
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from courtside.config import configure_logging, get_settings
from courtside.database import init_db
from courtside.errors import CompetitionError
from courtside.routes import competitions, matches, ratings

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()  # Use centralized init_db() which imports models and creates tables
    logger.info(f"Courtside API started (build {BUILD_HASH}, {len(app.routes)} routes)")
    yield


app = FastAPI(title="Courtside Competition API", lifespan=lifespan)


# Get build info
def get_build_info():
    """Get git commit hash or build timestamp"""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=os.path.dirname(os.path.dirname(__file__)),
            capture_output=True,
            text=True,
            timeout=2,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass

    # Fallback to build timestamp
    return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = get_build_info()

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_origins.extend(settings.cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CompetitionError)
async def competition_error_handler(request: Request, exc: CompetitionError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


# Include routers
app.include_router(competitions.router, prefix="/api", tags=["competitions"])
app.include_router(matches.router, prefix="/api", tags=["matches"])
app.include_router(ratings.router, prefix="/api", tags=["ratings"])


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {"app_name": "Courtside Competition API", "build_hash": BUILD_HASH, "status": "healthy"}
