import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tvsync.api.api import api_router
from tvsync.core.celery_app import celery_app
from tvsync.core.config import settings
from tvsync.core.exceptions import AuthenticationFailed, SeriesNotFound
from tvsync.db.base import Base
from tvsync.db.session import SessionLocal, engine
from tvsync.services.engine import build_engine
from tvsync.services.queue import CeleryJobQueue

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    Base.metadata.create_all(bind=engine)
    app.state.engine = build_engine(settings, SessionLocal, CeleryJobQueue(celery_app))
    yield
    # Shutdown - close provider HTTP clients
    app.state.engine.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthenticationFailed)
async def authentication_failed_handler(request: Request, exc: AuthenticationFailed):
    logger.error(f"TvDB authentication failed during {request.url.path}: {exc.message}")
    return JSONResponse(status_code=502, content=exc.to_dict())


@app.exception_handler(SeriesNotFound)
async def series_not_found_handler(request: Request, exc: SeriesNotFound):
    return JSONResponse(status_code=404, content=exc.to_dict())


# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
