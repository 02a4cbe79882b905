import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401 - register models with Base
from .config import FRONTEND_URL
from .database import Base, engine
from .domain.availability import router as availability_router
from .domain.bookings import router as bookings_router
from .exceptions import BookingEngineError, JobStoreError
from .routes.automation import router as automation_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Venue Booking Engine", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingEngineError)
async def booking_engine_exception_handler(request: Request, exc: BookingEngineError):
    """Domain errors carry their own HTTP status; details go out as-is"""
    if isinstance(exc, JobStoreError):
        logger.error(f"{request.method} {request.url.path} - job store failure: {exc.message}")
        content = {
            "detail": exc.message,
            "partial_job_ids": [job.id for job in exc.partial],
            "requires_force_reschedule": bool(exc.partial),
        }
    else:
        logger.warning(f"{request.method} {request.url.path} - {exc.status_code}: {exc.message}")
        content = {"detail": exc.message, **{k: str(v) for k, v in exc.details.items()}}
    return JSONResponse(status_code=exc.status_code, content=content)


# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000").split(",")
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(bookings_router)
app.include_router(availability_router)
app.include_router(automation_router)


@app.get("/")
def root():
    return {"message": "Venue Booking Engine is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
