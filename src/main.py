# src/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.common.config import settings
from src.common.database.database import connect_to_db, close_db_connection
from src.common.exception_handlers import register_exception_handlers
from src.common.logging_config import configure_logging
from src.router.routers import include_routers

configure_logging()
logger = logging.getLogger(__name__)


# Lifespan context manager for startup and shutdown events
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Prescriptions API (%s)", settings.APP_ENV)
    await connect_to_db()
    yield
    await close_db_connection()


# Initialize FastAPI app with lifespan manager
app = FastAPI(
    title="Prescriptions API",
    description="Role-based medical prescriptions for doctors, patients and admins",
    version="1.0.0",
    lifespan=lifespan
)

# Middleware for CORS using allowed origins from settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers from a separate file
include_routers(app)


@app.get("/health")
async def health():
    return {"status": "ok", "environment": settings.APP_ENV}
