"""
Main FastAPI application entry point.
Configures the application, middleware, and includes routers.
"""
from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .auth.router import router as auth_router
from .config import settings
from .core.bootstrap import bootstrap_admin_if_needed
from .core.middleware import setup_middlewares
from .database import Base, SessionLocal, engine
from .exceptions import register_exception_handlers
from .registration.router import router as registration_router
from .users.router import router as users_router

# Import all models here for creating tables
from .auth import models as auth_models  # noqa: F401
from .core import audit_models  # noqa: F401
from .registration import models as registration_models  # noqa: F401

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def init_db() -> None:
    """Create database tables if they don't exist and bootstrap the first admin."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        bootstrap_admin_if_needed(db)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Bootstrap process failed: {str(e)}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting EHR Identity API...")
    init_db()
    yield
    logger.info("👋 EHR Identity API shutting down")


# Create FastAPI application
app = FastAPI(
    title="EHR Identity API",
    description="Identity and access provisioning for the Chart Breaker EHR",
    version="1.0.0",
    lifespan=lifespan,
)

# Register exception handlers
register_exception_handlers(app)

# Setup custom middleware
setup_middlewares(app, api_prefix=API_PREFIX)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(registration_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)


# Root endpoint
@app.get("/")
def root():
    """
    Root endpoint for API health check.

    Returns:
        dict: Simple welcome message
    """
    return {"message": "Welcome to the EHR Identity API", "version": app.version}


# Health check endpoint
@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns:
        dict: Health status information
    """
    return {"status": "healthy"}
