from fastapi import FastAPI, Request, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from sqlalchemy import text
import os
import logging

from ..database.connection import DatabaseManager, SessionLocal
from .routes import approval_settings, entry_messages, time_sheets

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Initialize FastAPI app with metadata
app = FastAPI(
    title="Timesheet Review API",
    description="Review and approval workflow for time entries and time sheets, with project role permissions.",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Time Sheets",
            "description": "Time sheet lifecycle and in-sheet entry review"
        },
        {
            "name": "Entry Messages",
            "description": "Discussion threads on time entries, with optional status changes"
        },
        {
            "name": "Approval Settings",
            "description": "Per-project approval configuration"
        }
    ]
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize database and perform startup tasks."""
    logger.info("Starting up Timesheet Review API...")

    try:
        DatabaseManager.init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Perform cleanup tasks on shutdown."""
    logger.info("Shutting down Timesheet Review API...")


# Health check endpoint
@app.get("/", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns basic API status and version information.
    """
    return {
        "message": "Timesheet Review API is healthy",
        "version": API_VERSION,
        "status": "operational"
    }


@app.get("/health", tags=["Health"])
def detailed_health_check():
    """
    Detailed health check endpoint.

    Returns health status including database connectivity.
    """
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1")).scalar()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unhealthy - database connection failed"
        )
    finally:
        db.close()

    return {
        "status": "healthy",
        "version": API_VERSION,
        "database": "connected",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


# Include routers
app.include_router(time_sheets.router, prefix="/api/v1")
app.include_router(entry_messages.router, prefix="/api/v1")
app.include_router(approval_settings.router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "timetracker.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
