"""
Stock Ledger FastAPI Main Application
Entry point for the inventory ledger and allocation REST API
"""
import sys

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockledger.api.v1.api_router import api_router
from stockledger.core.config import settings
from stockledger.core.database import SessionLocal, check_db_connection, init_db
from stockledger.core.exceptions import InvalidArgumentError, LedgerError, NotFoundError
from stockledger.core.logging import get_logger, setup_logging
from stockledger.services.ledger_engine import build_sql_ledger

# Configure logging
setup_logging()

logger = get_logger("api")

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Stock Ledger API

    Inventory ledger and allocation engine for livestock operations.

    ### Key Features:
    - **Stock Items**: Drugs, feed and supplements with reorder points and expiry
    - **Ledger**: Append-only transaction history with weighted average costing
    - **Allocations**: Feedings, treatments and vaccinations deducted all-or-nothing
    - **Alerts**: Low-stock, expired and expiring-soon monitoring
    """,
    docs_url=settings.DOCS_URL,
    redoc_url=settings.REDOC_URL,
    openapi_url=settings.OPENAPI_URL,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def status_for(exc: LedgerError) -> int:
    """HTTP status for a ledger error"""
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, InvalidArgumentError):
        return 400
    # Insufficient stock, conflicts, failed and cancelled allocations
    return 409


# Health check endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """
    Health check endpoint for monitoring and load balancers

    Returns system status and database connectivity
    """
    try:
        db_status = check_db_connection()

        return {
            "status": "healthy" if db_status else "degraded",
            "version": settings.APP_VERSION,
            "database": "connected" if db_status else "disconnected",
            "debug": settings.DEBUG
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")


# System information endpoint
@app.get("/info", tags=["System"])
async def system_info():
    """
    System information endpoint
    """
    return {
        "application": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_version": "v1",
        "docs_url": settings.DOCS_URL,
        "features": [
            "Stock items and reference catalogue",
            "Append-only ledger with weighted average cost",
            "All-or-nothing allocation events",
            "Low-stock and expiry alerts",
        ],
    }


# Application startup event
@app.on_event("startup")
async def startup_event():
    """
    Application startup tasks

    Verify the database, build the ledger and settle interrupted allocations
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        if not check_db_connection():
            logger.error("Failed to connect to database on startup")
            raise RuntimeError("Database connection failed")

        logger.info("Database connection established")

        init_db()

        ledger = build_sql_ledger(SessionLocal)
        ledger.monitor.sweep()
        if settings.RUN_RECOVERY_ON_STARTUP:
            ledger.recover()
        app.state.ledger = ledger

        logger.info("Application startup completed successfully")

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)


# Application shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down application")


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    """
    Map ledger errors to their HTTP status with a structured body
    """
    status_code = status_for(exc)
    if status_code == 409:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": str(exc) if settings.DEBUG else "An unexpected error occurred",
            "detail": None
        }
    )


# Include API routers
app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stockledger.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
