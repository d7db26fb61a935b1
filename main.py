from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.database.database import test_connection
from app.api import api_router
from app.database.migration import run_migration
from app.integrations.currency_service import currency_converter
import asyncio
import logging

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Expense Approval Workflow API",
    description="Multi-step approval workflow for employee expenses",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def refresh_exchange_rates_periodically(interval_seconds: int):
    """Reload the exchange-rate cache on a fixed interval"""
    while True:
        await asyncio.sleep(interval_seconds)
        await run_in_threadpool(currency_converter.refresh_rates)


@app.on_event("startup")
async def startup_event():
    """Run startup tasks"""
    try:
        logger.info("Starting up Expense Approval Workflow API...")

        # Test database connection
        logger.info("Testing database connection...")
        if test_connection():
            logger.info("Database connection successful!")

            # Run database migration
            logger.info("Running database migration...")
            run_migration()
            logger.info("Database migration completed!")
        else:
            logger.error("Database connection failed!")

        # Warm the exchange-rate cache; conversion falls back to raw amounts if this fails
        await run_in_threadpool(currency_converter.refresh_rates)
        app.state.rate_refresh_task = asyncio.create_task(
            refresh_exchange_rates_periodically(settings.CURRENCY_REFRESH_INTERVAL_SECONDS)
        )

        logger.info("Startup completed!")

    except Exception as e:
        logger.error(f"Startup failed: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "rate_refresh_task", None)
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    logger.info("Shutdown completed")


app.include_router(api_router)

@app.get("/")
def read_root():
    return {
        "message": "Welcome to the Expense Approval Workflow API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/health")
def health_check():
    """Health check endpoint for deployment platforms"""
    try:
        db_status = test_connection()
        return {
            "status": "healthy" if db_status else "unhealthy",
            "database": "connected" if db_status else "disconnected",
            "version": "1.0.0"
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")
