from contextlib import asynccontextmanager
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from cardsync.api.v1 import router as v1_endpoint
from cardsync.scheduler import start_sync_cronjob, stop_sync_cronjob
from cardsync.utils.logger import api_logger, scheduler_logger, set_log_level


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Load environment variables
    load_dotenv()
    set_log_level(os.environ.get("LOG_LEVEL", "INFO"))
    scheduler_enabled = os.environ.get("SYNC_SCHEDULER_ENABLED", "true").lower() != "false"

    # Startup
    if scheduler_enabled:
        scheduler_logger.info("Starting price sync scheduler...")
        start_sync_cronjob()
    else:
        scheduler_logger.info("Price sync scheduler disabled (SYNC_SCHEDULER_ENABLED=false)")
    yield
    # Shutdown
    if scheduler_enabled:
        scheduler_logger.info("Stopping price sync scheduler...")
        stop_sync_cronjob()


app = FastAPI(
    title="Card Sync API",
    description="TCGplayer card matching and price sync",
    version="1.0.0",
    lifespan=lifespan,
)

origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(v1_endpoint, prefix="/api/v1", tags=["API Version 1"])


@app.get("/", tags=["Root"])
def read_root():
    return {"status": "ok", "message": "Card Sync API"}


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint for monitoring"""
    return {"status": "healthy", "message": "Card Sync API is running", "version": "1.0.0"}


try:
    app.openapi()
    api_logger.info("OpenAPI schema generated successfully")
except Exception as e:
    api_logger.exception("Failed to generate OpenAPI schema: %s", e)

# To run this application for development:
# uvicorn main:app --reload
