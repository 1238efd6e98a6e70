"""
Main FastAPI application
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salesflow.config import get_settings
from salesflow.database import engine, Base, AsyncSessionLocal
from salesflow.models import *  # noqa: F401,F403 - register every table on Base.metadata
from salesflow.seed import seed_demo_data
from salesflow.api import companies, sales, workflow
from salesflow.utils.logger import get_logger

settings = get_settings()

# Handler on the package logger; module loggers propagate to it
get_logger("salesflow")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    if settings.SEED_DEMO_DATA:
        await seed_demo_data(AsyncSessionLocal)

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sales.router, prefix="/api/sales", tags=["Sales Documents"])
app.include_router(workflow.router, prefix="/api/workflow", tags=["Workflow"])
app.include_router(companies.router, prefix="/api/companies", tags=["Companies"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "salesflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
