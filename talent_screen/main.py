"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from talent_screen.config import settings
from talent_screen.database import Database
from talent_screen.routers import assessments, sessions, typing_texts
from talent_screen.utils.dependencies import build_services

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=logging.INFO
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    await Database.connect()
    app.state.sessions, app.state.assessments = build_services(Database.get_database())
    app.state.assessments.start_watchdog()
    yield
    # Shutdown
    await app.state.assessments.stop_watchdog()
    await Database.disconnect()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions.router)
app.include_router(assessments.router)
app.include_router(typing_texts.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Talent Screen Assessment API",
        "version": settings.app_version,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint. The API stays up while MongoDB is unreachable."""
    return {
        "status": "healthy",
        "database": "connected" if await Database.ping() else "unavailable"
    }
